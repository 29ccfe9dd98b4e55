"""
Tests for code-hosting re-verification. GitHub is replaced by httpx.MockTransport.
"""

from __future__ import annotations

import asyncio

import httpx

from backend_agentscore.agent_worker.github_reverify import (
    fetch_repo_verification,
    parse_github_url,
    run_github_reverify,
)
from backend_agentscore.database import AgentRegistration

GOOD = "0x" + "1" * 40
MISSING = "0x" + "2" * 40
MALFORMED = "0x" + "3" * 40
PRIVATE = "0x" + "4" * 40
NO_URL = "0x" + "5" * 40


def _github_handler(seen: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        path = request.url.path
        if path == "/repos/acme/agent":
            return httpx.Response(
                200,
                json={"full_name": "acme/agent", "private": False, "stargazers_count": 7, "pushed_at": "2025-05-20T10:00:00Z"},
            )
        if path == "/repos/acme/secret":
            return httpx.Response(200, json={"full_name": "acme/secret", "private": True, "stargazers_count": 1})
        return httpx.Response(404, json={"message": "Not Found"})

    return handler


def test_parse_github_url():
    assert parse_github_url("https://github.com/acme/agent") == ("acme", "agent")
    assert parse_github_url("https://github.com/acme/agent.git") == ("acme", "agent")
    assert parse_github_url("https://www.github.com/acme/agent/tree/main") == ("acme", "agent")
    assert parse_github_url("  http://github.com/acme/agent  ") == ("acme", "agent")
    assert parse_github_url("https://gitlab.com/acme/agent") is None
    assert parse_github_url("https://github.com/acme") is None
    assert parse_github_url("not a url") is None
    assert parse_github_url(None) is None
    assert parse_github_url("") is None


def test_reverify_records_each_outcome(db, now):
    for wallet, url in (
        (GOOD, "https://github.com/acme/agent"),
        (MISSING, "https://github.com/acme/gone"),
        (MALFORMED, "https://gitlab.com/acme/agent"),
        (PRIVATE, "https://github.com/acme/secret"),
        (NO_URL, None),
    ):
        db.upsert_agent_registration(AgentRegistration(wallet=wallet, name="agent", github_url=url, registered_at="2025-01-01T00:00:00.000Z"))

    seen: list[httpx.Request] = []

    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(_github_handler(seen))) as client:
            return await run_github_reverify(db, client=client, token="ghp_test", delay_sec=0, now=now)

    summary = asyncio.run(main())
    assert summary == {"checked": 4, "verified": 1}

    good = db.get_agent_registration(GOOD)
    assert good.github_verified is True
    assert good.github_stars == 7
    assert good.github_pushed_at == "2025-05-20T10:00:00Z"
    assert good.github_verified_at is not None

    for wallet in (MISSING, MALFORMED, PRIVATE):
        reg = db.get_agent_registration(wallet)
        assert reg.github_verified is False
        assert reg.github_stars is None
    assert db.get_agent_registration(NO_URL).github_verified_at is None

    # the malformed URL never reaches the network
    assert len(seen) == 3
    assert all(r.headers["Authorization"] == "Bearer ghp_test" for r in seen)
    assert all(r.headers["Accept"] == "application/vnd.github+json" for r in seen)


def test_previously_verified_repo_can_lose_verification(db, now):
    db.upsert_agent_registration(AgentRegistration(wallet=MISSING, github_url="https://github.com/acme/gone"))
    db.update_github_verification(MISSING, verified=True, stars=3, pushed_at="2025-01-01T00:00:00Z", verified_at="2025-01-02T00:00:00.000Z")

    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(_github_handler([]))) as client:
            await run_github_reverify(db, client=client, delay_sec=0, now=now)

    asyncio.run(main())
    assert db.get_agent_registration(MISSING).github_verified is False


def test_transport_error_is_unverified():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_repo_verification(client, "acme", "agent")

    result = asyncio.run(main())
    assert result.verified is False
    assert result.stars is None


def test_no_token_sends_no_authorization():
    seen: list[httpx.Request] = []

    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(_github_handler(seen))) as client:
            return await fetch_repo_verification(client, "acme", "agent")

    result = asyncio.run(main())
    assert result.verified is True
    assert "Authorization" not in seen[0].headers


def test_no_registrations_is_a_noop(db):
    assert asyncio.run(run_github_reverify(db, delay_sec=0)) == {"checked": 0, "verified": 0}
