"""
Code-hosting re-verification: refresh repo verification, stars and last push daily.

For every registered agent with a github_url, GET api.github.com/repos/{owner}/{repo}.
A public repo marks the agent verified with its star count and pushed_at; a
malformed URL, private repo, non-2xx status or transport error records
unverified and the job moves on. Calls are spaced 2s apart to stay under
GitHub's unauthenticated rate limit.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.database import Database
from backend_agentscore.utils.time_utils import to_iso, utc_now

logger = get_logger(__name__)

GITHUB_API_REPO_URL = "https://api.github.com/repos/{owner}/{repo}"
REQUEST_TIMEOUT_SEC = 10.0
INTER_CALL_DELAY_SEC = 2.0
USER_AGENT = "agentscore/0.1"

_GITHUB_URL_RE = re.compile(r"^https?://(?:www\.)?github\.com/([^/\s?#]+)/([^/\s?#]+)", re.IGNORECASE)


@dataclass(frozen=True)
class GithubVerification:
    verified: bool
    stars: int | None = None
    pushed_at: str | None = None


UNVERIFIED = GithubVerification(verified=False)


def parse_github_url(url: str | None) -> tuple[str, str] | None:
    """Return (owner, repo) for https://github.com/<owner>/<repo>[.git], else None."""
    if not url:
        return None
    match = _GITHUB_URL_RE.match(url.strip())
    if not match:
        return None
    owner, repo = match.group(1), match.group(2)
    if repo.lower().endswith(".git"):
        repo = repo[:-4]
    if not owner or not repo:
        return None
    return owner, repo


def _headers(token: str | None) -> dict[str, str]:
    headers = {"Accept": "application/vnd.github+json", "User-Agent": USER_AGENT}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


async def fetch_repo_verification(
    client: httpx.AsyncClient,
    owner: str,
    repo: str,
    *,
    token: str | None = None,
) -> GithubVerification:
    url = GITHUB_API_REPO_URL.format(owner=owner, repo=repo)
    try:
        resp = await client.get(url, headers=_headers(token), timeout=REQUEST_TIMEOUT_SEC)
    except httpx.HTTPError as e:
        logger.warning("github_fetch_failed", owner=owner, repo=repo, error=str(e)[:200])
        return UNVERIFIED
    if resp.status_code != 200:
        logger.info("github_repo_unavailable", owner=owner, repo=repo, status_code=resp.status_code)
        return UNVERIFIED
    try:
        data = resp.json()
    except ValueError:
        logger.warning("github_bad_json", owner=owner, repo=repo)
        return UNVERIFIED
    if not isinstance(data, dict) or data.get("private"):
        return UNVERIFIED
    return GithubVerification(
        verified=True,
        stars=int(data.get("stargazers_count") or 0),
        pushed_at=data.get("pushed_at"),
    )


async def run_github_reverify(
    db: Database,
    *,
    client: httpx.AsyncClient | None = None,
    token: str | None = None,
    delay_sec: float = INTER_CALL_DELAY_SEC,
    now: datetime | None = None,
) -> dict[str, Any]:
    registrations = db.list_registrations_with_github()
    if not registrations:
        return {"checked": 0, "verified": 0}

    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT_SEC))
    verified = 0
    try:
        for i, reg in enumerate(registrations):
            parsed = parse_github_url(reg.github_url)
            if parsed is None:
                logger.info("github_url_malformed", wallet_id=reg.wallet, github_url=reg.github_url)
                result = UNVERIFIED
            else:
                if i > 0 and delay_sec > 0:
                    await asyncio.sleep(delay_sec)
                result = await fetch_repo_verification(http, parsed[0], parsed[1], token=token)
            db.update_github_verification(
                reg.wallet,
                verified=result.verified,
                stars=result.stars,
                pushed_at=result.pushed_at,
                verified_at=to_iso(now or utc_now()),
            )
            if result.verified:
                verified += 1
    finally:
        if owns_client:
            await http.aclose()

    logger.info("github_reverify_done", checked=len(registrations), verified=verified)
    return {"checked": len(registrations), "verified": verified}
