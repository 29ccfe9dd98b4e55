"""
Pytest fixtures for AgentScore tests. Uses a temporary SQLite DB per test.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend_agentscore.database import Transfer, get_database
from backend_agentscore.utils.time_utils import to_iso

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed clock for time-windowed operations."""
    return NOW


@pytest.fixture
def db(tmp_path):
    """Fresh Database on a temporary SQLite file, schema ensured."""
    return get_database(tmp_path / "agentscore.db")


@pytest.fixture
def make_transfer():
    """
    Factory for Transfer rows. Timestamps are given as an offset from NOW
    (negative hours = in the past); tx hashes are unique per call.
    """
    counter = {"n": 0}

    def _make(
        from_wallet: str,
        to_wallet: str,
        amount: float,
        *,
        hours_ago: float = 1.0,
        at: datetime | None = None,
        tx_hash: str | None = None,
        block: int = 1000,
    ) -> Transfer:
        counter["n"] += 1
        ts = at if at is not None else NOW - timedelta(hours=hours_ago)
        return Transfer(
            tx_hash=tx_hash or f"0x{counter['n']:064x}",
            block_number=block + counter["n"],
            from_wallet=from_wallet,
            to_wallet=to_wallet,
            amount_usdc=amount,
            timestamp=to_iso(ts),
        )

    return _make


@pytest.fixture
def client(tmp_path, monkeypatch):
    """FastAPI TestClient on a temporary DB with background jobs disabled."""
    monkeypatch.setenv("AGENTSCORE_DB_PATH", str(tmp_path / "api.db"))
    monkeypatch.setenv("AGENTSCORE_RUN_JOBS", "0")
    from fastapi.testclient import TestClient

    from backend_agentscore.api_server.server import app

    with TestClient(app) as c:
        yield c
