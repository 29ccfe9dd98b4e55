"""
Tests for environment-driven settings.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from backend_agentscore.config import get_settings
from backend_agentscore.config.env import DEFAULT_USDC_ADDRESS

_VARS = (
    "AGENTSCORE_DB_PATH",
    "BASE_RPC_URL",
    "USDC_ADDRESS",
    "LOG_CHUNK_SIZE",
    "INDEXER_POLL_SEC",
    "DIMENSION_WEIGHTS",
    "AGENTSCORE_RUN_JOBS",
    "GITHUB_TOKEN",
    "RPC_RATE_PER_SEC",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    s = get_settings()
    assert s.rpc_url == "https://mainnet.base.org"
    assert s.usdc_address == DEFAULT_USDC_ADDRESS.lower()
    assert s.log_chunk_size == 100
    assert s.indexer_poll_sec == 15.0
    assert s.score_refresh_interval_sec == 3600.0
    assert s.intent_matcher_interval_sec == 21600.0
    assert s.github_reverify_interval_sec == 86400.0
    assert s.dimension_weights is None
    assert s.run_jobs is True
    assert s.rpc_rate_per_sec == 0.0


def test_overrides(clean_env, tmp_path):
    clean_env.setenv("AGENTSCORE_DB_PATH", str(tmp_path / "x.db"))
    clean_env.setenv("USDC_ADDRESS", "0xABCDEF0000000000000000000000000000000001")
    clean_env.setenv("LOG_CHUNK_SIZE", "500")
    clean_env.setenv("AGENTSCORE_RUN_JOBS", "0")
    clean_env.setenv("GITHUB_TOKEN", "ghp_x")
    clean_env.setenv("RPC_RATE_PER_SEC", "4")
    clean_env.setenv(
        "DIMENSION_WEIGHTS",
        '{"reliability": 0.2, "viability": 0.2, "identity": 0.2, "behavior": 0.2, "capability": 0.2}',
    )
    s = get_settings()
    assert s.db_path == Path(tmp_path / "x.db")
    assert s.usdc_address == "0xabcdef0000000000000000000000000000000001"
    assert s.log_chunk_size == 500
    assert s.run_jobs is False
    assert s.github_token == "ghp_x"
    assert s.rpc_rate_per_sec == 4.0
    assert s.dimension_weights["behavior"] == 0.2


def test_bad_number_raises(clean_env):
    clean_env.setenv("LOG_CHUNK_SIZE", "lots")
    with pytest.raises(ValueError, match="LOG_CHUNK_SIZE"):
        get_settings()


def test_bad_weights_json_raises(clean_env):
    clean_env.setenv("DIMENSION_WEIGHTS", "[1, 2]")
    with pytest.raises(ValueError, match="DIMENSION_WEIGHTS"):
        get_settings()
