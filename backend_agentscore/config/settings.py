"""
Application settings.

Typed settings for RPC access, storage, job cadence and the API server,
read once from the environment (see config.env) by get_settings().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from backend_agentscore.config import env


@dataclass(frozen=True)
class Settings:
    """Service configuration; all intervals in seconds."""

    db_path: Path = Path(env.DEFAULT_DB_PATH)
    rpc_url: str = env.DEFAULT_BASE_RPC_URL
    usdc_address: str = env.DEFAULT_USDC_ADDRESS.lower()
    rpc_timeout_sec: float = 10.0
    rpc_rate_per_sec: float = 0.0
    """Max JSON-RPC requests per second; 0 disables spacing."""
    log_chunk_size: int = 100
    indexer_yield_ms: int = 200
    indexer_poll_sec: float = 15.0
    intent_matcher_interval_sec: float = 6 * 3600.0
    github_reverify_interval_sec: float = 24 * 3600.0
    score_refresh_interval_sec: float = 3600.0
    github_token: str | None = None
    dimension_weights: dict[str, float] | None = field(default=None)
    """Optional override of composite dimension weights; None uses the defaults."""
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    run_jobs: bool = True
    """Start the background job scheduler from the API lifespan."""


def get_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings(
        db_path=env.get_db_path(),
        rpc_url=env.get_rpc_url(),
        usdc_address=env.get_usdc_address(),
        rpc_timeout_sec=env.get_float("RPC_TIMEOUT_SEC", 10.0),
        rpc_rate_per_sec=env.get_float("RPC_RATE_PER_SEC", 0.0),
        log_chunk_size=env.get_int("LOG_CHUNK_SIZE", 100),
        indexer_yield_ms=env.get_int("INDEXER_YIELD_MS", 200),
        indexer_poll_sec=env.get_float("INDEXER_POLL_SEC", 15.0),
        intent_matcher_interval_sec=env.get_float("INTENT_MATCHER_INTERVAL_SEC", 6 * 3600.0),
        github_reverify_interval_sec=env.get_float("GITHUB_REVERIFY_INTERVAL_SEC", 24 * 3600.0),
        score_refresh_interval_sec=env.get_float("SCORE_REFRESH_INTERVAL_SEC", 3600.0),
        github_token=env.get_github_token(),
        dimension_weights=env.get_dimension_weights_override(),
        api_host=env.get_str("API_HOST", "0.0.0.0"),
        api_port=env.get_int("API_PORT", 8000),
        run_jobs=env.get_bool("AGENTSCORE_RUN_JOBS", True),
    )
