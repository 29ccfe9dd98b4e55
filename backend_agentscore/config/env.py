"""
Environment variable loading for AgentScore.

- BASE_RPC_URL: Base mainnet JSON-RPC endpoint
- USDC_ADDRESS: USDC token contract on Base
- AGENTSCORE_DB_PATH: SQLite file path
- GITHUB_TOKEN: optional token for code-hosting verification
- RPC_RATE_PER_SEC: JSON-RPC request spacing, 0 for none
- Loads .env from project root when available.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_agentscore/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_BASE_RPC_URL = "https://mainnet.base.org"
DEFAULT_USDC_ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
DEFAULT_DB_PATH = "agentscore.db"


def load_agentscore_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def get_str(name: str, default: str = "") -> str:
    load_agentscore_env()
    return (os.getenv(name) or default).strip()


def get_float(name: str, default: float) -> float:
    raw = get_str(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def get_int(name: str, default: int) -> int:
    raw = get_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def get_bool(name: str, default: bool = False) -> bool:
    raw = get_str(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def get_rpc_url() -> str:
    """Return BASE_RPC_URL, or the public Base endpoint."""
    return get_str("BASE_RPC_URL", DEFAULT_BASE_RPC_URL)


def get_usdc_address() -> str:
    """Return the USDC contract address, lower-cased for log filters."""
    return get_str("USDC_ADDRESS", DEFAULT_USDC_ADDRESS).lower()


def get_db_path() -> Path:
    return Path(get_str("AGENTSCORE_DB_PATH", DEFAULT_DB_PATH) or DEFAULT_DB_PATH)


def get_github_token() -> str | None:
    return get_str("GITHUB_TOKEN") or None


def get_dimension_weights_override() -> dict[str, float] | None:
    """
    Return DIMENSION_WEIGHTS parsed as a JSON object of dimension -> weight, or None.

    Example: DIMENSION_WEIGHTS='{"reliability": 0.4, "viability": 0.2, ...}'
    """
    raw = get_str("DIMENSION_WEIGHTS")
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"DIMENSION_WEIGHTS is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError("DIMENSION_WEIGHTS must be a JSON object")
    return {str(k): float(v) for k, v in parsed.items()}
