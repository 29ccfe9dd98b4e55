"""Wallet validation utilities."""

from __future__ import annotations

import re

from backend_agentscore.core.exceptions import InvalidWalletError

_EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_valid_wallet(w: str) -> bool:
    """Return True if w is a valid EVM address (0x + 40 hex chars)."""
    return bool(w) and _EVM_ADDRESS_RE.match(w.strip()) is not None


def normalize_wallet(w: str) -> str:
    """Return the lower-cased address; raise InvalidWalletError when malformed."""
    if not is_valid_wallet(w or ""):
        raise InvalidWalletError(f"Invalid wallet address: {w!r}")
    return w.strip().lower()


def topic_to_address(topic: str) -> str:
    """Extract the 20-byte address from a 32-byte indexed log topic."""
    return "0x" + topic[-40:].lower()
