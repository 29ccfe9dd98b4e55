"""
Application-level exceptions.

RpcError and RpcTimeoutError are transient provider failures: the chunked
fetcher absorbs them by shrinking the block range. InvalidWalletError is a
malformed-input failure rejected locally.
"""

from __future__ import annotations

from typing import Any


class AgentScoreError(Exception):
    """Base class for AgentScore errors."""


class RpcError(AgentScoreError):
    """JSON-RPC call failed (error object, HTTP status or transport failure)."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        details: str | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details
        """Provider error text (message plus data), searched for range hints."""
        self.data = data


class RpcTimeoutError(RpcError):
    """A single RPC call exceeded its timeout."""


class InvalidWalletError(AgentScoreError, ValueError):
    """Wallet address is not a 0x-prefixed 20-byte hex string."""
