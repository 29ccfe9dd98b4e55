"""
Async JSON-RPC client for Base (EVM) over httpx.

Every call is bounded by a per-request timeout. Provider error objects,
non-2xx responses and transport failures raise RpcError (timeouts raise
RpcTimeoutError); callers treat all of them as transient. The provider's
error message and data are joined into RpcError.details so range hints
("retry with the range 100-149") stay visible to the chunked fetcher.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from typing import Any

import httpx

from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.core.exceptions import RpcError, RpcTimeoutError

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 10.0
USDC_DECIMALS = 6
WEI_PER_ETH = 10**18
# keccak256("balanceOf(address)")[:4]
BALANCE_OF_SELECTOR = "0x70a08231"

_request_ids = itertools.count(1)


class _RateLimiter:
    """Simple spacing limiter: min interval between acquires."""

    def __init__(self, rate_per_sec: float) -> None:
        self._interval = 1.0 / rate_per_sec if rate_per_sec > 0 else 0.0
        self._last_acquire = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        if self._interval <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_acquire
            if elapsed < self._interval:
                await asyncio.sleep(self._interval - elapsed)
            self._last_acquire = time.monotonic()


def _format_error(err: Any) -> tuple[str, int | None, str]:
    """Return (message, code, details) for a JSON-RPC error object."""
    if not isinstance(err, dict):
        text = str(err)
        return text, None, text
    message = str(err.get("message", err))
    code = err.get("code")
    data = err.get("data")
    details = message if data is None else f"{message} {data}"
    return message, code if isinstance(code, int) else None, details


class BaseRpcClient:
    """
    Minimal Base JSON-RPC client for the indexer and viability/reliability inputs.

    Pass an httpx.AsyncClient to share a connection pool (or a MockTransport in tests);
    otherwise one is created lazily and closed by aclose().
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        rate_per_sec: float = 0.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._timeout_sec = timeout_sec
        self._client = client
        self._owns_client = client is None
        self._limiter = _RateLimiter(rate_per_sec)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_sec))
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BaseRpcClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def call(self, method: str, params: list[Any]) -> Any:
        """POST one JSON-RPC request; return its result or raise RpcError."""
        await self._limiter.acquire()
        body = {"jsonrpc": "2.0", "id": next(_request_ids), "method": method, "params": params}
        try:
            resp = await self._get_client().post(self._rpc_url, json=body, timeout=self._timeout_sec)
        except httpx.TimeoutException as e:
            raise RpcTimeoutError(f"{method} timed out after {self._timeout_sec}s", details=str(e)) from e
        except httpx.HTTPError as e:
            raise RpcError(f"{method} transport error: {e}", details=str(e)) from e
        if resp.status_code >= 400:
            raise RpcError(
                f"{method} HTTP {resp.status_code}",
                code=resp.status_code,
                details=resp.text[:500],
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise RpcError(f"{method} returned non-JSON body", details=resp.text[:500]) from e
        if isinstance(data, dict) and data.get("error") is not None:
            message, code, details = _format_error(data["error"])
            raise RpcError(f"{method}: {message}", code=code, details=details, data=data["error"])
        return data.get("result") if isinstance(data, dict) else None

    async def block_number(self) -> int:
        return int(await self.call("eth_blockNumber", []), 16)

    async def get_logs(
        self,
        address: str,
        topics: list[str | None],
        from_block: int,
        to_block: int,
    ) -> list[dict[str, Any]]:
        result = await self.call(
            "eth_getLogs",
            [{"address": address, "topics": topics, "fromBlock": hex(from_block), "toBlock": hex(to_block)}],
        )
        return list(result or [])

    async def get_block(self, number: int) -> dict[str, Any] | None:
        """Return the block header (without transactions), or None when unknown."""
        return await self.call("eth_getBlockByNumber", [hex(number), False])

    async def get_block_timestamp_ms(self, number: int) -> int | None:
        block = await self.get_block(number)
        if not block or not block.get("timestamp"):
            return None
        return int(block["timestamp"], 16) * 1000

    async def get_eth_balance(self, wallet: str) -> float:
        wei = int(await self.call("eth_getBalance", [wallet, "latest"]), 16)
        return wei / WEI_PER_ETH

    async def get_transaction_count(self, wallet: str) -> int:
        return int(await self.call("eth_getTransactionCount", [wallet, "latest"]), 16)

    async def get_usdc_balance(self, wallet: str, usdc_address: str) -> float:
        data = BALANCE_OF_SELECTOR + wallet.lower().removeprefix("0x").rjust(64, "0")
        raw = await self.call("eth_call", [{"to": usdc_address, "data": data}, "latest"])
        if not raw or raw == "0x":
            return 0.0
        return int(raw, 16) / 10**USDC_DECIMALS
