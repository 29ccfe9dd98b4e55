"""
Transfer persistence and per-wallet rollups.

index_batch is idempotent on tx_hash: re-submitting a known transfer adds
nothing. refresh_stats always recomputes each requested wallet from the full
transfer set and replaces its row; there is no incremental update path.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Iterable, Sequence

from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.database import Database, Transfer
from backend_agentscore.utils.time_utils import to_iso, utc_now

logger = get_logger(__name__)

MICRO_BATCH_SIZE = 200
EVENT_LOOP_YIELD_MS = 10


class TransferAggregator:
    """Writes transfers and recomputes WalletTransferStats for the wallets they touch."""

    def __init__(
        self,
        db: Database,
        *,
        micro_batch_size: int = MICRO_BATCH_SIZE,
        yield_ms: int = EVENT_LOOP_YIELD_MS,
    ) -> None:
        self._db = db
        self._micro_batch_size = max(1, micro_batch_size)
        self._yield_sec = max(0, yield_ms) / 1000.0

    def index_batch(self, transfers: Sequence[Transfer]) -> int:
        """Insert transfers in one transaction; returns how many were new."""
        inserted = self._db.insert_transfers(transfers)
        if transfers:
            logger.debug("transfers_indexed", submitted=len(transfers), inserted=inserted)
        return inserted

    async def index_in_batches(self, transfers: Sequence[Transfer]) -> int:
        """index_batch in micro-batches, yielding to the event loop between them."""
        inserted = 0
        for i in range(0, len(transfers), self._micro_batch_size):
            inserted += self.index_batch(transfers[i : i + self._micro_batch_size])
            if i + self._micro_batch_size < len(transfers):
                await asyncio.sleep(self._yield_sec)
        return inserted

    def refresh_stats(self, wallets: Iterable[str], *, now: datetime | None = None) -> int:
        """Full recompute of stats for exactly these wallets. Returns rows written."""
        unique = list(dict.fromkeys(w.lower() for w in wallets if w))
        if not unique:
            return 0
        written = self._db.refresh_wallet_stats(unique, to_iso(now or utc_now()))
        logger.debug("wallet_stats_refreshed", wallets=len(unique), written=written)
        return written

    async def refresh_stats_in_batches(
        self, wallets: Iterable[str], *, now: datetime | None = None
    ) -> int:
        """refresh_stats in micro-batches with cooperative yields; each wallet refreshed once."""
        unique = list(dict.fromkeys(w.lower() for w in wallets if w))
        written = 0
        for i in range(0, len(unique), self._micro_batch_size):
            written += self.refresh_stats(unique[i : i + self._micro_batch_size], now=now)
            if i + self._micro_batch_size < len(unique):
                await asyncio.sleep(self._yield_sec)
        return written


def affected_wallets(transfers: Iterable[Transfer]) -> list[str]:
    """Distinct lower-cased wallets on either side of the transfers, first-seen order."""
    seen: dict[str, None] = {}
    for t in transfers:
        seen.setdefault(t.from_wallet.lower(), None)
        seen.setdefault(t.to_wallet.lower(), None)
    return list(seen)
