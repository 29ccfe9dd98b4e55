"""
USDC transfer indexer: forward-only indexing of every Base USDC Transfer log.

One run_once() call indexes (last_indexed_block, tip]:

- first run (no cursor): start at the current tip, nothing is backfilled.
- cursor more than MAX_CATCHUP_BLOCKS behind the tip: skip to the tip.
- otherwise walk the gap with iterate_chunks; each chunk fetches Transfer logs
  and the chunk-start block header (timestamp anchor), inserts in micro-batches,
  refreshes stats for every wallet the chunk touched, then advances the cursor.

Block timestamps are interpolated from the anchor at 2s per block; when the
header is unavailable the Base genesis anchor is used instead.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.core.exceptions import RpcError
from backend_agentscore.database import Database, Transfer
from backend_agentscore.ingestion.chunked_fetcher import (
    block_to_iso_timestamp,
    checked_sub,
    iterate_chunks,
)
from backend_agentscore.ingestion.rpc_client import USDC_DECIMALS, BaseRpcClient
from backend_agentscore.ingestion.transfer_aggregator import TransferAggregator, affected_wallets
from backend_agentscore.utils.wallet_utils import topic_to_address

logger = get_logger(__name__)

STATE_KEY = "usdc_last_indexed_block"
# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
LOG_CHUNK_SIZE = 100
RATE_LIMIT_DELAY_MS = 200
# ~12 hours at 2s/block
MAX_CATCHUP_BLOCKS = 21_600
CATCHUP_THRESHOLD = 50
# Base mainnet block 1
GENESIS_ANCHOR_BLOCK = 1
GENESIS_ANCHOR_TS_MS = 1_677_177_203_000


@dataclass
class IndexerConfig:
    """Config for the USDC indexer."""

    usdc_address: str
    chunk_size: int = LOG_CHUNK_SIZE
    yield_ms: int = RATE_LIMIT_DELAY_MS
    max_catchup_blocks: int = MAX_CATCHUP_BLOCKS


def parse_transfer_log(log: dict[str, Any], anchor_block: int, anchor_ts_ms: int) -> Transfer | None:
    """Decode one Transfer log; None for removed or incomplete entries."""
    if log.get("removed"):
        return None
    topics = log.get("topics") or []
    tx_hash = log.get("transactionHash")
    block_hex = log.get("blockNumber")
    data = log.get("data")
    if len(topics) < 3 or not tx_hash or not block_hex or not data or data == "0x":
        return None
    block_number = int(block_hex, 16)
    value = int(data, 16)
    return Transfer(
        tx_hash=tx_hash.lower(),
        block_number=block_number,
        from_wallet=topic_to_address(topics[1]),
        to_wallet=topic_to_address(topics[2]),
        amount_usdc=value / 10**USDC_DECIMALS,
        timestamp=block_to_iso_timestamp(block_number, anchor_block, anchor_ts_ms),
    )


class UsdcTransferIndexer:
    """Incremental USDC indexer; one instance per process, driven by the scheduler."""

    def __init__(
        self,
        db: Database,
        rpc: BaseRpcClient,
        config: IndexerConfig,
        aggregator: TransferAggregator | None = None,
    ) -> None:
        self._db = db
        self._rpc = rpc
        self._config = config
        self._aggregator = aggregator or TransferAggregator(db)
        self.last_block_indexed: int | None = None

    def _load_cursor(self) -> int | None:
        raw = self._db.get_indexer_state(STATE_KEY)
        if raw is None or not raw.strip():
            return None
        return int(raw)

    def _save_cursor(self, block: int) -> None:
        self._db.set_indexer_state(STATE_KEY, str(block))
        self.last_block_indexed = block

    async def _chunk_anchor(self, start: int) -> tuple[int, int]:
        try:
            ts_ms = await self._rpc.get_block_timestamp_ms(start)
        except RpcError as e:
            logger.debug("usdc_anchor_block_unavailable", block=start, error=str(e)[:200])
            ts_ms = None
        if ts_ms is None:
            return GENESIS_ANCHOR_BLOCK, GENESIS_ANCHOR_TS_MS
        return start, ts_ms

    async def process_chunk(self, start: int, end: int) -> int:
        """Fetch, decode, insert and roll up one block range; advance the cursor."""
        logs, (anchor_block, anchor_ts_ms) = await asyncio.gather(
            self._rpc.get_logs(self._config.usdc_address, [TRANSFER_TOPIC], start, end),
            self._chunk_anchor(start),
        )
        transfers = [
            t for t in (parse_transfer_log(log, anchor_block, anchor_ts_ms) for log in logs) if t is not None
        ]
        inserted = 0
        if transfers:
            inserted = await self._aggregator.index_in_batches(transfers)
            await self._aggregator.refresh_stats_in_batches(affected_wallets(transfers))
        self._save_cursor(end)
        logger.debug(
            "usdc_chunk_indexed",
            from_block=start,
            to_block=end,
            logs=len(logs),
            inserted=inserted,
        )
        return inserted

    async def run_once(self) -> dict[str, Any]:
        """Index up to the current tip. Raises when a chunk fails at the minimum size."""
        tip = await self._rpc.block_number()
        cursor = self._load_cursor()

        if cursor is None:
            self._save_cursor(tip)
            logger.info("usdc_indexer_first_run", start_block=tip)
            return {"from_block": None, "to_block": tip, "inserted": 0, "skipped_to_tip": True}

        min_block = tip - self._config.max_catchup_blocks if tip > self._config.max_catchup_blocks else 0
        if cursor < min_block:
            self._save_cursor(tip)
            logger.warning("usdc_indexer_state_too_old", stored_block=cursor, tip=tip)
            return {"from_block": None, "to_block": tip, "inserted": 0, "skipped_to_tip": True}

        self.last_block_indexed = cursor
        if tip <= cursor:
            return {"from_block": None, "to_block": cursor, "inserted": 0, "skipped_to_tip": False}

        gap = checked_sub(tip, cursor)
        if gap > CATCHUP_THRESHOLD:
            logger.info("usdc_indexer_catching_up", blocks_behind=gap)

        inserted = await iterate_chunks(
            cursor + 1,
            tip,
            self._config.chunk_size,
            self._config.yield_ms,
            self.process_chunk,
        )
        if inserted:
            logger.info("usdc_indexer_run_done", from_block=cursor + 1, to_block=tip, inserted=inserted)
        return {"from_block": cursor + 1, "to_block": tip, "inserted": inserted, "skipped_to_tip": False}
