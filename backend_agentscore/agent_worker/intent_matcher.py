"""
Intent signal matcher: did a paid score lookup lead to an on-chain payment?

One pass per call. For each paid query (requester and target both known, no
signal yet for the exact (requester, target, timestamp) triple), oldest first:

- earliest transfer between the pair, either direction, strictly inside
  (query, query + 24h): followed_by_tx=True with tx hash, timestamp, delay
- no match and the query is older than 24h: followed_by_tx=False, window closed
- no match yet and the window is still open: nothing written, retried next pass

All signals from a pass are inserted in one transaction. Candidates are
read from a lookback (default 48h) longer than the observation window so
queries whose window closed since the previous pass still get labelled.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.database import Database, IntentSignal, QueryLogEntry
from backend_agentscore.utils.time_utils import from_iso, to_iso, utc_now

logger = get_logger(__name__)


@dataclass
class IntentMatcherConfig:
    window_hours: float = 24.0
    lookback_hours: float = 48.0
    batch_limit: int = 5000
    yield_every: int = 25
    yield_ms: int = 10


def _label_query(
    db: Database, query: QueryLogEntry, now: datetime, window: timedelta
) -> IntentSignal | None:
    """Signal for one paid query, or None while its window is still open."""
    query_at = from_iso(query.timestamp)
    tx = db.find_first_transfer_between(
        query.requester_wallet,
        query.target_wallet,
        query.timestamp,
        to_iso(query_at + window),
    )
    if tx is not None:
        return IntentSignal(
            requester_wallet=query.requester_wallet,
            target_wallet=query.target_wallet,
            query_timestamp=query.timestamp,
            followed_by_tx=True,
            tx_hash=tx.tx_hash,
            tx_timestamp=tx.timestamp,
            time_to_tx_ms=round((from_iso(tx.timestamp) - query_at).total_seconds() * 1000),
        )
    if query_at < now - window:
        return IntentSignal(
            requester_wallet=query.requester_wallet,
            target_wallet=query.target_wallet,
            query_timestamp=query.timestamp,
            followed_by_tx=False,
        )
    return None


async def run_intent_matcher(
    db: Database,
    *,
    now: datetime | None = None,
    config: IntentMatcherConfig | None = None,
) -> dict[str, Any]:
    cfg = config or IntentMatcherConfig()
    now = now or utc_now()
    window = timedelta(hours=cfg.window_hours)
    candidates = db.get_intent_candidates(to_iso(now - timedelta(hours=cfg.lookback_hours)), limit=cfg.batch_limit)

    signals: list[IntentSignal] = []
    matched = 0
    closed = 0
    pending = 0
    failed = 0
    for i, query in enumerate(candidates, start=1):
        try:
            signal = _label_query(db, query, now, window)
        except ValueError as e:
            logger.warning(
                "intent_matcher_query_failed",
                query_id=query.id,
                query_timestamp=query.timestamp,
                error=str(e)[:200],
            )
            failed += 1
            signal = None
        else:
            if signal is None:
                pending += 1
            elif signal.followed_by_tx:
                matched += 1
            else:
                closed += 1
        if signal is not None:
            signals.append(signal)

        if i % cfg.yield_every == 0:
            await asyncio.sleep(cfg.yield_ms / 1000.0)

    inserted = db.insert_intent_signals(signals)
    if candidates:
        logger.info(
            "intent_matcher_pass_done",
            candidates=len(candidates),
            matched=matched,
            closed_without_tx=closed,
            pending=pending,
            failed=failed,
            inserted=inserted,
        )
    return {
        "queries_processed": len(candidates),
        "matched": matched,
        "closed_without_tx": closed,
        "pending": pending,
        "failed": failed,
        "inserted": inserted,
    }
