"""
Score refresh: rescore wallets whose cached score expired or predates their latest stats.

Runs hourly in batches; one wallet failing is logged and does not stop the batch.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any

from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.analysis_engine.scorer import CompositeScorer
from backend_agentscore.database import Database
from backend_agentscore.utils.time_utils import to_iso, utc_now

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 50
YIELD_MS = 10


async def run_score_refresh(
    db: Database,
    scorer: CompositeScorer,
    *,
    now: datetime | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> dict[str, Any]:
    now = now or utc_now()
    wallets = db.get_wallets_needing_rescore(to_iso(now), limit=batch_size)
    refreshed = 0
    failed = 0
    for wallet in wallets:
        try:
            await scorer.score_wallet(wallet, now=now)
            refreshed += 1
        except Exception as e:
            failed += 1
            logger.warning("score_refresh_wallet_failed", wallet_id=wallet, error=str(e)[:200])
        await asyncio.sleep(YIELD_MS / 1000.0)
    return {"candidates": len(wallets), "wallets_refreshed": refreshed, "failed": failed}
