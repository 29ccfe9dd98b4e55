"""
Composite scorer: five dimensions, integrity multiplier, confidence, tier, recommendation.

    composite = round(sum(weight_d * score_d) * integrity_multiplier), clamped 0-100

Default weights: reliability 0.30, viability 0.25, identity 0.20, behavior 0.15,
capability 0.10. Weights are fixed per CompositeScorer instance, so a scoring
pass never mixes configurations. Confidence comes from data sufficiency only.
Each pass overwrites the cached score and appends a history row in one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Mapping

from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.analysis_engine.behavior import score_behavior
from backend_agentscore.analysis_engine.confidence import ConfidenceInputs, compute_confidence
from backend_agentscore.analysis_engine.dimensions import (
    DimensionScore,
    ViabilityInputs,
    clamp_score,
    score_capability,
    score_identity,
    score_reliability,
    score_viability,
    wallet_age_days,
)
from backend_agentscore.analysis_engine.gaming import GamingResult, detect_gaming
from backend_agentscore.analysis_engine.integrity import compute_integrity_multiplier
from backend_agentscore.analysis_engine.recommendation import determine_recommendation
from backend_agentscore.analysis_engine.sybil import SybilResult, detect_sybil
from backend_agentscore.core.exceptions import RpcError
from backend_agentscore.database import CompositeScoreRecord, Database
from backend_agentscore.database.database import DEFAULT_HISTORY_KEEP
from backend_agentscore.ingestion.rpc_client import BaseRpcClient
from backend_agentscore.utils.time_utils import to_iso, utc_now
from backend_agentscore.utils.wallet_utils import normalize_wallet

logger = get_logger(__name__)

MODEL_VERSION = "2.0.0"
SCORE_TTL = timedelta(hours=1)
BEHAVIOR_TIMESTAMP_LIMIT = 1000

DIMENSIONS = ("reliability", "viability", "identity", "behavior", "capability")
DIMENSION_WEIGHTS: Mapping[str, float] = {
    "reliability": 0.30,
    "viability": 0.25,
    "identity": 0.20,
    "behavior": 0.15,
    "capability": 0.10,
}


class Tier(str, Enum):
    ELITE = "Elite"
    TRUSTED = "Trusted"
    ESTABLISHED = "Established"
    EMERGING = "Emerging"
    UNVERIFIED = "Unverified"


def score_to_tier(score: int) -> Tier:
    if score >= 90:
        return Tier.ELITE
    if score >= 75:
        return Tier.TRUSTED
    if score >= 50:
        return Tier.ESTABLISHED
    if score >= 25:
        return Tier.EMERGING
    return Tier.UNVERIFIED


def validate_weights(weights: Mapping[str, float]) -> dict[str, float]:
    """Check every dimension has a non-negative weight; normalize so weights sum to 1."""
    missing = [d for d in DIMENSIONS if d not in weights]
    unknown = [k for k in weights if k not in DIMENSIONS]
    if missing or unknown:
        raise ValueError(f"dimension weights mismatch: missing={missing} unknown={unknown}")
    if any(weights[d] < 0 for d in DIMENSIONS):
        raise ValueError("dimension weights must be non-negative")
    total = sum(weights[d] for d in DIMENSIONS)
    if total <= 0:
        raise ValueError("dimension weights must not all be zero")
    return {d: weights[d] / total for d in DIMENSIONS}


def combine_dimensions(
    dimensions: Mapping[str, DimensionScore],
    weights: Mapping[str, float],
    integrity_multiplier: float,
) -> int:
    raw = sum(weights[d] * dimensions[d].score for d in DIMENSIONS)
    return clamp_score(raw * integrity_multiplier)


@dataclass
class ChainSnapshot:
    """Live on-chain inputs; zeros when no RPC reader is configured or the call failed."""

    nonce: int = 0
    eth_balance: float = 0.0
    usdc_balance: float = 0.0


class CompositeScorer:
    """Scores one wallet at a time from the local store plus optional live chain reads."""

    def __init__(
        self,
        db: Database,
        *,
        chain: BaseRpcClient | None = None,
        usdc_address: str | None = None,
        weights: Mapping[str, float] | None = None,
        history_keep: int = DEFAULT_HISTORY_KEEP,
    ) -> None:
        self._db = db
        self._chain = chain
        self._usdc_address = usdc_address
        self._weights = validate_weights(weights or DIMENSION_WEIGHTS)
        self._history_keep = history_keep

    @property
    def weights(self) -> dict[str, float]:
        return dict(self._weights)

    async def _chain_snapshot(self, wallet: str) -> ChainSnapshot:
        if self._chain is None:
            return ChainSnapshot()
        try:
            nonce = await self._chain.get_transaction_count(wallet)
            eth = await self._chain.get_eth_balance(wallet)
            usdc = await self._chain.get_usdc_balance(wallet, self._usdc_address) if self._usdc_address else 0.0
        except RpcError as e:
            logger.warning("score_chain_snapshot_failed", wallet_id=wallet, error=str(e)[:200])
            return ChainSnapshot()
        return ChainSnapshot(nonce=nonce, eth_balance=eth, usdc_balance=usdc)

    async def score_wallet(
        self,
        wallet: str,
        *,
        now: datetime | None = None,
        sybil: SybilResult | None = None,
        gaming: GamingResult | None = None,
    ) -> CompositeScoreRecord:
        """Compute, persist and return the composite score for wallet."""
        w = normalize_wallet(wallet)
        now = now or utc_now()
        stats = self._db.get_wallet_stats(w)
        age_days = wallet_age_days(stats, now)
        chain = await self._chain_snapshot(w)

        inflows_30d, outflows_30d = self._db.get_period_flows(w, to_iso(now - timedelta(days=30)))
        inflows_7d, outflows_7d = self._db.get_period_flows(w, to_iso(now - timedelta(days=7)))
        viability_inputs = ViabilityInputs(
            usdc_balance=chain.usdc_balance,
            eth_balance=chain.eth_balance,
            inflows_30d=inflows_30d,
            outflows_30d=outflows_30d,
            inflows_7d=inflows_7d,
            outflows_7d=outflows_7d,
            total_volume_out=stats.total_volume_out if stats else 0.0,
        )

        dimensions = {
            "reliability": score_reliability(stats, chain.nonce, now),
            "viability": score_viability(viability_inputs, age_days),
            "identity": score_identity(self._db.get_agent_registration(w), age_days, now),
            "behavior": score_behavior(self._db.get_transfer_timestamps(w, limit=BEHAVIOR_TIMESTAMP_LIMIT)),
            "capability": score_capability(stats),
        }

        sybil = sybil if sybil is not None else detect_sybil(self._db, w)
        gaming = gaming if gaming is not None else detect_gaming(self._db, w, now)
        fraud_reports = self._db.count_fraud_reports(w)
        multiplier = compute_integrity_multiplier(sybil.indicators, gaming.indicators, fraud_reports)
        composite = combine_dimensions(dimensions, self._weights, multiplier)

        confidence = compute_confidence(
            ConfidenceInputs(
                tx_count=stats.total_tx_count if stats else 0,
                wallet_age_days=age_days or 0.0,
                unique_partners=stats.unique_partners if stats else 0,
                prior_query_count=self._db.count_queries_for_target(w),
            )
        )
        recommendation = determine_recommendation(
            composite, confidence, sybil.sybil_flag, gaming.gaming_detected
        )

        record = CompositeScoreRecord(
            wallet=w,
            composite_score=composite,
            confidence=confidence,
            model_version=MODEL_VERSION,
            calculated_at=to_iso(now),
            expires_at=to_iso(now + SCORE_TTL),
            integrity_multiplier=multiplier,
            tier=score_to_tier(composite).value,
            recommendation=recommendation.value,
            dimensions={name: dim.to_dict() for name, dim in dimensions.items()},
            sybil_flag=sybil.sybil_flag,
            sybil_indicators=sorted(getattr(i, "value", i) for i in sybil.indicators),
            gaming_indicators=sorted(getattr(i, "value", i) for i in gaming.indicators),
        )
        self._db.save_composite_score(record, history_keep=self._history_keep)
        logger.info(
            "wallet_scored",
            wallet_id=w,
            score=composite,
            confidence=confidence,
            integrity_multiplier=multiplier,
            recommendation=record.recommendation,
            sybil_indicators=record.sybil_indicators,
            gaming_indicators=record.gaming_indicators,
        )
        return record
