"""
Integrity multiplier: sybil indicators, gaming indicators and fraud reports
folded into one multiplicative trust modifier in [0.10, 1.0].

    multiplier = prod(sybil factors) * prod(gaming factors) * 0.9 ** fraud_reports

Indicators are sets, so a repeated indicator applies once. Indicator strings
outside the known vocabulary take a default factor (0.80 sybil, 0.85 gaming)
instead of failing the scoring pass. The product is rounded to 3 decimals and
floored at 0.10.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Mapping, TypeVar

from backend_agentscore.agentscore_logging import get_logger

logger = get_logger(__name__)

DEFAULT_SYBIL_FACTOR = 0.80
DEFAULT_GAMING_FACTOR = 0.85
FRAUD_REPORT_DECAY = 0.90
MULTIPLIER_FLOOR = 0.10


class SybilIndicator(str, Enum):
    SELF_FUNDING_LOOP = "self_funding_loop"
    COORDINATED_CREATION = "coordinated_creation"
    SINGLE_SOURCE_FUNDING = "single_source_funding"
    ZERO_ORGANIC_ACTIVITY = "zero_organic_activity"
    VELOCITY_ANOMALY = "velocity_anomaly"
    FAN_OUT_FUNDING = "fan_out_funding"
    CLOSED_LOOP_TRADING = "closed_loop_trading"
    SYMMETRIC_TRANSACTIONS = "symmetric_transactions"
    SINGLE_PARTNER = "single_partner"
    VOLUME_WITHOUT_DIVERSITY = "volume_without_diversity"
    FUNDED_BY_TOP_PARTNER = "funded_by_top_partner"
    TIGHT_CLUSTER = "tight_cluster"


class GamingIndicator(str, Enum):
    BALANCE_WINDOW_DRESSING = "balance_window_dressing"
    BURST_AND_STOP = "burst_and_stop"
    NONCE_INFLATION = "nonce_inflation"
    ARTIFICIAL_PARTNER_DIVERSITY = "artificial_partner_diversity"
    REVENUE_RECYCLING = "revenue_recycling"
    VELOCITY_SPIKE = "velocity_spike"
    DEPOSIT_AND_SCORE = "deposit_and_score"
    WASH_TRADING = "wash_trading"


SYBIL_FACTORS: Mapping[SybilIndicator, float] = {
    SybilIndicator.SELF_FUNDING_LOOP: 0.60,
    SybilIndicator.COORDINATED_CREATION: 0.65,
    SybilIndicator.SINGLE_SOURCE_FUNDING: 0.75,
    SybilIndicator.ZERO_ORGANIC_ACTIVITY: 0.70,
    SybilIndicator.VELOCITY_ANOMALY: 0.80,
    SybilIndicator.FAN_OUT_FUNDING: 0.60,
    SybilIndicator.CLOSED_LOOP_TRADING: 0.55,
    SybilIndicator.SYMMETRIC_TRANSACTIONS: 0.60,
    SybilIndicator.SINGLE_PARTNER: 0.75,
    SybilIndicator.VOLUME_WITHOUT_DIVERSITY: 0.80,
    SybilIndicator.FUNDED_BY_TOP_PARTNER: 0.60,
    SybilIndicator.TIGHT_CLUSTER: 0.55,
}

GAMING_FACTORS: Mapping[GamingIndicator, float] = {
    GamingIndicator.BALANCE_WINDOW_DRESSING: 0.85,
    GamingIndicator.BURST_AND_STOP: 0.80,
    GamingIndicator.NONCE_INFLATION: 0.75,
    GamingIndicator.ARTIFICIAL_PARTNER_DIVERSITY: 0.70,
    GamingIndicator.REVENUE_RECYCLING: 0.80,
    GamingIndicator.VELOCITY_SPIKE: 0.80,
    GamingIndicator.DEPOSIT_AND_SCORE: 0.85,
    GamingIndicator.WASH_TRADING: 0.50,
}

E = TypeVar("E", SybilIndicator, GamingIndicator)


def _factor(
    indicator: str,
    enum_cls: type[E],
    factors: Mapping[E, float],
    default: float,
) -> float:
    try:
        return factors[enum_cls(indicator)]
    except ValueError:
        # newer detector output; keep scoring with the conservative default
        logger.debug("integrity_unknown_indicator", indicator=str(indicator), default=default)
        return default


def _as_strings(indicators: Iterable[str]) -> set[str]:
    return {i.value if isinstance(i, Enum) else str(i) for i in indicators}


def compute_integrity_multiplier(
    sybil_indicators: Iterable[SybilIndicator | str],
    gaming_indicators: Iterable[GamingIndicator | str],
    fraud_report_count: int,
) -> float:
    """Return the trust multiplier in [0.10, 1.0] for one scoring pass."""
    multiplier = 1.0
    for ind in sorted(_as_strings(sybil_indicators)):
        multiplier *= _factor(ind, SybilIndicator, SYBIL_FACTORS, DEFAULT_SYBIL_FACTOR)
    for ind in sorted(_as_strings(gaming_indicators)):
        multiplier *= _factor(ind, GamingIndicator, GAMING_FACTORS, DEFAULT_GAMING_FACTOR)
    if fraud_report_count > 0:
        multiplier *= FRAUD_REPORT_DECAY**fraud_report_count
    return max(MULTIPLIER_FLOOR, round(multiplier, 3))
