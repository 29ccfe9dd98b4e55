"""
Confidence: how much data backs a score, 0.0-1.0, independent of integrity penalties.

Each signal maps to 0.0-1.0, then a weighted sum is clamped and rounded to 2 dp:
    tx count       30%   0 -> 0.0, 5 -> 0.3, 20 -> 0.6, 100+ -> 1.0
    wallet age     30%   <1d -> 0.0, 7d -> 0.4, 30d -> 0.7, 90d+ -> 1.0
    partners       20%   0 -> 0.0, 3 -> 0.3, 10 -> 0.6, 30+ -> 1.0
    prior queries  20%   0 -> 0.0, 1-9 -> 0.5, 10+ -> 1.0
"""

from __future__ import annotations

from dataclasses import dataclass

CONFIDENCE_WEIGHTS = {
    "tx_count": 0.30,
    "wallet_age": 0.30,
    "unique_partners": 0.20,
    "prior_queries": 0.20,
}


@dataclass
class ConfidenceInputs:
    tx_count: int = 0
    wallet_age_days: float = 0.0
    unique_partners: int = 0
    prior_query_count: int = 0


def _tx_signal(n: int) -> float:
    if n <= 0:
        return 0.0
    if n < 5:
        return 0.1 + (n / 5) * 0.2
    if n < 20:
        return 0.3 + ((n - 5) / 15) * 0.3
    if n < 100:
        return 0.6 + ((n - 20) / 80) * 0.4
    return 1.0


def _age_signal(days: float) -> float:
    if days < 1:
        return 0.0
    if days < 7:
        return (days / 7) * 0.4
    if days < 30:
        return 0.4 + ((days - 7) / 23) * 0.3
    if days < 90:
        return 0.7 + ((days - 30) / 60) * 0.3
    return 1.0


def _partner_signal(p: int) -> float:
    if p <= 0:
        return 0.0
    if p < 3:
        return (p / 3) * 0.3
    if p < 10:
        return 0.3 + ((p - 3) / 7) * 0.3
    if p < 30:
        return 0.6 + ((p - 10) / 20) * 0.4
    return 1.0


def _query_signal(q: int) -> float:
    if q <= 0:
        return 0.0
    return 0.5 if q < 10 else 1.0


def compute_confidence(inputs: ConfidenceInputs) -> float:
    value = (
        _tx_signal(inputs.tx_count) * CONFIDENCE_WEIGHTS["tx_count"]
        + _age_signal(inputs.wallet_age_days) * CONFIDENCE_WEIGHTS["wallet_age"]
        + _partner_signal(inputs.unique_partners) * CONFIDENCE_WEIGHTS["unique_partners"]
        + _query_signal(inputs.prior_query_count) * CONFIDENCE_WEIGHTS["prior_queries"]
    )
    return round(min(1.0, max(0.0, value)), 2)
