"""
Behavior dimension: timing fingerprint of a wallet's transfers.

Three signals (100 points):
- inter-arrival coefficient of variation, 35 pts: CV 0.1 (clockwork) -> 0, CV 1.5+ -> 35
- UTC hour-of-day Shannon entropy, 35 pts: 1.0 bits -> 0, 3.5+ bits -> 35
- longest gap between transfers, 30 pts: 1h -> 0, 48h+ -> 30

Score >= 70 organic, >= 45 mixed, >= 25 automated, else suspicious.
Fewer than 5 timestamps returns a neutral 50 with insufficient_data.
"""

from __future__ import annotations

import math
from enum import Enum
from statistics import fmean, pstdev
from typing import Sequence

from backend_agentscore.analysis_engine.dimensions import DimensionScore, round_half_up
from backend_agentscore.utils.time_utils import from_iso

MIN_TIMESTAMPS = 5
NEUTRAL_SCORE = 50


class BehaviorClassification(str, Enum):
    ORGANIC = "organic"
    MIXED = "mixed"
    AUTOMATED = "automated"
    SUSPICIOUS = "suspicious"
    INSUFFICIENT_DATA = "insufficient_data"


def classify(score: int) -> BehaviorClassification:
    if score >= 70:
        return BehaviorClassification.ORGANIC
    if score >= 45:
        return BehaviorClassification.MIXED
    if score >= 25:
        return BehaviorClassification.AUTOMATED
    return BehaviorClassification.SUSPICIOUS


def _clamped_points(value: float, low: float, span: float, max_pts: int) -> int:
    return round_half_up(min(max_pts, max(0.0, (value - low) / span * max_pts)))


def hourly_entropy(hours: Sequence[int]) -> float:
    """Shannon entropy (bits) of the hour-of-day distribution."""
    total = len(hours)
    if total == 0:
        return 0.0
    buckets = [0] * 24
    for h in hours:
        buckets[h] += 1
    entropy = 0.0
    for count in buckets:
        if count:
            p = count / total
            entropy -= p * math.log2(p)
    return entropy


def score_behavior(timestamps: Sequence[str]) -> DimensionScore:
    if len(timestamps) < MIN_TIMESTAMPS:
        return DimensionScore(
            score=NEUTRAL_SCORE,
            data={
                "inter_arrival_cv": 0,
                "hourly_entropy": 0,
                "max_gap_hours": 0,
                "classification": BehaviorClassification.INSUFFICIENT_DATA.value,
                "tx_count": len(timestamps),
            },
        )

    moments = sorted(from_iso(t) for t in timestamps)
    gaps = [(b - a).total_seconds() for a, b in zip(moments, moments[1:])]
    mean_gap = fmean(gaps)
    cv = pstdev(gaps) / mean_gap if mean_gap > 0 else 0.0
    entropy = hourly_entropy([m.hour for m in moments])
    max_gap_hours = max(gaps) / 3600.0

    cv_pts = _clamped_points(cv, 0.1, 1.4, 35)
    entropy_pts = _clamped_points(entropy, 1.0, 2.5, 35)
    gap_pts = _clamped_points(max_gap_hours, 1.0, 47.0, 30)
    score = cv_pts + entropy_pts + gap_pts

    return DimensionScore(
        score=score,
        data={
            "inter_arrival_cv": round(cv, 2),
            "hourly_entropy": round(entropy, 2),
            "max_gap_hours": round(max_gap_hours, 1),
            "classification": classify(score).value,
            "tx_count": len(timestamps),
            "signals": {"inter_arrival_cv": cv_pts, "hourly_entropy": entropy_pts, "max_gap_hours": gap_pts},
        },
    )
