"""
Recommendation engine: one actionable label from score, confidence and integrity flags.

Strict priority order, first match wins:
    1. flagged_for_review    sybil flag or gaming detected
    2. insufficient_history  confidence < 0.3
    3. high_risk             score < 25
    4. proceed               score >= 50 and confidence >= 0.5
    5. proceed_with_caution  everything else
"""

from __future__ import annotations

from enum import Enum


class Recommendation(str, Enum):
    PROCEED = "proceed"
    PROCEED_WITH_CAUTION = "proceed_with_caution"
    INSUFFICIENT_HISTORY = "insufficient_history"
    HIGH_RISK = "high_risk"
    FLAGGED_FOR_REVIEW = "flagged_for_review"


def determine_recommendation(
    score: float,
    confidence: float,
    sybil_flag: bool,
    gaming_detected: bool,
) -> Recommendation:
    if sybil_flag or gaming_detected:
        return Recommendation.FLAGGED_FOR_REVIEW
    if confidence < 0.3:
        return Recommendation.INSUFFICIENT_HISTORY
    if score < 25:
        return Recommendation.HIGH_RISK
    if score >= 50 and confidence >= 0.5:
        return Recommendation.PROCEED
    return Recommendation.PROCEED_WITH_CAUTION
