"""
Tests for the recommendation priority chain.
"""

from __future__ import annotations

from backend_agentscore.analysis_engine.recommendation import Recommendation, determine_recommendation


def test_sybil_flag_dominates_everything():
    """A perfect score with full confidence is still flagged when sybil is set."""
    assert determine_recommendation(100, 1.0, True, False) is Recommendation.FLAGGED_FOR_REVIEW


def test_gaming_dominates_low_confidence():
    assert determine_recommendation(10, 0.0, False, True) is Recommendation.FLAGGED_FOR_REVIEW


def test_low_confidence_before_high_risk():
    assert determine_recommendation(5, 0.29, False, False) is Recommendation.INSUFFICIENT_HISTORY


def test_high_risk_below_25():
    assert determine_recommendation(24, 0.9, False, False) is Recommendation.HIGH_RISK


def test_proceed_requires_score_and_confidence():
    assert determine_recommendation(50, 0.5, False, False) is Recommendation.PROCEED
    assert determine_recommendation(50, 0.49, False, False) is Recommendation.PROCEED_WITH_CAUTION
    assert determine_recommendation(49, 0.9, False, False) is Recommendation.PROCEED_WITH_CAUTION


def test_boundary_confidence_0_3_is_not_insufficient():
    assert determine_recommendation(30, 0.3, False, False) is Recommendation.PROCEED_WITH_CAUTION


def test_values_are_wire_strings():
    assert Recommendation.PROCEED_WITH_CAUTION.value == "proceed_with_caution"
    assert Recommendation.FLAGGED_FOR_REVIEW == "flagged_for_review"
