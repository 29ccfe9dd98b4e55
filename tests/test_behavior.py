"""
Tests for the behavior dimension (timing fingerprint).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from backend_agentscore.analysis_engine.behavior import (
    BehaviorClassification,
    _clamped_points,
    classify,
    hourly_entropy,
    score_behavior,
)
from backend_agentscore.utils.time_utils import to_iso

BASE = datetime(2025, 5, 1, 0, 0, 0, tzinfo=timezone.utc)


def _at(day: int, hour: int) -> str:
    return to_iso(BASE + timedelta(days=day, hours=hour))


def test_fewer_than_five_is_neutral():
    result = score_behavior([_at(0, h) for h in range(4)])
    assert result.score == 50
    assert result.data["classification"] == BehaviorClassification.INSUFFICIENT_DATA.value
    assert result.data["tx_count"] == 4


def test_clockwork_bot_scores_suspicious():
    """Transfers every 60s inside one hour: no variance, no spread, no gaps."""
    stamps = [to_iso(BASE + timedelta(seconds=60 * i)) for i in range(24)]
    result = score_behavior(stamps)
    assert result.score == 0
    assert result.data["classification"] == "suspicious"
    assert result.data["inter_arrival_cv"] == 0


def test_irregular_human_pattern_scores_organic():
    """Eight distinct hours, irregular gaps, a 55h pause."""
    stamps = [_at(0, 1), _at(0, 7), _at(1, 3), _at(1, 20), _at(3, 11), _at(4, 15), _at(6, 22), _at(7, 5)]
    result = score_behavior(stamps)
    assert result.data["hourly_entropy"] == 3.0
    assert result.data["max_gap_hours"] == 55.0
    assert result.score >= 70
    assert result.data["classification"] == "organic"


def test_input_order_does_not_matter():
    stamps = [_at(0, 1), _at(0, 7), _at(1, 3), _at(1, 20), _at(3, 11)]
    assert score_behavior(stamps).score == score_behavior(list(reversed(stamps))).score


def test_hourly_entropy_bounds():
    assert hourly_entropy([]) == 0.0
    assert hourly_entropy([5, 5, 5]) == 0.0
    assert abs(hourly_entropy(list(range(24))) - 4.585) < 0.001


def test_classify_thresholds():
    assert classify(70) is BehaviorClassification.ORGANIC
    assert classify(45) is BehaviorClassification.MIXED
    assert classify(25) is BehaviorClassification.AUTOMATED
    assert classify(24) is BehaviorClassification.SUSPICIOUS


def test_signal_points_round_half_up():
    """A signal sitting exactly on a half point rounds up, as 2.5 -> 3."""
    assert _clamped_points(1.0, 0.0, 4.0, 10) == 3
    assert _clamped_points(3.0, 0.0, 4.0, 10) == 8
    assert _clamped_points(-1.0, 0.0, 4.0, 10) == 0
