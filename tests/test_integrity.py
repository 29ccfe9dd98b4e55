"""
Tests for the integrity multiplier: indicator factors, fraud decay, floor, unknown indicators.
"""

from __future__ import annotations

import pytest

from backend_agentscore.analysis_engine.integrity import (
    DEFAULT_GAMING_FACTOR,
    DEFAULT_SYBIL_FACTOR,
    GAMING_FACTORS,
    SYBIL_FACTORS,
    GamingIndicator,
    SybilIndicator,
    compute_integrity_multiplier,
)


def test_clean_wallet_has_no_penalty():
    assert compute_integrity_multiplier([], [], 0) == 1.0


def test_known_factors_multiply():
    """closed_loop_trading 0.55 x wash_trading 0.50 = 0.275."""
    m = compute_integrity_multiplier(
        [SybilIndicator.CLOSED_LOOP_TRADING],
        [GamingIndicator.WASH_TRADING],
        0,
    )
    assert m == pytest.approx(0.275)


def test_strings_and_enums_equivalent():
    assert compute_integrity_multiplier(["single_partner"], ["burst_and_stop"], 0) == compute_integrity_multiplier(
        [SybilIndicator.SINGLE_PARTNER], [GamingIndicator.BURST_AND_STOP], 0
    )


def test_fraud_reports_decay():
    """Each fraud report multiplies by 0.9."""
    assert compute_integrity_multiplier([], [], 1) == pytest.approx(0.9)
    assert compute_integrity_multiplier([], [], 2) == pytest.approx(0.81)


def test_duplicate_indicators_apply_once():
    once = compute_integrity_multiplier(["symmetric_transactions"], [], 0)
    twice = compute_integrity_multiplier(["symmetric_transactions", "symmetric_transactions"], [], 0)
    assert once == twice == pytest.approx(0.60)


def test_unknown_indicators_use_defaults():
    """Unrecognized strings never raise; they take the default factor for their family."""
    assert compute_integrity_multiplier(["brand_new_signal"], [], 0) == pytest.approx(DEFAULT_SYBIL_FACTOR)
    assert compute_integrity_multiplier([], ["brand_new_signal"], 0) == pytest.approx(DEFAULT_GAMING_FACTOR)


def test_floor_at_ten_percent():
    """Stacking every indicator and many reports still leaves 0.10."""
    m = compute_integrity_multiplier(list(SybilIndicator), list(GamingIndicator), 50)
    assert m == 0.10


def test_adding_penalties_never_increases_multiplier():
    base_sybil: list[str] = []
    base_gaming: list[str] = []
    previous = compute_integrity_multiplier(base_sybil, base_gaming, 0)
    for ind in SybilIndicator:
        base_sybil.append(ind.value)
        current = compute_integrity_multiplier(base_sybil, base_gaming, 0)
        assert current <= previous
        previous = current
    for ind in GamingIndicator:
        base_gaming.append(ind.value)
        current = compute_integrity_multiplier(base_sybil, base_gaming, 0)
        assert current <= previous
        previous = current
    assert compute_integrity_multiplier(base_sybil, base_gaming, 1) <= previous


def test_factor_tables_are_exhaustive():
    assert set(SYBIL_FACTORS) == set(SybilIndicator)
    assert set(GAMING_FACTORS) == set(GamingIndicator)
    assert all(0 < f < 1 for f in list(SYBIL_FACTORS.values()) + list(GAMING_FACTORS.values()))
