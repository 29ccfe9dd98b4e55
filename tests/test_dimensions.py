"""
Tests for the reliability, viability, identity and capability scorers.
"""

from __future__ import annotations

from datetime import timedelta

from backend_agentscore.analysis_engine.dimensions import (
    ViabilityInputs,
    clamp_score,
    piecewise_log,
    round_half_up,
    score_capability,
    score_identity,
    score_reliability,
    score_viability,
    wallet_age_days,
)
from backend_agentscore.database import AgentRegistration, WalletTransferStats
from backend_agentscore.utils.time_utils import to_iso

WALLET = "0x" + "1" * 40


def _stats(now, *, tx_count, volume_in=0.0, volume_out=0.0, partners=1, first_days_ago=30.0, last_hours_ago=1.0):
    return WalletTransferStats(
        wallet=WALLET,
        total_tx_count=tx_count,
        total_volume_in=volume_in,
        total_volume_out=volume_out,
        unique_partners=partners,
        first_seen=to_iso(now - timedelta(days=first_days_ago)),
        last_seen=to_iso(now - timedelta(hours=last_hours_ago)),
        updated_at=to_iso(now),
    )


def test_piecewise_log_interpolates_and_clamps():
    points = ((0, 0), (10, 10), (20, 30))
    assert piecewise_log(-5, points) == 0
    assert piecewise_log(5, points) == 5
    assert piecewise_log(15, points) == 20
    assert piecewise_log(1000, points) == 30


def test_clamp_score():
    assert clamp_score(-3) == 0
    assert clamp_score(100.4) == 100
    assert clamp_score(55.6) == 56
    assert clamp_score(42.5) == 43


def test_round_half_up_rounds_ties_upward():
    assert [round_half_up(v) for v in (0.5, 1.5, 2.5, 2.49, -0.5)] == [1, 2, 3, 2, 0]


def test_wallet_age_days(now):
    assert wallet_age_days(None, now) is None
    assert round(wallet_age_days(_stats(now, tx_count=1, first_days_ago=12), now), 3) == 12.0


def test_reliability_empty_wallet_is_zero(now):
    result = score_reliability(None, 0, now)
    assert result.score == 0
    assert result.data["tx_count"] == 0
    assert result.data["hours_since_last_tx"] is None


def test_reliability_active_wallet(now):
    """Long span, recent activity and a real nonce score near the top."""
    stats = _stats(now, tx_count=30, first_days_ago=20, last_hours_ago=2)
    result = score_reliability(stats, 60, now)
    assert result.data["signals"]["uptime"] == 25
    assert result.data["signals"]["recency"] == 20
    assert result.data["signals"]["tx_success_rate"] == 30
    assert result.score >= 95


def test_reliability_recency_decays(now):
    fresh = score_reliability(_stats(now, tx_count=10, last_hours_ago=2), 0, now)
    stale = score_reliability(_stats(now, tx_count=10, last_hours_ago=24 * 10), 0, now)
    dead = score_reliability(_stats(now, tx_count=10, first_days_ago=90, last_hours_ago=24 * 60), 0, now)
    assert fresh.data["signals"]["recency"] == 20
    assert stale.data["signals"]["recency"] == 5
    assert dead.data["signals"]["recency"] == 0


def test_viability_no_data_is_stable_only():
    result = score_viability(ViabilityInputs(), None)
    assert result.score == 10
    assert result.data["trend"] == "stable"
    assert result.data["ever_zero_balance"] is False


def test_viability_drained_wallet_penalized():
    result = score_viability(ViabilityInputs(usdc_balance=0.0, total_volume_out=5.0), None)
    assert result.data["ever_zero_balance"] is True
    assert result.data["signals"]["zero_balance_penalty"] == -15
    assert result.score == 0


def test_viability_healthy_wallet_caps_at_100():
    inputs = ViabilityInputs(
        usdc_balance=150.0,
        eth_balance=0.2,
        inflows_30d=300.0,
        outflows_30d=100.0,
        inflows_7d=150.0,
        outflows_7d=10.0,
        total_volume_out=100.0,
    )
    result = score_viability(inputs, 100.0)
    assert result.data["trend"] == "rising"
    assert result.data["signals"]["income_ratio"] == 30
    assert result.score == 100


def test_identity_unregistered_new_wallet(now):
    result = score_identity(None, None, now)
    assert result.score == 2
    assert result.data["registered"] is False


def test_identity_fully_verified(now):
    reg = AgentRegistration(
        wallet=WALLET,
        name="agent",
        basename="agent.base.eth",
        github_url="https://github.com/acme/agent",
        github_verified=True,
        github_stars=6,
        github_pushed_at=to_iso(now - timedelta(days=10)),
    )
    result = score_identity(reg, 200.0, now)
    assert result.score == 100
    assert result.data["signals"]["github_activity"] == 15


def test_identity_unverified_repo_earns_no_activity(now):
    reg = AgentRegistration(wallet=WALLET, github_url="https://github.com/acme/agent", github_stars=50)
    result = score_identity(reg, 10.0, now)
    assert result.data["signals"]["github_verified"] == 0
    assert result.data["signals"]["github_activity"] == 0
    assert result.score == 10 + 8


def test_capability_none_is_zero():
    assert score_capability(None).score == 0


def test_capability_micropayment_pattern(now):
    """45 transfers averaging 1 USDC in look like three paid services."""
    result = score_capability(_stats(now, tx_count=45, volume_in=45.0))
    assert result.data["active_services"] == 3
    assert result.data["signals"]["services"] == 40
    assert result.data["signals"]["revenue"] == 31
    assert result.score == 71
