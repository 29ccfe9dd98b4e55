"""
Tests for the transfer-store sybil and gaming detectors.
"""

from __future__ import annotations

from datetime import timedelta

from backend_agentscore.analysis_engine.gaming import detect_gaming
from backend_agentscore.analysis_engine.integrity import GamingIndicator, SybilIndicator
from backend_agentscore.analysis_engine.sybil import detect_sybil
from backend_agentscore.ingestion.transfer_aggregator import TransferAggregator

WALLET = "0x" + "1" * 40
P = ["0x" + c * 40 for c in "23456789"]


def _index(db, transfers, now):
    agg = TransferAggregator(db)
    agg.index_batch(transfers)
    wallets = {t.from_wallet for t in transfers} | {t.to_wallet for t in transfers}
    agg.refresh_stats(sorted(wallets), now=now)


def test_empty_store_is_clean(db, now):
    assert detect_sybil(db, WALLET).indicators == frozenset()
    assert detect_gaming(db, WALLET, now).indicators == frozenset()


def test_closed_loop_needs_more_than_three_partners(db, make_transfer, now):
    """Top 3 partners carrying > 90% of volume flags only when a 4th partner exists."""
    transfers = [make_transfer(WALLET, p, 100.0, hours_ago=24 * 30) for p in P[:3]]
    _index(db, transfers, now)
    assert SybilIndicator.CLOSED_LOOP_TRADING not in detect_sybil(db, WALLET).indicators

    _index(db, [make_transfer(WALLET, P[3], 1.0, hours_ago=24 * 29)], now)
    assert SybilIndicator.CLOSED_LOOP_TRADING in detect_sybil(db, WALLET).indicators


def test_symmetric_partner_flows(db, make_transfer, now):
    transfers = [
        make_transfer(WALLET, P[0], 10.0, hours_ago=100),
        make_transfer(P[0], WALLET, 10.5, hours_ago=90),
    ]
    _index(db, transfers, now)
    result = detect_sybil(db, WALLET)
    assert SybilIndicator.SYMMETRIC_TRANSACTIONS in result.indicators
    assert SybilIndicator.SINGLE_PARTNER in result.indicators
    assert result.sybil_flag is True


def test_coordinated_creation_with_top_partner(db, make_transfer, now):
    """Both wallets first appear in the same transfer, so creation times coincide."""
    _index(db, [make_transfer(P[0], WALLET, 5.0, hours_ago=48)], now)
    assert SybilIndicator.COORDINATED_CREATION in detect_sybil(db, WALLET).indicators


def test_volume_without_diversity(db, make_transfer, now):
    transfers = [make_transfer(WALLET, P[i % 2], 1.0, hours_ago=24 * 20 - i) for i in range(60)]
    _index(db, transfers, now)
    assert SybilIndicator.VOLUME_WITHOUT_DIVERSITY in detect_sybil(db, WALLET).indicators


def test_velocity_spike(db, make_transfer, now):
    """One transfer per day for six days, then fifteen in the last day."""
    transfers = [make_transfer(P[d % len(P)], WALLET, 1.0, hours_ago=24 * d + 12) for d in range(1, 7)]
    transfers += [make_transfer(P[i % len(P)], WALLET, 1.0, hours_ago=0.5 + i) for i in range(15)]
    _index(db, transfers, now)
    result = detect_gaming(db, WALLET, now)
    assert GamingIndicator.VELOCITY_SPIKE in result.indicators
    assert GamingIndicator.BURST_AND_STOP not in result.indicators


def test_burst_and_stop(db, make_transfer, now):
    """More than twenty transfers in the last day, none in the last hour."""
    transfers = [make_transfer(P[i % len(P)], WALLET, 1.0, hours_ago=2 + i * 0.5) for i in range(25)]
    _index(db, transfers, now)
    result = detect_gaming(db, WALLET, now)
    assert GamingIndicator.BURST_AND_STOP in result.indicators
    assert result.gaming_detected is True


def test_wash_trading_ratio(db, make_transfer, now):
    transfers = [
        make_transfer(WALLET, P[0], 10.0, hours_ago=30),
        make_transfer(P[0], WALLET, 10.0, hours_ago=20),
    ]
    _index(db, transfers, now)
    result = detect_gaming(db, WALLET, now)
    assert GamingIndicator.WASH_TRADING in result.indicators
    assert result.wash_ratio == 0.5


def test_one_way_income_is_not_wash(db, make_transfer, now):
    transfers = [make_transfer(p, WALLET, 3.0, hours_ago=30 + i) for i, p in enumerate(P)]
    _index(db, transfers, now)
    result = detect_gaming(db, WALLET, now)
    assert GamingIndicator.WASH_TRADING not in result.indicators
    assert result.wash_ratio == 0.0


def test_gaming_ignores_transfers_older_than_seven_days(db, make_transfer, now):
    transfers = [make_transfer(P[i % len(P)], WALLET, 1.0, hours_ago=24 * 8 + i * 0.1) for i in range(40)]
    _index(db, transfers, now)
    assert detect_gaming(db, WALLET, now).indicators == frozenset()


def test_gaming_respects_injected_clock(db, make_transfer, now):
    """Evaluated a week later, yesterday's burst is history."""
    transfers = [make_transfer(P[i % len(P)], WALLET, 1.0, hours_ago=2 + i * 0.5) for i in range(25)]
    _index(db, transfers, now)
    assert detect_gaming(db, WALLET, now + timedelta(days=8)).indicators == frozenset()


def test_steady_high_volume_wallet_is_not_burst_and_stop(db, make_transfer, now):
    """Thirty transfers an hour for a full week: every window is counted, nothing is truncated."""
    transfers = [
        make_transfer(P[i % len(P)], WALLET, 1.0, hours_ago=(i + 0.5) / 30) for i in range(30 * 24 * 7)
    ]
    assert db.insert_transfers(transfers) == 5040
    assert db.get_window_activity(WALLET, transfers[29].timestamp, transfers[0].timestamp) == (29, 29.0)

    result = detect_gaming(db, WALLET, now)
    assert result.indicators == frozenset()


def test_wash_trading_only_counts_the_last_seven_days(db, make_transfer, now):
    """An old round trip does not make this week's one-way income look like wash trading."""
    transfers = [
        make_transfer(WALLET, P[0], 50.0, hours_ago=24 * 10),
        make_transfer(P[0], WALLET, 50.0, hours_ago=24 * 9),
        make_transfer(P[0], WALLET, 10.0, hours_ago=5),
    ]
    db.insert_transfers(transfers)
    result = detect_gaming(db, WALLET, now)
    assert GamingIndicator.WASH_TRADING not in result.indicators
    assert result.wash_ratio == 0.0
