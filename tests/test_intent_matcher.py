"""
Tests for the intent signal matcher: paid lookups labelled by whether a transfer followed.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

from backend_agentscore.agent_worker.intent_matcher import IntentMatcherConfig, run_intent_matcher
from backend_agentscore.database import QueryLogEntry
from backend_agentscore.utils.time_utils import to_iso

REQUESTER = "0x" + "a" * 40
TARGET = "0x" + "b" * 40
OTHER = "0x" + "c" * 40

FAST = IntentMatcherConfig(yield_ms=0)


def _log_query(db, at, *, requester=REQUESTER, target=TARGET, free=False):
    db.insert_query_log(
        QueryLogEntry(
            id=None,
            requester_wallet=requester,
            target_wallet=target,
            endpoint="/v1/score",
            timestamp=to_iso(at),
            is_free_tier=free,
        )
    )


def _run(db, now):
    return asyncio.run(run_intent_matcher(db, now=now, config=FAST))


def test_transfer_within_window_is_matched(db, make_transfer, now):
    """Query at t0, payment at t0 + 1h: followed_by_tx with a 3 600 000 ms delay."""
    t0 = now - timedelta(hours=30)
    _log_query(db, t0)
    tx = make_transfer(REQUESTER, TARGET, 5.0, at=t0 + timedelta(hours=1))
    db.insert_transfers([tx])

    summary = _run(db, now)
    assert summary["matched"] == 1
    signals = db.list_intent_signals()
    assert len(signals) == 1
    s = signals[0]
    assert s.followed_by_tx is True
    assert s.tx_hash == tx.tx_hash
    assert s.tx_timestamp == tx.timestamp
    assert s.time_to_tx_ms == 3_600_000
    assert s.query_timestamp == to_iso(t0)


def test_reverse_direction_counts(db, make_transfer, now):
    t0 = now - timedelta(hours=3)
    _log_query(db, t0)
    db.insert_transfers([make_transfer(TARGET, REQUESTER, 1.0, at=t0 + timedelta(minutes=10))])
    _run(db, now)
    assert db.list_intent_signals()[0].followed_by_tx is True


def test_earliest_transfer_wins(db, make_transfer, now):
    t0 = now - timedelta(hours=10)
    _log_query(db, t0)
    late = make_transfer(REQUESTER, TARGET, 1.0, at=t0 + timedelta(hours=5))
    early = make_transfer(REQUESTER, TARGET, 1.0, at=t0 + timedelta(hours=2))
    db.insert_transfers([late, early])
    _run(db, now)
    assert db.list_intent_signals()[0].tx_hash == early.tx_hash


def test_closed_window_without_transfer_is_negative(db, now):
    _log_query(db, now - timedelta(hours=30))
    summary = _run(db, now)
    assert summary["closed_without_tx"] == 1
    s = db.list_intent_signals()[0]
    assert s.followed_by_tx is False
    assert s.tx_hash is None
    assert s.tx_timestamp is None
    assert s.time_to_tx_ms is None


def test_transfer_after_window_does_not_match(db, make_transfer, now):
    t0 = now - timedelta(hours=40)
    _log_query(db, t0)
    db.insert_transfers([make_transfer(REQUESTER, TARGET, 1.0, at=t0 + timedelta(hours=25))])
    _run(db, now)
    assert db.list_intent_signals()[0].followed_by_tx is False


def test_transfer_before_query_does_not_match(db, make_transfer, now):
    t0 = now - timedelta(hours=30)
    _log_query(db, t0)
    db.insert_transfers([make_transfer(REQUESTER, TARGET, 1.0, at=t0 - timedelta(minutes=1))])
    _run(db, now)
    assert db.list_intent_signals()[0].followed_by_tx is False


def test_open_window_writes_nothing(db, now):
    """A one-hour-old query with no payment yet stays pending for a later pass."""
    _log_query(db, now - timedelta(hours=1))
    summary = _run(db, now)
    assert summary["pending"] == 1
    assert summary["inserted"] == 0
    assert db.list_intent_signals() == []


def test_pending_query_labelled_once_window_closes(db, now):
    _log_query(db, now - timedelta(hours=1))
    _run(db, now)
    _run(db, now + timedelta(hours=24))
    signals = db.list_intent_signals()
    assert len(signals) == 1
    assert signals[0].followed_by_tx is False


def test_free_tier_and_anonymous_queries_ignored(db, now):
    _log_query(db, now - timedelta(hours=30), free=True)
    _log_query(db, now - timedelta(hours=30), requester=None)
    summary = _run(db, now)
    assert summary["queries_processed"] == 0
    assert db.list_intent_signals() == []


def test_second_pass_is_idempotent(db, make_transfer, now):
    t0 = now - timedelta(hours=30)
    _log_query(db, t0)
    _log_query(db, t0, target=OTHER)
    db.insert_transfers([make_transfer(REQUESTER, TARGET, 1.0, at=t0 + timedelta(hours=1))])
    first = _run(db, now)
    second = _run(db, now)
    assert first["inserted"] == 2
    assert second["queries_processed"] == 0
    assert len(db.list_intent_signals()) == 2
    assert len(db.list_intent_signals(target_wallet=TARGET)) == 1


def test_queries_outside_lookback_skipped(db, now):
    _log_query(db, now - timedelta(hours=72))
    summary = _run(db, now)
    assert summary["queries_processed"] == 0


def test_unparseable_query_timestamp_is_skipped(db, now):
    """A corrupt query_log row is counted as failed; the rest of the pass is still labelled."""
    db.insert_query_log(
        QueryLogEntry(
            id=None,
            requester_wallet=REQUESTER,
            target_wallet=OTHER,
            endpoint="/v1/score",
            timestamp=to_iso(now - timedelta(hours=40)) + "junk",
            is_free_tier=False,
        )
    )
    _log_query(db, now - timedelta(hours=30))
    summary = _run(db, now)
    assert summary["failed"] == 1
    assert summary["closed_without_tx"] == 1
    assert summary["inserted"] == 1
    signals = db.list_intent_signals()
    assert [(s.target_wallet, s.followed_by_tx) for s in signals] == [(TARGET, False)]
