"""
Sybil detection from the local transfer store (no RPC).

Checks, each emitting one SybilIndicator:
- closed_loop_trading: more than 3 partners and the top 3 carry > 90% of volume
- symmetric_transactions: > 50% of partnerships move near-equal volume both ways (within 10%)
- coordinated_creation: wallet and its top partner first seen within 24h of each other
- single_partner: exactly one counterparty
- volume_without_diversity: > 50 transfers with fewer than 5 partners
"""

from __future__ import annotations

from dataclasses import dataclass, field

from backend_agentscore.analysis_engine.integrity import SybilIndicator
from backend_agentscore.database import Database
from backend_agentscore.utils.time_utils import from_iso

CLOSED_LOOP_TOP_N = 3
CLOSED_LOOP_SHARE = 0.9
SYMMETRY_TOLERANCE = 0.1
SYMMETRIC_SHARE = 0.5
COORDINATED_WINDOW_SEC = 24 * 3600
HIGH_VOLUME_TX = 50
MIN_DIVERSE_PARTNERS = 5


@dataclass
class SybilResult:
    indicators: frozenset[SybilIndicator | str] = field(default_factory=frozenset)

    @property
    def sybil_flag(self) -> bool:
        return bool(self.indicators)


def detect_sybil(db: Database, wallet: str) -> SybilResult:
    """Run all sybil checks for wallet; empty tables yield a clean result."""
    w = wallet.lower()
    found: set[SybilIndicator] = set()
    partners = db.get_partner_volumes(w)
    partner_count = len(partners)
    total_volume = sum(p.total for p in partners)

    if total_volume > 0 and partner_count > CLOSED_LOOP_TOP_N:
        top = sum(p.total for p in partners[:CLOSED_LOOP_TOP_N])
        if top / total_volume > CLOSED_LOOP_SHARE:
            found.add(SybilIndicator.CLOSED_LOOP_TRADING)

    if partner_count:
        symmetric = 0
        for p in partners:
            if p.sent > 0 and p.received > 0 and abs(p.sent - p.received) / max(p.sent, p.received) < SYMMETRY_TOLERANCE:
                symmetric += 1
        if symmetric / partner_count > SYMMETRIC_SHARE:
            found.add(SybilIndicator.SYMMETRIC_TRANSACTIONS)

    stats = db.get_wallet_stats(w)
    if stats and stats.first_seen and partners:
        top_stats = db.get_wallet_stats(partners[0].partner)
        if top_stats and top_stats.first_seen:
            diff = abs((from_iso(stats.first_seen) - from_iso(top_stats.first_seen)).total_seconds())
            if diff < COORDINATED_WINDOW_SEC:
                found.add(SybilIndicator.COORDINATED_CREATION)

    if partner_count == 1:
        found.add(SybilIndicator.SINGLE_PARTNER)

    tx_count = stats.total_tx_count if stats else 0
    if tx_count > HIGH_VOLUME_TX and partner_count < MIN_DIVERSE_PARTNERS:
        found.add(SybilIndicator.VOLUME_WITHOUT_DIVERSITY)

    return SybilResult(indicators=frozenset(found))
