"""
Anti-gaming velocity checks over the last 7 days of transfers.

- velocity_spike: transfers in the last 24h exceed 10x the daily average of the prior 6 days
- burst_and_stop: nothing in the last hour after more than 20 transfers in the 23h before it
- wash_trading: round-trip volume (min of sent and received per partner) is > 40% of 7d volume
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from backend_agentscore.analysis_engine.integrity import GamingIndicator
from backend_agentscore.database import Database
from backend_agentscore.utils.time_utils import to_iso, utc_now

VELOCITY_MULTIPLE = 10
BURST_MIN_TX = 20
WASH_RATIO = 0.4


@dataclass
class GamingResult:
    indicators: frozenset[GamingIndicator | str] = field(default_factory=frozenset)
    wash_ratio: float = 0.0

    @property
    def gaming_detected(self) -> bool:
        return bool(self.indicators)


def detect_gaming(db: Database, wallet: str, now: datetime | None = None) -> GamingResult:
    w = wallet.lower()
    now = now or utc_now()
    until = to_iso(now)
    week_ago = to_iso(now - timedelta(days=7))
    found: set[GamingIndicator] = set()

    last_hour, _ = db.get_window_activity(w, to_iso(now - timedelta(hours=1)), until)
    last_day, _ = db.get_window_activity(w, to_iso(now - timedelta(days=1)), until)
    week_count, total = db.get_window_activity(w, week_ago, until)
    prior_days = week_count - last_day

    baseline = prior_days / 6
    if baseline > 0 and last_day > baseline * VELOCITY_MULTIPLE:
        found.add(GamingIndicator.VELOCITY_SPIKE)

    if last_hour == 0 and last_day > BURST_MIN_TX:
        found.add(GamingIndicator.BURST_AND_STOP)

    partners = db.get_partner_volumes(w, since=week_ago, until=until)
    wash_volume = sum(min(p.sent, p.received) for p in partners)
    wash_ratio = wash_volume / total if total > 0 else 0.0
    if wash_ratio > WASH_RATIO:
        found.add(GamingIndicator.WASH_TRADING)

    return GamingResult(indicators=frozenset(found), wash_ratio=round(wash_ratio, 3))
