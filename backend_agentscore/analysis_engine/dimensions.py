"""
Dimension scorers: reliability, viability, identity, capability.

Each scorer is a pure function returning DimensionScore(score 0-100, data).
Point budgets per dimension:

- reliability: transfer presence 30, transfer count (log) 25, nonce 20,
  activity span over 14 days 25, recency of last transfer 20
- viability: ETH gas 15, USDC balance 25, 30d income/burn ratio 30,
  wallet age 30, drained-to-zero penalty -15, 7d trend 15
- identity: registration 10, basename 20, verified repo 25, repo activity 15,
  wallet age 30
- capability: estimated active services 50, revenue earned 50

The behavior dimension lives in behavior.py.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from backend_agentscore.database.models import AgentRegistration, WalletTransferStats
from backend_agentscore.utils.time_utils import days_between, from_iso

TX_COUNT_BREAKPOINTS = ((0, 0), (5, 4), (25, 10), (100, 18), (500, 23), (1000, 25))
NONCE_BREAKPOINTS = ((0, 0), (1, 3), (10, 8), (50, 14), (200, 18), (1000, 20))
VIABILITY_AGE_BREAKPOINTS = ((0, 0), (1, 5), (7, 15), (30, 25), (90, 30))
REVENUE_BREAKPOINTS = ((0, 0), (0.1, 5), (1, 12), (10, 22), (50, 32), (200, 42), (500, 50))

UPTIME_WINDOW_DAYS = 14
MICROPAYMENT_AVG_INFLOW = 5.0


@dataclass
class DimensionScore:
    """One dimension's integer score and the raw signals behind it."""

    score: int
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "data": dict(self.data)}


@dataclass
class ViabilityInputs:
    """Balances and period flows for the viability scorer (USDC unless noted)."""

    usdc_balance: float = 0.0
    eth_balance: float = 0.0
    """Native gas balance in ETH."""
    inflows_30d: float = 0.0
    outflows_30d: float = 0.0
    inflows_7d: float = 0.0
    outflows_7d: float = 0.0
    total_volume_out: float = 0.0


def round_half_up(value: float) -> int:
    """Nearest integer, halves rounded up (2.5 -> 3)."""
    return math.floor(value + 0.5)


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def piecewise_log(value: float, breakpoints: Sequence[tuple[float, float]]) -> float:
    """Linear interpolation between ascending (input, output) breakpoints, clamped at both ends."""
    if value <= breakpoints[0][0]:
        return float(breakpoints[0][1])
    if value >= breakpoints[-1][0]:
        return float(breakpoints[-1][1])
    for (x0, y0), (x1, y1) in zip(breakpoints, breakpoints[1:]):
        if x0 <= value <= x1:
            t = (value - x0) / (x1 - x0)
            return y0 + t * (y1 - y0)
    return 0.0


def wallet_age_days(stats: WalletTransferStats | None, now: datetime) -> float | None:
    """Days since the first indexed transfer, or None when the wallet has none."""
    if stats is None or not stats.first_seen:
        return None
    return days_between(stats.first_seen, now)


# ---------- reliability ----------


def score_reliability(stats: WalletTransferStats | None, nonce: int, now: datetime) -> DimensionScore:
    tx_count = stats.total_tx_count if stats else 0

    # on-chain we only see confirmed transfers; presence stands in for success rate
    success_pts = 0 if tx_count == 0 else min(30, 15 + (10 if tx_count > 5 else 0) + (5 if tx_count > 20 else 0))
    tx_pts = 0.0 if tx_count == 0 else piecewise_log(tx_count, TX_COUNT_BREAKPOINTS)
    nonce_pts = 0 if nonce <= 0 else round_half_up(piecewise_log(nonce, NONCE_BREAKPOINTS))

    uptime_ratio = 0.0
    if stats and stats.first_seen and stats.last_seen:
        span_days = (from_iso(stats.last_seen) - from_iso(stats.first_seen)).total_seconds() / 86400.0
        uptime_ratio = min(1.0, max(0.0, span_days / UPTIME_WINDOW_DAYS))
    uptime_pts = round_half_up(uptime_ratio * 25)

    recency_pts = 0
    hours_since_last: float | None = None
    if stats and stats.last_seen:
        hours_since_last = days_between(stats.last_seen, now) * 24
        if hours_since_last <= 24:
            recency_pts = 20
        elif hours_since_last <= 24 * 7:
            recency_pts = 15
        elif hours_since_last <= 24 * 30:
            recency_pts = 5

    total = success_pts + tx_pts + nonce_pts + uptime_pts + recency_pts
    return DimensionScore(
        score=clamp_score(total),
        data={
            "tx_count": tx_count,
            "nonce": nonce,
            "success_rate": 0 if tx_count == 0 else round(success_pts / 30, 3),
            "uptime_estimate": round(uptime_ratio, 3),
            "hours_since_last_tx": None if hours_since_last is None else round(hours_since_last, 1),
            "signals": {
                "tx_success_rate": success_pts,
                "tx_count_log": round_half_up(tx_pts),
                "nonce": nonce_pts,
                "uptime": uptime_pts,
                "recency": recency_pts,
            },
        },
    )


# ---------- viability ----------


def _eth_points(eth: float) -> int:
    if eth >= 0.1:
        return 15
    if eth >= 0.01:
        return 10
    if eth >= 0.001:
        return 5
    if eth > 0:
        return 2
    return 0


def _usdc_balance_points(balance: float) -> int:
    for threshold, pts in ((100, 25), (50, 22), (25, 18), (10, 15), (5, 10), (1, 5), (0.1, 2)):
        if balance > threshold:
            return pts
    return 0


def _income_ratio_points(inflows: float, outflows: float) -> int:
    if outflows > 0:
        ratio = inflows / outflows
        if ratio > 2:
            return 30
        if ratio > 1.5:
            return 25
        if ratio > 1:
            return 15
        return 5
    # pure income, no burn
    return 30 if inflows > 0 else 0


def _trend_points(net_7d: float, net_30d: float) -> tuple[int, str]:
    if net_7d > 0 and net_7d >= net_30d * 0.5:
        return 15, "rising"
    if abs(net_7d) < 1:
        return 10, "stable"
    if -50 < net_7d < 0:
        return 5, "declining"
    return 0, "freefall"


def score_viability(inputs: ViabilityInputs, age_days: float | None) -> DimensionScore:
    eth_pts = _eth_points(inputs.eth_balance)
    balance_pts = _usdc_balance_points(inputs.usdc_balance)
    ratio_pts = _income_ratio_points(inputs.inflows_30d, inputs.outflows_30d)
    age_pts = round_half_up(piecewise_log(age_days, VIABILITY_AGE_BREAKPOINTS)) if age_days and age_days > 0 else 0
    drained = inputs.usdc_balance == 0 and inputs.total_volume_out > 0
    net_7d = inputs.inflows_7d - inputs.outflows_7d
    net_30d = inputs.inflows_30d - inputs.outflows_30d
    trend_pts, trend = _trend_points(net_7d, net_30d)

    total = eth_pts + balance_pts + ratio_pts + age_pts + trend_pts - (15 if drained else 0)
    return DimensionScore(
        score=clamp_score(total),
        data={
            "usdc_balance": round(inputs.usdc_balance, 6),
            "eth_balance": round(inputs.eth_balance, 6),
            "inflows_30d": round(inputs.inflows_30d, 6),
            "outflows_30d": round(inputs.outflows_30d, 6),
            "inflows_7d": round(inputs.inflows_7d, 6),
            "outflows_7d": round(inputs.outflows_7d, 6),
            "wallet_age_days": round(age_days or 0, 1),
            "ever_zero_balance": drained,
            "trend": trend,
            "signals": {
                "eth_balance": eth_pts,
                "usdc_balance": balance_pts,
                "income_ratio": ratio_pts,
                "wallet_age": age_pts,
                "zero_balance_penalty": -15 if drained else 0,
                "balance_trend": trend_pts,
            },
        },
    )


# ---------- identity ----------


def _identity_age_points(age_days: float | None) -> int:
    age = age_days or 0
    for threshold, pts in ((180, 30), (90, 25), (60, 22), (30, 18), (14, 13), (7, 8), (3, 5)):
        if age > threshold:
            return pts
    return 2


def _repo_activity_points(reg: AgentRegistration, now: datetime) -> int:
    if not reg.github_verified:
        return 0
    pts = 0
    stars = reg.github_stars or 0
    if stars >= 5:
        pts += 5
    elif stars >= 1:
        pts += 3
    if reg.github_pushed_at:
        days_since_push = days_between(reg.github_pushed_at, now)
        if days_since_push <= 30:
            pts += 10
        elif days_since_push <= 90:
            pts += 5
    return pts


def score_identity(
    registration: AgentRegistration | None,
    age_days: float | None,
    now: datetime,
) -> DimensionScore:
    registered = registration is not None
    has_basename = bool(registration and registration.basename)
    github_verified = bool(registration and registration.github_verified)

    registration_pts = 10 if registered else 0
    basename_pts = 20 if has_basename else 0
    github_pts = 25 if github_verified else 0
    activity_pts = _repo_activity_points(registration, now) if registration else 0
    age_pts = _identity_age_points(age_days)

    total = registration_pts + basename_pts + github_pts + activity_pts + age_pts
    return DimensionScore(
        score=clamp_score(total),
        data={
            "registered": registered,
            "has_basename": has_basename,
            "github_verified": github_verified,
            "wallet_age_days": round(age_days or 0, 1),
            "signals": {
                "registration": registration_pts,
                "basename": basename_pts,
                "github_verified": github_pts,
                "github_activity": activity_pts,
                "wallet_age": age_pts,
            },
        },
    )


# ---------- capability ----------


def _service_points(services: int) -> int:
    return {4: 50, 3: 40, 2: 30, 1: 15}.get(services, 0)


def score_capability(stats: WalletTransferStats | None) -> DimensionScore:
    """Heuristic: small average inflows across many transfers look like paid API calls."""
    tx_count = stats.total_tx_count if stats else 0
    revenue = stats.total_volume_in if stats else 0.0
    avg_inflow = revenue / tx_count if tx_count > 0 else 0.0

    services = 0
    if avg_inflow < MICROPAYMENT_AVG_INFLOW and tx_count > 5:
        services = min(4, max(1, tx_count // 20 + 1))
    elif tx_count > 0:
        services = 1
    service_pts = _service_points(services)
    revenue_pts = round_half_up(piecewise_log(revenue, REVENUE_BREAKPOINTS)) if revenue > 0 else 0

    return DimensionScore(
        score=clamp_score(service_pts + revenue_pts),
        data={
            "active_services": services,
            "total_revenue": round(revenue, 6),
            "signals": {"services": service_pts, "revenue": revenue_pts},
        },
    )
