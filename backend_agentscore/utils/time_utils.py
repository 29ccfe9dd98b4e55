"""
UTC time helpers.

Persisted timestamps are ISO-8601 strings with millisecond precision and a
trailing Z (2025-01-01T00:00:00.000Z), so lexical order equals time order.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Format an aware (or naive UTC) datetime as YYYY-MM-DDTHH:MM:SS.mmmZ."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def from_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (Z or offset suffix) into an aware UTC datetime."""
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def ms_to_iso(ms: int) -> str:
    return to_iso(datetime.fromtimestamp(ms / 1000, tz=timezone.utc))


def days_between(earlier: str, later: datetime) -> float:
    """Fractional days from an ISO timestamp to a datetime; 0 when earlier is in the future."""
    delta = later - from_iso(earlier)
    return max(0.0, delta.total_seconds() / 86400.0)
