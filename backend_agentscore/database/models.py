"""
Domain models for database entities.

Transfers, wallet rollups, composite scores, fraud reports, query log and
intent signals, agent registrations. Timestamps are ISO-8601 UTC strings.
No ORM coupling so backends stay swappable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Transfer:
    """One indexed USDC Transfer event; identity is tx_hash."""

    tx_hash: str
    block_number: int
    from_wallet: str
    to_wallet: str
    amount_usdc: float
    timestamp: str


@dataclass
class WalletTransferStats:
    """Per-wallet rollup, always recomputed from the full transfer set."""

    wallet: str
    total_tx_count: int
    total_volume_in: float
    total_volume_out: float
    unique_partners: int
    first_seen: str | None
    last_seen: str | None
    updated_at: str | None = None


@dataclass
class PartnerVolume:
    """Flows between a wallet and one counterparty."""

    partner: str
    sent: float
    """USDC sent by the wallet to the partner."""
    received: float
    """USDC received by the wallet from the partner."""
    tx_count: int
    first_seen: str | None = None

    @property
    def total(self) -> float:
        return self.sent + self.received


@dataclass
class CompositeScoreRecord:
    """Latest score for a wallet (cache row); history keeps a subset of these fields."""

    wallet: str
    composite_score: int
    confidence: float
    model_version: str
    calculated_at: str
    integrity_multiplier: float
    tier: str
    recommendation: str
    dimensions: dict[str, dict[str, Any]] = field(default_factory=dict)
    """dimension name -> {"score": int, "data": {...}}."""
    sybil_flag: bool = False
    sybil_indicators: list[str] = field(default_factory=list)
    gaming_indicators: list[str] = field(default_factory=list)
    expires_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "wallet": self.wallet,
            "composite_score": self.composite_score,
            "confidence": self.confidence,
            "model_version": self.model_version,
            "calculated_at": self.calculated_at,
            "expires_at": self.expires_at,
            "integrity_multiplier": self.integrity_multiplier,
            "tier": self.tier,
            "recommendation": self.recommendation,
            "sybil_flag": self.sybil_flag,
            "sybil_indicators": list(self.sybil_indicators),
            "gaming_indicators": list(self.gaming_indicators),
            "dimensions": self.dimensions,
        }


@dataclass
class ScoreHistoryRecord:
    """Immutable history row appended on every scoring pass."""

    id: int | None
    wallet: str
    composite_score: int
    confidence: float
    model_version: str
    integrity_multiplier: float
    calculated_at: str
    dimensions: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass
class FraudReport:
    id: int | None
    target_wallet: str
    reporter_wallet: str
    reason: str
    details: str | None = None
    penalty_applied: float = 0.0
    created_at: str | None = None


@dataclass
class QueryLogEntry:
    """A score lookup; paid (is_free_tier False) rows feed the intent matcher."""

    id: int | None
    requester_wallet: str | None
    target_wallet: str | None
    endpoint: str
    timestamp: str
    is_free_tier: bool = False


@dataclass
class IntentSignal:
    """Conversion label for one (requester, target, query_timestamp) triple."""

    requester_wallet: str
    target_wallet: str
    query_timestamp: str
    followed_by_tx: bool
    tx_hash: str | None = None
    tx_timestamp: str | None = None
    time_to_tx_ms: int | None = None


@dataclass
class AgentRegistration:
    """Self-registration metadata plus the latest code-hosting verification."""

    wallet: str
    name: str | None = None
    description: str | None = None
    github_url: str | None = None
    website_url: str | None = None
    basename: str | None = None
    registered_at: str | None = None
    updated_at: str | None = None
    github_verified: bool = False
    github_stars: int | None = None
    github_pushed_at: str | None = None
    github_verified_at: str | None = None
