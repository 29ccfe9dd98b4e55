"""
Database abstraction layer for transfers, wallet rollups, scores and job state.

MVP uses SQLite; designed so the backend can be swapped to PostgreSQL via a
different Backend implementation. All access goes through the abstract interface.
Each public write runs in a single transaction, so readers never observe a
partially written rollup or score.
"""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.database.models import (
    AgentRegistration,
    CompositeScoreRecord,
    FraudReport,
    IntentSignal,
    PartnerVolume,
    QueryLogEntry,
    ScoreHistoryRecord,
    Transfer,
    WalletTransferStats,
)

logger = get_logger(__name__)

DEFAULT_HISTORY_KEEP = 50

# -----------------------------------------------------------------------------
# Schema (SQLite). Timestamps are ISO-8601 UTC strings; wallets lower-case hex.
# -----------------------------------------------------------------------------

SCHEMA_USDC_TRANSFERS = """
CREATE TABLE IF NOT EXISTS usdc_transfers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tx_hash TEXT NOT NULL UNIQUE,
    block_number INTEGER NOT NULL,
    from_wallet TEXT NOT NULL,
    to_wallet TEXT NOT NULL,
    amount_usdc REAL NOT NULL,
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_usdc_transfers_from ON usdc_transfers(from_wallet, timestamp);
CREATE INDEX IF NOT EXISTS ix_usdc_transfers_to ON usdc_transfers(to_wallet, timestamp);
CREATE INDEX IF NOT EXISTS ix_usdc_transfers_block ON usdc_transfers(block_number);
"""

SCHEMA_WALLET_TRANSFER_STATS = """
CREATE TABLE IF NOT EXISTS wallet_transfer_stats (
    wallet TEXT PRIMARY KEY,
    total_tx_count INTEGER NOT NULL DEFAULT 0,
    total_volume_in REAL NOT NULL DEFAULT 0,
    total_volume_out REAL NOT NULL DEFAULT 0,
    unique_partners INTEGER NOT NULL DEFAULT 0,
    first_seen TEXT,
    last_seen TEXT,
    updated_at TEXT NOT NULL
);
"""

SCHEMA_SCORES = """
CREATE TABLE IF NOT EXISTS scores (
    wallet TEXT PRIMARY KEY,
    composite_score INTEGER NOT NULL,
    confidence REAL NOT NULL,
    model_version TEXT NOT NULL,
    calculated_at TEXT NOT NULL,
    expires_at TEXT,
    integrity_multiplier REAL NOT NULL DEFAULT 1.0,
    tier TEXT NOT NULL,
    recommendation TEXT NOT NULL,
    sybil_flag INTEGER NOT NULL DEFAULT 0,
    sybil_indicators TEXT NOT NULL DEFAULT '[]',
    gaming_indicators TEXT NOT NULL DEFAULT '[]',
    dimensions_json TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS ix_scores_expires ON scores(expires_at);
"""

SCHEMA_SCORE_HISTORY = """
CREATE TABLE IF NOT EXISTS score_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    wallet TEXT NOT NULL,
    composite_score INTEGER NOT NULL,
    confidence REAL NOT NULL,
    model_version TEXT NOT NULL,
    integrity_multiplier REAL NOT NULL DEFAULT 1.0,
    dimensions_json TEXT NOT NULL DEFAULT '{}',
    calculated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_score_history_wallet ON score_history(wallet, id);
"""

SCHEMA_FRAUD_REPORTS = """
CREATE TABLE IF NOT EXISTS fraud_reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    target_wallet TEXT NOT NULL,
    reporter_wallet TEXT NOT NULL,
    reason TEXT NOT NULL,
    details TEXT,
    penalty_applied REAL NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_fraud_reports_target ON fraud_reports(target_wallet);
"""

SCHEMA_QUERY_LOG = """
CREATE TABLE IF NOT EXISTS query_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    requester_wallet TEXT,
    target_wallet TEXT,
    endpoint TEXT NOT NULL,
    is_free_tier INTEGER NOT NULL DEFAULT 0,
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_query_log_timestamp ON query_log(timestamp);
CREATE INDEX IF NOT EXISTS ix_query_log_target ON query_log(target_wallet);
"""

SCHEMA_INTENT_SIGNALS = """
CREATE TABLE IF NOT EXISTS intent_signals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    requester_wallet TEXT NOT NULL,
    target_wallet TEXT NOT NULL,
    query_timestamp TEXT NOT NULL,
    followed_by_tx INTEGER NOT NULL,
    tx_hash TEXT,
    tx_timestamp TEXT,
    time_to_tx_ms INTEGER,
    UNIQUE(requester_wallet, target_wallet, query_timestamp)
);
"""

SCHEMA_INDEXER_STATE = """
CREATE TABLE IF NOT EXISTS indexer_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

SCHEMA_AGENT_REGISTRATIONS = """
CREATE TABLE IF NOT EXISTS agent_registrations (
    wallet TEXT PRIMARY KEY,
    name TEXT,
    description TEXT,
    github_url TEXT,
    website_url TEXT,
    basename TEXT,
    registered_at TEXT,
    updated_at TEXT,
    github_verified INTEGER NOT NULL DEFAULT 0,
    github_stars INTEGER,
    github_pushed_at TEXT,
    github_verified_at TEXT
);
"""

ALL_SCHEMAS = (
    SCHEMA_USDC_TRANSFERS,
    SCHEMA_WALLET_TRANSFER_STATS,
    SCHEMA_SCORES,
    SCHEMA_SCORE_HISTORY,
    SCHEMA_FRAUD_REPORTS,
    SCHEMA_QUERY_LOG,
    SCHEMA_INTENT_SIGNALS,
    SCHEMA_INDEXER_STATE,
    SCHEMA_AGENT_REGISTRATIONS,
)


# -----------------------------------------------------------------------------
# Abstract backend: swap implementation for PostgreSQL later.
# -----------------------------------------------------------------------------


class DatabaseBackend(ABC):
    """Abstract interface for persistence; implement for SQLite or PostgreSQL."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        ...

    # --- Transfers and rollups ---

    @abstractmethod
    def insert_transfers(self, transfers: Sequence[Transfer]) -> int:
        """
        Insert transfers in one transaction, ignoring tx_hash duplicates.
        Wallets are lower-cased. Returns number of rows actually inserted.
        """
        ...

    @abstractmethod
    def count_transfers(self) -> int:
        ...

    @abstractmethod
    def get_transfers_for_wallet(
        self,
        wallet: str,
        *,
        since: str | None = None,
        until: str | None = None,
        limit: int = 5000,
    ) -> list[Transfer]:
        """Return transfers where wallet is sender or receiver, oldest first."""
        ...

    @abstractmethod
    def get_transfer_timestamps(self, wallet: str, *, limit: int = 1000) -> list[str]:
        """Return the latest `limit` transfer timestamps for wallet, oldest first."""
        ...

    @abstractmethod
    def find_first_transfer_between(
        self, wallet_a: str, wallet_b: str, after: str, before: str
    ) -> Transfer | None:
        """Earliest transfer between the pair (either direction) with after < timestamp < before."""
        ...

    @abstractmethod
    def get_partner_volumes(
        self, wallet: str, *, since: str | None = None, until: str | None = None
    ) -> list[PartnerVolume]:
        """Per-counterparty flows for wallet, largest total first; self-transfers excluded."""
        ...

    @abstractmethod
    def get_window_activity(self, wallet: str, since: str, until: str) -> tuple[int, float]:
        """Return (transfer count, USDC volume) for since <= timestamp < until."""
        ...

    @abstractmethod
    def get_period_flows(self, wallet: str, since: str) -> tuple[float, float]:
        """Return (inflow, outflow) USDC for transfers at or after since."""
        ...

    @abstractmethod
    def refresh_wallet_stats(self, wallets: Sequence[str], updated_at: str) -> int:
        """
        Recompute wallet_transfer_stats for exactly the given wallets from
        usdc_transfers, replacing each row. One transaction. Wallets with no
        transfers are skipped. Returns number of rows written.
        """
        ...

    @abstractmethod
    def get_wallet_stats(self, wallet: str) -> WalletTransferStats | None:
        ...

    # --- Scores ---

    @abstractmethod
    def save_composite_score(
        self, record: CompositeScoreRecord, *, history_keep: int = DEFAULT_HISTORY_KEEP
    ) -> None:
        """Upsert the cache row and append a history row in one transaction; prune old history."""
        ...

    @abstractmethod
    def get_cached_score(self, wallet: str) -> CompositeScoreRecord | None:
        ...

    @abstractmethod
    def get_score_history(self, wallet: str, *, limit: int = DEFAULT_HISTORY_KEEP) -> list[ScoreHistoryRecord]:
        """Return score history for wallet, newest first."""
        ...

    @abstractmethod
    def count_cached_scores(self) -> int:
        ...

    @abstractmethod
    def get_wallets_needing_rescore(self, now: str, *, limit: int = 50) -> list[str]:
        """Wallets with stats whose score is missing, expired, or older than their stats."""
        ...

    # --- Fraud reports and query log ---

    @abstractmethod
    def insert_fraud_report(self, report: FraudReport) -> int:
        """Append a fraud report. Returns row id."""
        ...

    @abstractmethod
    def count_fraud_reports(self, wallet: str) -> int:
        ...

    @abstractmethod
    def insert_query_log(self, entry: QueryLogEntry) -> int:
        """Append a query log row. Returns row id."""
        ...

    @abstractmethod
    def count_queries_for_target(self, wallet: str) -> int:
        ...

    # --- Intent signals ---

    @abstractmethod
    def get_intent_candidates(self, since: str, *, limit: int = 5000) -> list[QueryLogEntry]:
        """
        Paid query rows at or after since with requester and target set and no
        intent signal for their (requester, target, timestamp) triple, oldest first.
        """
        ...

    @abstractmethod
    def insert_intent_signals(self, signals: Sequence[IntentSignal]) -> int:
        """Insert signals in one transaction, ignoring existing triples. Returns inserted count."""
        ...

    @abstractmethod
    def list_intent_signals(self, *, target_wallet: str | None = None) -> list[IntentSignal]:
        ...

    # --- Indexer state ---

    @abstractmethod
    def get_indexer_state(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set_indexer_state(self, key: str, value: str) -> None:
        ...

    # --- Agent registrations ---

    @abstractmethod
    def upsert_agent_registration(self, reg: AgentRegistration) -> None:
        ...

    @abstractmethod
    def get_agent_registration(self, wallet: str) -> AgentRegistration | None:
        ...

    @abstractmethod
    def list_registrations_with_github(self) -> list[AgentRegistration]:
        ...

    @abstractmethod
    def update_github_verification(
        self,
        wallet: str,
        *,
        verified: bool,
        stars: int | None,
        pushed_at: str | None,
        verified_at: str,
    ) -> None:
        ...


# -----------------------------------------------------------------------------
# SQLite backend
# -----------------------------------------------------------------------------


def _row_to_transfer(row: sqlite3.Row) -> Transfer:
    return Transfer(
        tx_hash=row["tx_hash"],
        block_number=row["block_number"],
        from_wallet=row["from_wallet"],
        to_wallet=row["to_wallet"],
        amount_usdc=row["amount_usdc"],
        timestamp=row["timestamp"],
    )


def _row_to_registration(row: sqlite3.Row) -> AgentRegistration:
    return AgentRegistration(
        wallet=row["wallet"],
        name=row["name"],
        description=row["description"],
        github_url=row["github_url"],
        website_url=row["website_url"],
        basename=row["basename"],
        registered_at=row["registered_at"],
        updated_at=row["updated_at"],
        github_verified=bool(row["github_verified"]),
        github_stars=row["github_stars"],
        github_pushed_at=row["github_pushed_at"],
        github_verified_at=row["github_verified_at"],
    )


class SQLiteBackend(DatabaseBackend):
    """SQLite implementation; single file, one connection per operation."""

    def __init__(self, path: str | Path, *, timeout_sec: float = 5.0) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            for stmt in ALL_SCHEMAS:
                cur.executescript(stmt)

    # --- Transfers and rollups ---

    def insert_transfers(self, transfers: Sequence[Transfer]) -> int:
        if not transfers:
            return 0
        inserted = 0
        with self._cursor() as cur:
            for t in transfers:
                cur.execute(
                    """
                    INSERT OR IGNORE INTO usdc_transfers
                        (tx_hash, block_number, from_wallet, to_wallet, amount_usdc, timestamp)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        t.tx_hash,
                        t.block_number,
                        t.from_wallet.lower(),
                        t.to_wallet.lower(),
                        t.amount_usdc,
                        t.timestamp,
                    ),
                )
                inserted += cur.rowcount
        return inserted

    def count_transfers(self) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM usdc_transfers")
            return int(cur.fetchone()[0])

    def get_transfers_for_wallet(
        self,
        wallet: str,
        *,
        since: str | None = None,
        until: str | None = None,
        limit: int = 5000,
    ) -> list[Transfer]:
        sql = """
            SELECT tx_hash, block_number, from_wallet, to_wallet, amount_usdc, timestamp
            FROM usdc_transfers WHERE (from_wallet = ? OR to_wallet = ?)
        """
        params: list[Any] = [wallet, wallet]
        if since is not None:
            sql += " AND timestamp >= ?"
            params.append(since)
        if until is not None:
            sql += " AND timestamp < ?"
            params.append(until)
        sql += " ORDER BY timestamp ASC, id ASC LIMIT ?"
        params.append(limit)
        with self._cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [_row_to_transfer(r) for r in rows]

    def get_transfer_timestamps(self, wallet: str, *, limit: int = 1000) -> list[str]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT timestamp FROM usdc_transfers
                WHERE from_wallet = ? OR to_wallet = ?
                ORDER BY timestamp DESC LIMIT ?
                """,
                (wallet, wallet, limit),
            )
            rows = cur.fetchall()
        return [r["timestamp"] for r in reversed(rows)]

    def find_first_transfer_between(
        self, wallet_a: str, wallet_b: str, after: str, before: str
    ) -> Transfer | None:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT tx_hash, block_number, from_wallet, to_wallet, amount_usdc, timestamp
                FROM usdc_transfers
                WHERE ((from_wallet = ? AND to_wallet = ?) OR (from_wallet = ? AND to_wallet = ?))
                  AND timestamp > ? AND timestamp < ?
                ORDER BY timestamp ASC, id ASC
                LIMIT 1
                """,
                (wallet_a, wallet_b, wallet_b, wallet_a, after, before),
            )
            row = cur.fetchone()
        return _row_to_transfer(row) if row is not None else None

    def get_partner_volumes(
        self, wallet: str, *, since: str | None = None, until: str | None = None
    ) -> list[PartnerVolume]:
        sql = """
            SELECT partner,
                   SUM(sent) AS sent,
                   SUM(received) AS received,
                   COUNT(*) AS tx_count,
                   MIN(timestamp) AS first_seen
            FROM (
                SELECT to_wallet AS partner, amount_usdc AS sent, 0 AS received, timestamp
                FROM usdc_transfers WHERE from_wallet = ? AND to_wallet != ?
                UNION ALL
                SELECT from_wallet AS partner, 0 AS sent, amount_usdc AS received, timestamp
                FROM usdc_transfers WHERE to_wallet = ? AND from_wallet != ?
            )
        """
        params: list[Any] = [wallet, wallet, wallet, wallet]
        window: list[str] = []
        if since is not None:
            window.append("timestamp >= ?")
            params.append(since)
        if until is not None:
            window.append("timestamp < ?")
            params.append(until)
        if window:
            sql += " WHERE " + " AND ".join(window)
        sql += " GROUP BY partner ORDER BY SUM(sent) + SUM(received) DESC, partner ASC"
        with self._cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [
            PartnerVolume(
                partner=r["partner"],
                sent=float(r["sent"] or 0),
                received=float(r["received"] or 0),
                tx_count=int(r["tx_count"]),
                first_seen=r["first_seen"],
            )
            for r in rows
        ]

    def get_period_flows(self, wallet: str, since: str) -> tuple[float, float]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT
                    COALESCE(SUM(CASE WHEN to_wallet = ? THEN amount_usdc ELSE 0 END), 0) AS inflow,
                    COALESCE(SUM(CASE WHEN from_wallet = ? THEN amount_usdc ELSE 0 END), 0) AS outflow
                FROM usdc_transfers
                WHERE (from_wallet = ? OR to_wallet = ?) AND timestamp >= ?
                """,
                (wallet, wallet, wallet, wallet, since),
            )
            row = cur.fetchone()
        return float(row["inflow"]), float(row["outflow"])

    def get_window_activity(self, wallet: str, since: str, until: str) -> tuple[int, float]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT COUNT(*) AS tx_count, COALESCE(SUM(amount_usdc), 0) AS volume
                FROM usdc_transfers
                WHERE (from_wallet = ? OR to_wallet = ?) AND timestamp >= ? AND timestamp < ?
                """,
                (wallet, wallet, since, until),
            )
            row = cur.fetchone()
        return int(row["tx_count"]), float(row["volume"])

    def refresh_wallet_stats(self, wallets: Sequence[str], updated_at: str) -> int:
        written = 0
        with self._cursor() as cur:
            for wallet in dict.fromkeys(w.lower() for w in wallets):
                cur.execute(
                    """
                    SELECT
                        COUNT(*) AS tx_count,
                        COALESCE(SUM(CASE WHEN from_wallet = ? THEN amount_usdc ELSE 0 END), 0) AS volume_out,
                        COALESCE(SUM(CASE WHEN to_wallet = ? THEN amount_usdc ELSE 0 END), 0) AS volume_in,
                        MIN(timestamp) AS first_seen,
                        MAX(timestamp) AS last_seen
                    FROM usdc_transfers
                    WHERE from_wallet = ? OR to_wallet = ?
                    """,
                    (wallet, wallet, wallet, wallet),
                )
                agg = cur.fetchone()
                if not agg["tx_count"]:
                    continue
                cur.execute(
                    """
                    SELECT COUNT(*) FROM (
                        SELECT to_wallet AS partner FROM usdc_transfers WHERE from_wallet = ?
                        UNION
                        SELECT from_wallet AS partner FROM usdc_transfers WHERE to_wallet = ?
                    ) WHERE partner != ?
                    """,
                    (wallet, wallet, wallet),
                )
                partners = int(cur.fetchone()[0])
                cur.execute(
                    """
                    INSERT INTO wallet_transfer_stats
                        (wallet, total_tx_count, total_volume_in, total_volume_out,
                         unique_partners, first_seen, last_seen, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(wallet) DO UPDATE SET
                        total_tx_count = excluded.total_tx_count,
                        total_volume_in = excluded.total_volume_in,
                        total_volume_out = excluded.total_volume_out,
                        unique_partners = excluded.unique_partners,
                        first_seen = excluded.first_seen,
                        last_seen = excluded.last_seen,
                        updated_at = excluded.updated_at
                    """,
                    (
                        wallet,
                        int(agg["tx_count"]),
                        float(agg["volume_in"]),
                        float(agg["volume_out"]),
                        partners,
                        agg["first_seen"],
                        agg["last_seen"],
                        updated_at,
                    ),
                )
                written += 1
        return written

    def get_wallet_stats(self, wallet: str) -> WalletTransferStats | None:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM wallet_transfer_stats WHERE wallet = ?", (wallet,))
            row = cur.fetchone()
        if row is None:
            return None
        return WalletTransferStats(
            wallet=row["wallet"],
            total_tx_count=row["total_tx_count"],
            total_volume_in=row["total_volume_in"],
            total_volume_out=row["total_volume_out"],
            unique_partners=row["unique_partners"],
            first_seen=row["first_seen"],
            last_seen=row["last_seen"],
            updated_at=row["updated_at"],
        )

    # --- Scores ---

    def save_composite_score(
        self, record: CompositeScoreRecord, *, history_keep: int = DEFAULT_HISTORY_KEEP
    ) -> None:
        dims = json.dumps(record.dimensions, sort_keys=True)
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO scores
                    (wallet, composite_score, confidence, model_version, calculated_at, expires_at,
                     integrity_multiplier, tier, recommendation, sybil_flag,
                     sybil_indicators, gaming_indicators, dimensions_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(wallet) DO UPDATE SET
                    composite_score = excluded.composite_score,
                    confidence = excluded.confidence,
                    model_version = excluded.model_version,
                    calculated_at = excluded.calculated_at,
                    expires_at = excluded.expires_at,
                    integrity_multiplier = excluded.integrity_multiplier,
                    tier = excluded.tier,
                    recommendation = excluded.recommendation,
                    sybil_flag = excluded.sybil_flag,
                    sybil_indicators = excluded.sybil_indicators,
                    gaming_indicators = excluded.gaming_indicators,
                    dimensions_json = excluded.dimensions_json
                """,
                (
                    record.wallet,
                    record.composite_score,
                    record.confidence,
                    record.model_version,
                    record.calculated_at,
                    record.expires_at,
                    record.integrity_multiplier,
                    record.tier,
                    record.recommendation,
                    1 if record.sybil_flag else 0,
                    json.dumps(sorted(record.sybil_indicators)),
                    json.dumps(sorted(record.gaming_indicators)),
                    dims,
                ),
            )
            cur.execute(
                """
                INSERT INTO score_history
                    (wallet, composite_score, confidence, model_version,
                     integrity_multiplier, dimensions_json, calculated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.wallet,
                    record.composite_score,
                    record.confidence,
                    record.model_version,
                    record.integrity_multiplier,
                    dims,
                    record.calculated_at,
                ),
            )
            cur.execute(
                """
                DELETE FROM score_history
                WHERE wallet = ? AND id NOT IN (
                    SELECT id FROM score_history WHERE wallet = ? ORDER BY id DESC LIMIT ?
                )
                """,
                (record.wallet, record.wallet, history_keep),
            )

    def get_cached_score(self, wallet: str) -> CompositeScoreRecord | None:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM scores WHERE wallet = ?", (wallet,))
            row = cur.fetchone()
        if row is None:
            return None
        return CompositeScoreRecord(
            wallet=row["wallet"],
            composite_score=row["composite_score"],
            confidence=row["confidence"],
            model_version=row["model_version"],
            calculated_at=row["calculated_at"],
            expires_at=row["expires_at"],
            integrity_multiplier=row["integrity_multiplier"],
            tier=row["tier"],
            recommendation=row["recommendation"],
            sybil_flag=bool(row["sybil_flag"]),
            sybil_indicators=json.loads(row["sybil_indicators"]),
            gaming_indicators=json.loads(row["gaming_indicators"]),
            dimensions=json.loads(row["dimensions_json"]),
        )

    def get_score_history(self, wallet: str, *, limit: int = DEFAULT_HISTORY_KEEP) -> list[ScoreHistoryRecord]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, wallet, composite_score, confidence, model_version,
                       integrity_multiplier, dimensions_json, calculated_at
                FROM score_history WHERE wallet = ?
                ORDER BY id DESC LIMIT ?
                """,
                (wallet, limit),
            )
            rows = cur.fetchall()
        return [
            ScoreHistoryRecord(
                id=r["id"],
                wallet=r["wallet"],
                composite_score=r["composite_score"],
                confidence=r["confidence"],
                model_version=r["model_version"],
                integrity_multiplier=r["integrity_multiplier"],
                calculated_at=r["calculated_at"],
                dimensions=json.loads(r["dimensions_json"]),
            )
            for r in rows
        ]

    def count_cached_scores(self) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM scores")
            return int(cur.fetchone()[0])

    def get_wallets_needing_rescore(self, now: str, *, limit: int = 50) -> list[str]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT st.wallet FROM wallet_transfer_stats st
                LEFT JOIN scores s ON s.wallet = st.wallet
                WHERE s.wallet IS NULL
                   OR s.expires_at IS NULL
                   OR s.expires_at <= ?
                   OR st.updated_at > s.calculated_at
                ORDER BY st.last_seen DESC
                LIMIT ?
                """,
                (now, limit),
            )
            return [r["wallet"] for r in cur.fetchall()]

    # --- Fraud reports and query log ---

    def insert_fraud_report(self, report: FraudReport) -> int:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO fraud_reports
                    (target_wallet, reporter_wallet, reason, details, penalty_applied, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    report.target_wallet.lower(),
                    report.reporter_wallet.lower(),
                    report.reason,
                    report.details,
                    report.penalty_applied,
                    report.created_at,
                ),
            )
            return cur.lastrowid or 0

    def count_fraud_reports(self, wallet: str) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM fraud_reports WHERE target_wallet = ?", (wallet,))
            return int(cur.fetchone()[0])

    def insert_query_log(self, entry: QueryLogEntry) -> int:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO query_log (requester_wallet, target_wallet, endpoint, is_free_tier, timestamp)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    entry.requester_wallet.lower() if entry.requester_wallet else None,
                    entry.target_wallet.lower() if entry.target_wallet else None,
                    entry.endpoint,
                    1 if entry.is_free_tier else 0,
                    entry.timestamp,
                ),
            )
            return cur.lastrowid or 0

    def count_queries_for_target(self, wallet: str) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM query_log WHERE target_wallet = ?", (wallet,))
            return int(cur.fetchone()[0])

    # --- Intent signals ---

    def get_intent_candidates(self, since: str, *, limit: int = 5000) -> list[QueryLogEntry]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT q.id, q.requester_wallet, q.target_wallet, q.endpoint, q.is_free_tier, q.timestamp
                FROM query_log q
                WHERE q.is_free_tier = 0
                  AND q.requester_wallet IS NOT NULL AND q.requester_wallet != ''
                  AND q.target_wallet IS NOT NULL AND q.target_wallet != ''
                  AND q.timestamp >= ?
                  AND NOT EXISTS (
                      SELECT 1 FROM intent_signals s
                      WHERE s.requester_wallet = q.requester_wallet
                        AND s.target_wallet = q.target_wallet
                        AND s.query_timestamp = q.timestamp
                  )
                ORDER BY q.timestamp ASC, q.id ASC
                LIMIT ?
                """,
                (since, limit),
            )
            rows = cur.fetchall()
        return [
            QueryLogEntry(
                id=r["id"],
                requester_wallet=r["requester_wallet"],
                target_wallet=r["target_wallet"],
                endpoint=r["endpoint"],
                timestamp=r["timestamp"],
                is_free_tier=bool(r["is_free_tier"]),
            )
            for r in rows
        ]

    def insert_intent_signals(self, signals: Sequence[IntentSignal]) -> int:
        if not signals:
            return 0
        inserted = 0
        with self._cursor() as cur:
            for s in signals:
                cur.execute(
                    """
                    INSERT OR IGNORE INTO intent_signals
                        (requester_wallet, target_wallet, query_timestamp, followed_by_tx,
                         tx_hash, tx_timestamp, time_to_tx_ms)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        s.requester_wallet,
                        s.target_wallet,
                        s.query_timestamp,
                        1 if s.followed_by_tx else 0,
                        s.tx_hash,
                        s.tx_timestamp,
                        s.time_to_tx_ms,
                    ),
                )
                inserted += cur.rowcount
        return inserted

    def list_intent_signals(self, *, target_wallet: str | None = None) -> list[IntentSignal]:
        sql = """
            SELECT requester_wallet, target_wallet, query_timestamp, followed_by_tx,
                   tx_hash, tx_timestamp, time_to_tx_ms
            FROM intent_signals
        """
        params: list[Any] = []
        if target_wallet is not None:
            sql += " WHERE target_wallet = ?"
            params.append(target_wallet)
        sql += " ORDER BY query_timestamp ASC, id ASC"
        with self._cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [
            IntentSignal(
                requester_wallet=r["requester_wallet"],
                target_wallet=r["target_wallet"],
                query_timestamp=r["query_timestamp"],
                followed_by_tx=bool(r["followed_by_tx"]),
                tx_hash=r["tx_hash"],
                tx_timestamp=r["tx_timestamp"],
                time_to_tx_ms=r["time_to_tx_ms"],
            )
            for r in rows
        ]

    # --- Indexer state ---

    def get_indexer_state(self, key: str) -> str | None:
        with self._cursor() as cur:
            cur.execute("SELECT value FROM indexer_state WHERE key = ?", (key,))
            row = cur.fetchone()
        return row["value"] if row is not None else None

    def set_indexer_state(self, key: str, value: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO indexer_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    # --- Agent registrations ---

    def upsert_agent_registration(self, reg: AgentRegistration) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO agent_registrations
                    (wallet, name, description, github_url, website_url, basename,
                     registered_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(wallet) DO UPDATE SET
                    name = excluded.name,
                    description = excluded.description,
                    github_url = excluded.github_url,
                    website_url = excluded.website_url,
                    basename = COALESCE(excluded.basename, basename),
                    updated_at = excluded.updated_at
                """,
                (
                    reg.wallet.lower(),
                    reg.name,
                    reg.description,
                    reg.github_url,
                    reg.website_url,
                    reg.basename,
                    reg.registered_at,
                    reg.updated_at or reg.registered_at,
                ),
            )

    def get_agent_registration(self, wallet: str) -> AgentRegistration | None:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM agent_registrations WHERE wallet = ?", (wallet,))
            row = cur.fetchone()
        return _row_to_registration(row) if row is not None else None

    def list_registrations_with_github(self) -> list[AgentRegistration]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT * FROM agent_registrations
                WHERE github_url IS NOT NULL AND github_url != ''
                ORDER BY wallet ASC
                """
            )
            rows = cur.fetchall()
        return [_row_to_registration(r) for r in rows]

    def update_github_verification(
        self,
        wallet: str,
        *,
        verified: bool,
        stars: int | None,
        pushed_at: str | None,
        verified_at: str,
    ) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                UPDATE agent_registrations
                SET github_verified = ?, github_stars = ?, github_pushed_at = ?, github_verified_at = ?
                WHERE wallet = ?
                """,
                (1 if verified else 0, stars, pushed_at, verified_at, wallet),
            )


# -----------------------------------------------------------------------------
# Database facade: single entrypoint; backend is swappable.
# -----------------------------------------------------------------------------


class Database:
    """
    Database abstraction: transfers, wallet rollups, scores, query log, job state.

    Uses a Backend (SQLite for MVP); replace with PostgreSQLBackend when upgrading.
    """

    def __init__(self, backend: DatabaseBackend) -> None:
        self._backend = backend

    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        self._backend.ensure_schema()

    # --- Transfers and rollups ---

    def insert_transfers(self, transfers: Sequence[Transfer]) -> int:
        """Insert transfers ignoring known tx_hash values. Returns count inserted."""
        return self._backend.insert_transfers(transfers)

    def count_transfers(self) -> int:
        return self._backend.count_transfers()

    def get_transfers_for_wallet(
        self,
        wallet: str,
        *,
        since: str | None = None,
        until: str | None = None,
        limit: int = 5000,
    ) -> list[Transfer]:
        return self._backend.get_transfers_for_wallet(wallet, since=since, until=until, limit=limit)

    def get_transfer_timestamps(self, wallet: str, *, limit: int = 1000) -> list[str]:
        return self._backend.get_transfer_timestamps(wallet, limit=limit)

    def find_first_transfer_between(
        self, wallet_a: str, wallet_b: str, after: str, before: str
    ) -> Transfer | None:
        return self._backend.find_first_transfer_between(wallet_a, wallet_b, after, before)

    def get_partner_volumes(
        self, wallet: str, *, since: str | None = None, until: str | None = None
    ) -> list[PartnerVolume]:
        return self._backend.get_partner_volumes(wallet, since=since, until=until)

    def get_period_flows(self, wallet: str, since: str) -> tuple[float, float]:
        return self._backend.get_period_flows(wallet, since)

    def get_window_activity(self, wallet: str, since: str, until: str) -> tuple[int, float]:
        """Transfer count and volume in [since, until), counted in SQL without loading rows."""
        return self._backend.get_window_activity(wallet, since, until)

    def refresh_wallet_stats(self, wallets: Sequence[str], updated_at: str) -> int:
        return self._backend.refresh_wallet_stats(wallets, updated_at)

    def get_wallet_stats(self, wallet: str) -> WalletTransferStats | None:
        return self._backend.get_wallet_stats(wallet)

    # --- Scores ---

    def save_composite_score(
        self, record: CompositeScoreRecord, *, history_keep: int = DEFAULT_HISTORY_KEEP
    ) -> None:
        self._backend.save_composite_score(record, history_keep=history_keep)

    def get_cached_score(self, wallet: str) -> CompositeScoreRecord | None:
        return self._backend.get_cached_score(wallet)

    def get_score_history(self, wallet: str, *, limit: int = DEFAULT_HISTORY_KEEP) -> list[ScoreHistoryRecord]:
        return self._backend.get_score_history(wallet, limit=limit)

    def count_cached_scores(self) -> int:
        return self._backend.count_cached_scores()

    def get_wallets_needing_rescore(self, now: str, *, limit: int = 50) -> list[str]:
        return self._backend.get_wallets_needing_rescore(now, limit=limit)

    # --- Fraud reports and query log ---

    def insert_fraud_report(self, report: FraudReport) -> int:
        return self._backend.insert_fraud_report(report)

    def count_fraud_reports(self, wallet: str) -> int:
        return self._backend.count_fraud_reports(wallet)

    def insert_query_log(self, entry: QueryLogEntry) -> int:
        return self._backend.insert_query_log(entry)

    def count_queries_for_target(self, wallet: str) -> int:
        return self._backend.count_queries_for_target(wallet)

    # --- Intent signals ---

    def get_intent_candidates(self, since: str, *, limit: int = 5000) -> list[QueryLogEntry]:
        return self._backend.get_intent_candidates(since, limit=limit)

    def insert_intent_signals(self, signals: Sequence[IntentSignal]) -> int:
        return self._backend.insert_intent_signals(signals)

    def list_intent_signals(self, *, target_wallet: str | None = None) -> list[IntentSignal]:
        return self._backend.list_intent_signals(target_wallet=target_wallet)

    # --- Indexer state ---

    def get_indexer_state(self, key: str) -> str | None:
        return self._backend.get_indexer_state(key)

    def set_indexer_state(self, key: str, value: str) -> None:
        self._backend.set_indexer_state(key, value)

    # --- Agent registrations ---

    def upsert_agent_registration(self, reg: AgentRegistration) -> None:
        self._backend.upsert_agent_registration(reg)

    def get_agent_registration(self, wallet: str) -> AgentRegistration | None:
        return self._backend.get_agent_registration(wallet)

    def list_registrations_with_github(self) -> list[AgentRegistration]:
        return self._backend.list_registrations_with_github()

    def update_github_verification(
        self,
        wallet: str,
        *,
        verified: bool,
        stars: int | None,
        pushed_at: str | None,
        verified_at: str,
    ) -> None:
        self._backend.update_github_verification(
            wallet, verified=verified, stars=stars, pushed_at=pushed_at, verified_at=verified_at
        )


def get_database(path: str | Path) -> Database:
    """Return a Database using SQLite at path, with schema ensured."""
    db = Database(SQLiteBackend(path))
    db.ensure_schema()
    logger.debug("database_ready", path=str(path))
    return db
