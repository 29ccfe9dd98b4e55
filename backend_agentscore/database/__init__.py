"""
Database abstraction layer: transfers, wallet rollups, scores, query log, job state.

MVP uses SQLite via Database and get_database(); backend is swappable for PostgreSQL.
"""

from backend_agentscore.database.database import (
    Database,
    DatabaseBackend,
    SQLiteBackend,
    get_database,
)
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

__all__ = [
    "Database",
    "DatabaseBackend",
    "SQLiteBackend",
    "get_database",
    "AgentRegistration",
    "CompositeScoreRecord",
    "FraudReport",
    "IntentSignal",
    "PartnerVolume",
    "QueryLogEntry",
    "ScoreHistoryRecord",
    "Transfer",
    "WalletTransferStats",
]
