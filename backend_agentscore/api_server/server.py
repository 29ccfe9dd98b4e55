"""
FastAPI server: health and job status over the scoring pipeline.

The lifespan opens the database and, unless AGENTSCORE_RUN_JOBS=0, starts the
job scheduler on the server's event loop. GET /health reports uptime, cached
score count, the indexer cursor and the latest result per job.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from pydantic import BaseModel, Field

from backend_agentscore import __version__
from backend_agentscore.agent_worker.job_runner import JobStatusCollector
from backend_agentscore.agent_worker.runner import build_scheduler
from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.config import get_settings
from backend_agentscore.database import Database, get_database
from backend_agentscore.ingestion.usdc_indexer import STATE_KEY

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------

def get_db(request: Request) -> Database:
    """Dependency: app-scoped Database opened by the lifespan."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        db = get_database(get_settings().db_path)
        request.app.state.db = db
    return db


def get_collector(request: Request) -> JobStatusCollector:
    collector = getattr(request.app.state, "collector", None)
    if collector is None:
        collector = JobStatusCollector()
        request.app.state.collector = collector
    return collector


# -----------------------------------------------------------------------------
# Response models
# -----------------------------------------------------------------------------

class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = Field(..., description="ok when the API is serving")
    version: str = Field(..., description="Service version")
    uptime_sec: float = Field(..., ge=0, description="Seconds since startup")
    cached_scores: int = Field(..., ge=0, description="Wallets with a cached composite score")
    usdc_last_indexed_block: int | None = Field(None, description="USDC indexer cursor, null before the first run")
    jobs_running: bool = Field(False, description="Background scheduler started in this process")
    jobs: dict[str, dict[str, Any]] = Field(default_factory=dict, description="Latest result and counters per job")


# -----------------------------------------------------------------------------
# Lifespan: open database, start background jobs on the same event loop
# -----------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    db = get_database(settings.db_path)
    collector = JobStatusCollector()
    app.state.db = db
    app.state.collector = collector
    app.state.started_at = time.monotonic()
    app.state.scheduler = None

    if settings.run_jobs:
        scheduler = build_scheduler(settings, db, collector)
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info("api_scheduler_started", jobs=scheduler.job_names)
    else:
        logger.info("api_scheduler_disabled")

    yield

    if app.state.scheduler is not None:
        await app.state.scheduler.stop()
        logger.info("api_scheduler_stopped")


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Backend AgentScore API",
    description="Health and job status for the agent wallet reputation pipeline.",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health", response_model=HealthResponse)
def health(
    request: Request,
    db: Database = Depends(get_db),
    collector: JobStatusCollector = Depends(get_collector),
) -> HealthResponse:
    """Liveness probe plus pipeline status."""
    started_at = getattr(request.app.state, "started_at", None)
    uptime = time.monotonic() - started_at if started_at is not None else 0.0
    cursor_raw = db.get_indexer_state(STATE_KEY)
    cursor = int(cursor_raw) if cursor_raw and cursor_raw.strip().isdigit() else None
    return HealthResponse(
        status="ok",
        version=__version__,
        uptime_sec=round(uptime, 3),
        cached_scores=db.count_cached_scores(),
        usdc_last_indexed_block=cursor,
        jobs_running=getattr(request.app.state, "scheduler", None) is not None,
        jobs=collector.snapshot(),
    )
