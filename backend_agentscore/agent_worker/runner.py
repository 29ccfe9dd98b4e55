"""
Job scheduler: runs each background job on its own interval inside the API's event loop.

- usdc_indexer: every INDEXER_POLL_SEC (15s), retried after 30s when a run fails
- score_refresh: hourly
- intent_matcher: every 6h
- github_reverify: daily

Each job loop runs once at start, then waits on the stop event with the job's
interval as timeout, so stop() wakes every loop immediately. Started and
stopped by the FastAPI lifespan; never blocks request handling.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx

from backend_agentscore.agent_worker.github_reverify import run_github_reverify
from backend_agentscore.agent_worker.intent_matcher import run_intent_matcher
from backend_agentscore.agent_worker.job_runner import (
    JobFunc,
    JobResult,
    JobStatus,
    JobStatusCollector,
    SingleFlightJob,
)
from backend_agentscore.agent_worker.score_refresh import run_score_refresh
from backend_agentscore.agentscore_logging import get_logger
from backend_agentscore.analysis_engine.scorer import CompositeScorer
from backend_agentscore.config import Settings
from backend_agentscore.database import Database
from backend_agentscore.ingestion.rpc_client import BaseRpcClient
from backend_agentscore.ingestion.usdc_indexer import IndexerConfig, UsdcTransferIndexer

logger = get_logger(__name__)

SHUTDOWN_TIMEOUT_SEC = 15.0
INDEXER_RETRY_SEC = 30.0


@dataclass
class ScheduledJob:
    job: SingleFlightJob
    interval_sec: float
    retry_sec: float | None = None
    """Wait after a failed run; None uses interval_sec."""


class JobScheduler:
    """Owns one asyncio task per registered job."""

    def __init__(self, collector: JobStatusCollector | None = None) -> None:
        self.collector = collector or JobStatusCollector()
        self._jobs: dict[str, ScheduledJob] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._stop: asyncio.Event | None = None
        self._closers: list[Any] = []

    @property
    def job_names(self) -> list[str]:
        return list(self._jobs)

    @property
    def started(self) -> bool:
        return bool(self._tasks)

    def register(
        self,
        name: str,
        func: JobFunc,
        interval_sec: float,
        *,
        retry_sec: float | None = None,
    ) -> SingleFlightJob:
        if name in self._jobs:
            raise ValueError(f"job already registered: {name}")
        if interval_sec <= 0:
            raise ValueError(f"interval_sec must be positive for {name}")
        job = SingleFlightJob(name, func, self.collector)
        self._jobs[name] = ScheduledJob(job=job, interval_sec=interval_sec, retry_sec=retry_sec)
        return job

    def add_closer(self, closer: Any) -> None:
        """Register an async close callable (e.g. an HTTP client's aclose) run on stop()."""
        self._closers.append(closer)

    async def trigger(self, name: str) -> JobResult:
        """Run a job now, outside its interval; skipped if it is already running."""
        scheduled = self._jobs.get(name)
        if scheduled is None:
            raise KeyError(name)
        return await scheduled.job.run()

    async def _loop(self, scheduled: ScheduledJob, stop: asyncio.Event) -> None:
        name = scheduled.job.name
        logger.info("job_loop_started", job=name, interval_sec=scheduled.interval_sec)
        while not stop.is_set():
            result = await scheduled.job.run()
            wait = scheduled.interval_sec
            if result.status is JobStatus.FAILED and scheduled.retry_sec is not None:
                wait = scheduled.retry_sec
            try:
                await asyncio.wait_for(stop.wait(), timeout=wait)
            except asyncio.TimeoutError:
                continue
        logger.info("job_loop_stopped", job=name)

    def start(self) -> None:
        """Spawn the job loops on the running event loop."""
        if self._tasks:
            return
        self._stop = asyncio.Event()
        for scheduled in self._jobs.values():
            task = asyncio.create_task(self._loop(scheduled, self._stop), name=f"job-{scheduled.job.name}")
            self._tasks.append(task)
        logger.info("scheduler_started", jobs=self.job_names)

    async def stop(self, timeout_sec: float = SHUTDOWN_TIMEOUT_SEC) -> None:
        if self._stop is not None:
            self._stop.set()
        if self._tasks:
            done, pending = await asyncio.wait(self._tasks, timeout=timeout_sec)
            if pending:
                logger.warning("scheduler_shutdown_timeout", pending=len(pending), timeout_sec=timeout_sec)
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
            self._tasks = []
        for closer in self._closers:
            try:
                await closer()
            except Exception as e:
                logger.warning("scheduler_close_failed", error=str(e)[:200])
        self._closers = []
        logger.info("scheduler_stopped")


def build_scheduler(
    settings: Settings,
    db: Database,
    collector: JobStatusCollector | None = None,
    *,
    rpc: BaseRpcClient | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> JobScheduler:
    """Register the four background jobs against one database and one RPC client."""
    scheduler = JobScheduler(collector)
    if rpc is None:
        rpc = BaseRpcClient(
            settings.rpc_url,
            timeout_sec=settings.rpc_timeout_sec,
            rate_per_sec=settings.rpc_rate_per_sec,
        )
        scheduler.add_closer(rpc.aclose)
    if http_client is None:
        http_client = httpx.AsyncClient()
        scheduler.add_closer(http_client.aclose)

    indexer = UsdcTransferIndexer(
        db,
        rpc,
        IndexerConfig(
            usdc_address=settings.usdc_address,
            chunk_size=settings.log_chunk_size,
            yield_ms=settings.indexer_yield_ms,
        ),
    )
    scorer = CompositeScorer(
        db,
        chain=rpc,
        usdc_address=settings.usdc_address,
        weights=settings.dimension_weights,
    )

    async def score_refresh() -> dict[str, Any]:
        return await run_score_refresh(db, scorer)

    async def intent_matcher() -> dict[str, Any]:
        return await run_intent_matcher(db)

    async def github_reverify() -> dict[str, Any]:
        return await run_github_reverify(db, client=http_client, token=settings.github_token)

    scheduler.register(
        "usdc_indexer",
        indexer.run_once,
        settings.indexer_poll_sec,
        retry_sec=max(settings.indexer_poll_sec, INDEXER_RETRY_SEC),
    )
    scheduler.register("score_refresh", score_refresh, settings.score_refresh_interval_sec)
    scheduler.register("intent_matcher", intent_matcher, settings.intent_matcher_interval_sec)
    scheduler.register("github_reverify", github_reverify, settings.github_reverify_interval_sec)
    return scheduler
