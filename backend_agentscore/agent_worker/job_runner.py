"""
Job execution primitives: single-flight runs, explicit results, status collection.

Every background job is wrapped in a SingleFlightJob. A run returns a JobResult
(ok / skipped / failed plus the job's own counters); a trigger that arrives
while the previous run still holds the lock returns a skipped result instead
of running twice. JobStatusCollector keeps the latest result and run counters
per job for the health endpoint; no job writes shared module-level state.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from backend_agentscore.agentscore_logging import bind_job
from backend_agentscore.utils.time_utils import to_iso, utc_now

JobFunc = Callable[[], Awaitable["dict[str, Any] | None"]]


class JobStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class JobResult:
    """Outcome of one job invocation."""

    job: str
    status: JobStatus
    started_at: str
    finished_at: str
    duration_ms: int = 0
    details: dict[str, Any] = field(default_factory=dict)
    """Job-specific counters, e.g. {"inserted": 12, "to_block": 123}."""
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job": self.job,
            "status": self.status.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_ms": self.duration_ms,
            "details": dict(self.details),
            "error": self.error,
        }


@dataclass
class _JobCounters:
    runs: int = 0
    failures: int = 0
    skipped: int = 0
    last_result: JobResult | None = None
    last_success: JobResult | None = None


class JobStatusCollector:
    """Aggregates JobResults per job name."""

    def __init__(self) -> None:
        self._jobs: dict[str, _JobCounters] = {}

    def record(self, result: JobResult) -> None:
        counters = self._jobs.setdefault(result.job, _JobCounters())
        counters.last_result = result
        if result.status is JobStatus.SKIPPED:
            counters.skipped += 1
            return
        counters.runs += 1
        if result.status is JobStatus.FAILED:
            counters.failures += 1
        else:
            counters.last_success = result

    def latest(self, job: str) -> JobResult | None:
        counters = self._jobs.get(job)
        return counters.last_result if counters else None

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Per-job view for the health endpoint."""
        return {
            name: {
                "runs": c.runs,
                "failures": c.failures,
                "skipped": c.skipped,
                "last_result": c.last_result.to_dict() if c.last_result else None,
                "last_success_at": c.last_success.finished_at if c.last_success else None,
            }
            for name, c in sorted(self._jobs.items())
        }


class SingleFlightJob:
    """At most one concurrent run per job; re-entrant triggers are skipped."""

    def __init__(self, name: str, func: JobFunc, collector: JobStatusCollector | None = None) -> None:
        self.name = name
        self._func = func
        self._collector = collector
        self._lock = asyncio.Lock()
        self._logger = bind_job(name)

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def _finish(self, result: JobResult) -> JobResult:
        if self._collector is not None:
            self._collector.record(result)
        return result

    async def run(self) -> JobResult:
        if self._lock.locked():
            now = to_iso(utc_now())
            self._logger.info("job_skipped_already_running")
            return self._finish(JobResult(self.name, JobStatus.SKIPPED, now, now))

        async with self._lock:
            started_at = to_iso(utc_now())
            t0 = time.monotonic()
            try:
                details = await self._func() or {}
            except Exception as e:
                duration_ms = int((time.monotonic() - t0) * 1000)
                self._logger.exception("job_failed", duration_ms=duration_ms, error=str(e)[:300])
                return self._finish(
                    JobResult(
                        self.name,
                        JobStatus.FAILED,
                        started_at,
                        to_iso(utc_now()),
                        duration_ms=duration_ms,
                        error=f"{type(e).__name__}: {e}",
                    )
                )
            duration_ms = int((time.monotonic() - t0) * 1000)
            self._logger.info("job_done", duration_ms=duration_ms, details=details)
            return self._finish(
                JobResult(
                    self.name,
                    JobStatus.OK,
                    started_at,
                    to_iso(utc_now()),
                    duration_ms=duration_ms,
                    details=dict(details),
                )
            )
