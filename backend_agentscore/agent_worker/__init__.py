"""
Agent worker package: background jobs for indexing, rescoring and labelling.

Runs the USDC indexer, score refresh, intent matcher and GitHub re-verification
on their own intervals inside the API process, one run at a time per job.
"""

from backend_agentscore.agent_worker.job_runner import JobResult, JobStatus, JobStatusCollector, SingleFlightJob
from backend_agentscore.agent_worker.runner import JobScheduler, build_scheduler

__all__ = [
    "JobResult",
    "JobScheduler",
    "JobStatus",
    "JobStatusCollector",
    "SingleFlightJob",
    "build_scheduler",
]
