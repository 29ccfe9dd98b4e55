"""
Logging for Backend AgentScore: get_logger(__name__) in every module, bind_job() in scheduled jobs.
"""

from backend_agentscore.agentscore_logging.logger import bind_job, get_logger

__all__ = ["bind_job", "get_logger"]
