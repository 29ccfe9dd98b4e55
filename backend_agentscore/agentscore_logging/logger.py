"""
structlog setup for the AgentScore service.

Every record is one line carrying event_type (the snake_case event name a
module passes to logger.info/warning/...), level, logger, service and a
millisecond UTC timestamp in the same Z format used for persisted rows, so
log lines and database rows can be joined on time. Background jobs log
through bind_job(), which adds job=<name> to every record.

LOG_LEVEL picks the minimum level; LOG_FORMAT=console switches from JSON
lines to the coloured dev renderer. This module must not import other
backend_agentscore modules, since all of them import it.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

SERVICE_NAME = "agentscore"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _stamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add service and a YYYY-MM-DDTHH:MM:SS.mmmZ timestamp unless the caller set one."""
    event_dict.setdefault("service", SERVICE_NAME)
    if "timestamp" not in event_dict:
        now = datetime.now(timezone.utc)
        event_dict["timestamp"] = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_structlog(level: int = LOG_LEVEL_VALUE, fmt: str = LOG_FORMAT) -> None:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _stamp,
        _event_type,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Logger bound to the calling module's name.

        logger = get_logger(__name__)
        logger.info("usdc_chunk_indexed", from_block=100, to_block=199, inserted=12)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_job(job_name: str) -> structlog.BoundLogger:
    """Logger for a scheduled job; every record carries job=<job_name>."""
    return get_logger("backend_agentscore.jobs").bind(job=job_name)
