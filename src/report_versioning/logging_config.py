"""
structlog setup shared by the API server and the history CLI.

Every module logs through ``structlog.get_logger(__name__)`` with snake_case
event names. Sanitization security events (``sanitization_event``), quota
warnings and auto-save failures all pass through the chain configured here,
so a single ``REPORT_VERSIONING_LOG_JSON`` switch decides whether operators
get machine-parsable lines or a readable console.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog

from .config import settings


def setup_logging(stream: Optional[TextIO] = None) -> None:
    """
    Install the processor chain for report versioning logs.

    Args:
        stream: Where rendered lines go; stdout when None. ``report-history``
            passes stderr so exported JSON on stdout is never interleaved
            with log lines.

    Context bound with ``structlog.contextvars`` (a request's path, for
    instance) is merged into every event. Events below
    ``settings.log_level`` are dropped before rendering.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.processors.JSONRenderer()
                if settings.log_json
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=True,
    )
