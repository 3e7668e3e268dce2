"""Structured logging configuration.

JSON-formatted logs with per-search context (session_id, request_id).

Pattern: structlog with standard library integration.
"""
import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Iterator

import structlog


def setup_structured_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Configure structlog on top of the standard library.

    Hosts keep the JSON lines (session_id and request_id come from
    search_context); the terminal CLI asks for the console renderer.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: JSON lines when True, human-readable console output otherwise
    """
    level = getattr(logging, log_level.upper())
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        # ConsoleRenderer formats exc_info itself
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get logger instance with structured logging.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def generate_request_id() -> str:
    """Generate unique request ID."""
    return f"req-{uuid.uuid4().hex[:12]}"


@contextmanager
def search_context(session_id: str, request_id: str = None) -> Iterator[str]:
    """
    Bind session and request ids to every log line emitted inside the block.

    Args:
        session_id: Match session being operated on
        request_id: Host request id (generated when omitted)

    Yields:
        The request id that was bound
    """
    request_id = request_id or generate_request_id()
    with structlog.contextvars.bound_contextvars(session_id=session_id, request_id=request_id):
        yield request_id
