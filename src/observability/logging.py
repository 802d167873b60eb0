"""Structured logging configuration."""

import logging
import sys
from typing import TextIO

import structlog


def configure_logging(
    level: int | str = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Route feed engine events through structlog.

    Events are JSON lines by default so session logs can be grepped by
    ``session_id``. Loggers are not cached, which lets tests reconfigure
    output between cases.

    Args:
        level: Minimum level, as a number or a name such as ``"warning"``.
        output: Stream for rendered events.
        json_format: Render JSON lines instead of the console format.
    """
    if isinstance(level, str):
        level = logging.getLevelNamesMapping()[level.upper()]

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_format
        else structlog.dev.ConsoleRenderer(colors=output.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(format="%(message)s", stream=output, level=level)
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def bind_session_context(session_id: str, topic_id: str) -> None:
    """Bind feed session context to all subsequent log messages.

    Args:
        session_id: Unique feed session identifier.
        topic_id: Topic the session is scoped to.
    """
    structlog.contextvars.bind_contextvars(session_id=session_id, topic_id=topic_id)


def clear_session_context() -> None:
    """Clear feed session context from log messages."""
    structlog.contextvars.unbind_contextvars("session_id", "topic_id")
