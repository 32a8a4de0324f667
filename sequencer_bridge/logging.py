"""Sequencer Bridge — Structured logging configuration.

Uses structlog for structured, levelled logging with consistent key names
in both processes.  All log entries include:
    - timestamp (ISO-8601)
    - level
    - module (Python logger name)
    - request_id / method / scenario_id (bound via context variables when available)

Logs always go to standard error: the helper's standard output is the
protocol channel and must carry nothing but protocol lines.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

# Context variables, automatically injected into log records when set.
_ctx_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_ctx_method: ContextVar[str | None] = ContextVar("method", default=None)
_ctx_scenario_id: ContextVar[str | None] = ContextVar("scenario_id", default=None)


def bind_request_context(
    request_id: str | None = None,
    method: str | None = None,
    scenario_id: str | None = None,
) -> None:
    """Bind request context to the current async task / thread."""
    if request_id is not None:
        _ctx_request_id.set(request_id)
    if method is not None:
        _ctx_method.set(method)
    if scenario_id is not None:
        _ctx_scenario_id.set(scenario_id)


def clear_request_context() -> None:
    _ctx_request_id.set(None)
    _ctx_method.set(None)
    _ctx_scenario_id.set(None)


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


def _inject_context_vars(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Add ContextVar values to every log record."""
    if (request_id := _ctx_request_id.get()) is not None:
        event_dict["request_id"] = request_id
    if (method := _ctx_method.get()) is not None:
        event_dict["method"] = method
    if (scenario_id := _ctx_scenario_id.get()) is not None:
        event_dict["scenario_id"] = scenario_id
    return event_dict


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Call once at process startup, before any log statements.

    Args:
        level:    One of debug, info, warning, error, critical.
        format:   ``"console"`` for human-readable output, ``"json"`` for
                  machine-readable structured logs.
        log_file: Optional path to write logs to in addition to stderr.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(level.upper())

    # Silence noisy third-party loggers.
    for noisy in ("asyncio", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger for *name*.

    Usage::

        log = get_logger(__name__)
        log.info("request_dispatched", request_id="abc123", method="executeClick")
    """
    return structlog.get_logger(name)
