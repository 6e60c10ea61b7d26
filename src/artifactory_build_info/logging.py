"""structlog configuration for plugin runs.

The entry point calls configure_logging() once and hands the returned logger
to each component; components only ever bind extra context to it.

Logs emitted inside an active OpenTelemetry span (jfrog commands,
reconciliation) carry its trace_id and span_id.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from opentelemetry import trace
from opentelemetry.trace import INVALID_SPAN_ID, INVALID_TRACE_ID
from structlog.typing import EventDict, FilteringBoundLogger

_LEVELS: dict[str, int] = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
}


def resolve_level(log_level: str) -> int:
    """Map a plugin log level name to a stdlib level number.

    Unknown names fall back to INFO.
    """
    return _LEVELS.get(log_level.strip().lower(), logging.INFO)


def add_trace_context(
    logger: Any,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Add trace_id and span_id of the active span to the event.

    Nothing is added outside a valid span, which is always the case when
    no OpenTelemetry SDK is installed.
    """
    ctx = trace.get_current_span().get_span_context()
    if ctx.trace_id != INVALID_TRACE_ID and ctx.span_id != INVALID_SPAN_ID:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def configure_logging(
    log_level: str = "info",
    *,
    stream: TextIO | None = None,
) -> FilteringBoundLogger:
    """Configure structlog and return the run's root logger.

    Output is key/value console rendering without timestamps (the CI runner
    timestamps step output itself), written to stderr.

    Args:
        log_level: Minimum level (trace, debug, info, warning, error, fatal).
        stream: Output stream, stderr if None.

    Returns:
        Logger to pass to plugin components.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            add_trace_context,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolve_level(log_level)),
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )
    log: FilteringBoundLogger = structlog.get_logger("artifactory_build_info")
    return log


__all__ = ["add_trace_context", "configure_logging", "resolve_level"]
