"""
Centralized logging configuration for the puppet session layer.

Every component logs through structlog. Lifecycle transitions, watchdog
resets and event emission go through the helpers below so each backend
produces the same structured records, and credentials carried by the
session options never reach the rendered output.
"""
import logging
import sys
from typing import Any, Optional, TextIO

import structlog
from structlog.types import EventDict, FilteringBoundLogger, WrappedLogger

# Keys whose values are replaced before rendering
SECRET_KEYS = frozenset({"token", "password", "secret"})
MASK = "***"


def mask_secrets(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    """Processor replacing credential values with a fixed mask."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = MASK
    return event_dict


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None,
    stream: Optional[TextIO] = None
) -> None:
    """
    Configure structlog over the standard library for the whole process.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: Render JSON lines instead of the colored console format
        include_timestamp: Add an ISO timestamp to each record
        include_caller: Add filename and line number to each record
        extra_processors: Processors run after the built-in ones, before rendering
        stream: Output stream, stdout when omitted
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        stream=stream or sys.stdout,
        format="%(message)s",
        force=True,
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        mask_secrets,
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))

    processors.extend(extra_processors or [])
    processors.append(
        structlog.processors.JSONRenderer() if format_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    return structlog.get_logger(name)


def get_state_logger(name: str) -> FilteringBoundLogger:
    """Logger for session state transitions; records are part of the audit trail."""
    return get_logger(name).bind(subsystem="state_machine", audit_trail=True)


def get_watchdog_logger(name: str) -> FilteringBoundLogger:
    """Logger for liveness feeds and resets."""
    return get_logger(name).bind(subsystem="watchdog")


def log_state_transition(
    logger: FilteringBoundLogger,
    session: str,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log one session state change.

    Args:
        logger: Structlog logger instance
        session: Name of the puppet session
        from_state: State being left
        to_state: State being entered
        trigger: Operation that caused the change (start, stop, watchdog_reset, ...)
        context: Additional context data
    """
    bound_logger = logger.bind(
        session=session,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("State transition")


def log_watchdog_reset(
    logger: FilteringBoundLogger,
    watchdog: str,
    last_food: str,
    timeout_seconds: float,
    silent_seconds: Optional[float] = None
) -> None:
    """Log a missed feed; ``silent_seconds`` is the time since the last feed."""
    logger.warning(
        "Watchdog reset: feed missed",
        watchdog=watchdog,
        last_food=last_food,
        timeout_seconds=timeout_seconds,
        silent_seconds=None if silent_seconds is None else round(silent_seconds, 3),
    )


def log_event_emission(
    logger: FilteringBoundLogger,
    session: str,
    event_name: str,
    args: tuple,
    subscriber_count: int
) -> None:
    """Log an event handed to subscribers; arguments are stringified."""
    logger.debug(
        "Event emitted",
        session=session,
        event_name=event_name,
        event_args=[str(arg) for arg in args],
        subscriber_count=subscriber_count
    )
