"""Logging and Logfire observability for the lending core."""

import functools
import inspect
import logging
import sys
from collections.abc import Callable
from datetime import datetime
from typing import Any

import logfire

from .config import LendingConfig, get_config

logger = logging.getLogger(__name__)

# Library Business Metrics
circulation_events = logfire.metric_counter(
    "library.circulation", description="Circulation events (borrow/return) by outcome"
)

fines_assessed = logfire.metric_counter(
    "library.fines.assessed", description="Loans flagged overdue with a fine"
)

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: LendingConfig | None = None) -> None:
    """Install the package log handler on stderr."""
    config = config or get_config()
    logging.basicConfig(
        level=config.effective_log_level,
        format=_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    # SQL echo is noisy even in debug mode
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def initialize_observability(config: LendingConfig | None = None) -> None:
    """Initialize Logfire with configuration."""
    config = config or get_config()

    if not config.observability_enabled:
        logger.debug("Observability disabled via configuration")
        return

    logfire.configure(
        token=config.logfire_token,
        service_name=config.service_name,
        service_version=config.service_version,
        environment=config.environment,
        send_to_logfire="if-token-present",
        console=False,
    )
    logger.info("Observability initialized for %s", config.service_name)


def record_circulation_event(event_type: str, outcome: str) -> None:
    """Record a borrow/return attempt."""
    circulation_events.add(1, {"event_type": event_type, "outcome": outcome})


def trace_operation(operation: str):
    """Decorator to trace a lending core operation."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with logfire.span(
                "lending.{operation}",
                operation=operation,
            ) as span:
                start_time = datetime.now()
                arguments = inspect.signature(func).bind_partial(*args, **kwargs).arguments
                _add_attributes(span, "input", {k: v for k, v in arguments.items() if k != "self"})

                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    span.set_attribute("operation.success", False)
                    span.set_attribute("operation.error", type(e).__name__)
                    raise

                span.set_attribute("operation.success", True)
                span.set_attribute(
                    "operation.duration_ms", (datetime.now() - start_time).total_seconds() * 1000
                )
                return result

        return wrapper

    return decorator


def _add_attributes(span, prefix: str, data: dict[str, Any]) -> None:
    for key, value in data.items():
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)
