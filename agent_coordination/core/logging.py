from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping

import structlog

SERVICE_NAME = "agent-coordination"


def add_service_name(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog and standard logging for the coordination engine.

    Values bound through ``coordination_log_context`` are merged into every
    entry logged inside that block, so lines from executors, the dispatcher
    and the invoker carry the run's ``coordination_id``.
    """
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@contextmanager
def coordination_log_context(**values: Any) -> Iterator[None]:
    """Bind run identifiers for the current task; restored on exit."""
    with structlog.contextvars.bound_contextvars(**values):
        yield


def get_logger(*, name: str | None = None, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger(name)
    if kwargs:
        return logger.bind(**kwargs)
    return logger
