from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, cast

import structlog
from structlog.dev import ConsoleRenderer
from structlog.stdlib import BoundLogger
from structlog.types import Processor

try:
    from lognexus import __version__ as LOGNEXUS_VERSION
except Exception:
    LOGNEXUS_VERSION = os.getenv("APP_VERSION", "unknown")


def _coerce_level(level: str | int) -> int:
    """Translate a string/int level into the numeric logging level."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if isinstance(resolved, str):
            raise ValueError(f"Invalid log level: {level}")
        return int(resolved)
    return int(level)


def build_formatter(json_output: bool = True) -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering both structlog and foreign stdlib records."""
    renderer = structlog.processors.JSONRenderer() if json_output else ConsoleRenderer(colors=False)
    return structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=_shared_processors(),
    )


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def configure_logging(
    level: str | int = "INFO",
    json_output: bool = True,
    *,
    console: bool = True,
    extra_handlers: Iterable[logging.Handler] = (),
) -> None:
    """
    Configure structlog with JSON (or console) rendering and stdlib bridge.

    Every handler (the console one and any ``extra_handlers``, e.g. a
    ShipperHandler) receives the same rendered line.
    """
    numeric_level = _coerce_level(level)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = build_formatter(json_output)
    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    handlers.extend(extra_handlers)
    for handler in handlers:
        handler.setFormatter(formatter)
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)
    logging.captureWarnings(True)


def get_logger(name: str) -> BoundLogger:
    """
    Return a structlog logger with default service metadata bound.

    The logger stays lazy, so module-level loggers created at import time
    still pick up the configuration applied later by configure_logging().
    """
    service_name = os.getenv("SERVICE_NAME", "lognexus")
    version = os.getenv("APP_VERSION", LOGNEXUS_VERSION)
    return cast(
        BoundLogger,
        structlog.get_logger(name, service_name=service_name, version=version),
    )


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind contextual data for the duration of a block (works across async tasks)."""
    if not kwargs:
        yield
        return

    previous = structlog.contextvars.get_contextvars()
    structlog.contextvars.bind_contextvars(**kwargs)
    try:
        yield
    finally:
        current = structlog.contextvars.get_contextvars()
        for key in kwargs:
            if key in previous:
                current[key] = previous[key]
            else:
                current.pop(key, None)
        structlog.contextvars.clear_contextvars()
        if current:
            structlog.contextvars.bind_contextvars(**current)
