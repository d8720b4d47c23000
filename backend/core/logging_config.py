"""Structured logging configuration using structlog.

Every entry carries the service name; entries emitted while a workflow run
is in progress also carry ``run_id`` and ``automation_id`` (bound with
``run_log_context``), so handler and hook logs can be grouped per run.
Output is JSON unless LOG_FORMAT is "text" or the process runs in
development.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator

import structlog
from app.config import get_settings


@contextmanager
def run_log_context(run_id: str, automation_id: str) -> Iterator[None]:
    """Bind run identifiers to every log entry emitted inside the block.

    Bindings live in contextvars, so concurrent runs on one event loop
    (each in its own task) never see each other's identifiers.
    """
    with structlog.contextvars.bound_contextvars(run_id=run_id, automation_id=automation_id):
        yield


def _add_service(service: str):
    def processor(_logger, _method_name, event_dict):
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def setup_logging() -> None:
    """Configure structlog and the stdlib root logger for the engine process."""
    settings = get_settings()

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        _add_service(settings.APP_NAME),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development or settings.LOG_FORMAT == "text":
        renderers: list = [structlog.dev.ConsoleRenderer(colors=settings.is_development)]
    else:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

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
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *renderers,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Audit-log SQL and webhook transport are only interesting when debugging
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if settings.SQLALCHEMY_ECHO else logging.WARNING
    )
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
