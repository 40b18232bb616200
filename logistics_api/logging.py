"""
structlog configuration.

Console rendering in the DEV environment, JSON lines everywhere else. Both
structlog loggers and stdlib loggers (uvicorn, asyncpg) go through the same
``ProcessorFormatter`` so every line shares one format.
"""

from logging import StreamHandler, getLevelName, getLogger

from structlog import configure
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import (
    JSONRenderer,
    StackInfoRenderer,
    TimeStamper,
    add_log_level,
    format_exc_info,
)
from structlog.stdlib import LoggerFactory, ProcessorFormatter, add_logger_name

__all__ = ["setup_logging"]


def setup_logging(config) -> None:
    shared_processors = [
        merge_contextvars,
        add_log_level,
        add_logger_name,
        StackInfoRenderer(),
        TimeStamper(fmt="iso"),
    ]

    configure(
        processors=[
            *shared_processors,
            format_exc_info,
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer = ConsoleRenderer() if config.ENVIRONMENT == "DEV" else JSONRenderer()
    formatter = ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = StreamHandler()
    handler.setFormatter(formatter)

    root = getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getLevelName(config.LOG_LEVEL.upper()))
