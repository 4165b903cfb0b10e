"""
structlog setup for the relay.

Production writes one JSON object per line; other environments get the
coloured console renderer. A poll cycle binds ``cycle_id`` through
``bind_context`` so every line it emits, from any module, carries it.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from clip_relay.config.settings import get_settings

# Libraries that log every request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncpg", "asyncio")


def _renderers(production: bool) -> list[Processor]:
    if production:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def setup_logging() -> None:
    """
    Route structlog and stdlib logging through one pipeline.

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Clip delivered", clip_id="AbcDef", destination="123")
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        *_renderers(settings.is_production),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**fields) -> None:
    """Attach ``fields`` to every log line until ``clear_context()``."""
    structlog.contextvars.bind_contextvars(**fields)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
