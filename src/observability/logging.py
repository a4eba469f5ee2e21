"""
structlog setup for the bin-monitor processes (API server and CLI).

Production renders one JSON object per line; development renders
coloured console output. Every line carries the service name, any
contextvars bound by the request middleware or the ingestion
coordinator (``request_id``, ``bin_code``, ``bin_id``) and, when a span
is active, ``trace_id``/``span_id``.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from src.config.settings import get_settings
from src.observability.tracing import add_trace_context

# Client libraries whose INFO output drowns out ingestion logs
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "asyncpg", "redis", "uvicorn.access")


def _add_service(service: str) -> Processor:
    def processor(logger: WrappedLogger, method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def setup_logging(level: str | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Overrides ``LOG_LEVEL`` (the CLI's ``--debug`` passes ``"DEBUG"``)

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Reading ingested", bin_code="BIN-001", fill_level=97)
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        _add_service(settings.otel_service_name),
        add_trace_context,
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.is_production:
        renderer: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Repositories, transports and the hub log through stdlib loggers
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
