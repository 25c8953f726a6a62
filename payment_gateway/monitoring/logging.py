"""
Structured logging configuration.

structlog builds the event (context variables, request id, exception info)
and hands it to the standard library as record extras; python-json-logger
renders each record once as a JSON line. Third-party loggers (uvicorn,
httpx) go through the same handler.
"""
import logging
import sys
from typing import Optional

import structlog
from pythonjsonlogger import jsonlogger

from payment_gateway.config import Settings, get_settings


def build_formatter(settings: Settings) -> jsonlogger.JsonFormatter:
    """
    Build the JSON formatter for the root handler.

    Args:
        settings: Settings supplying the app name and environment

    Returns:
        jsonlogger.JsonFormatter: Formatter adding app context to every line
    """
    return jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={
            "asctime": "@timestamp",
            "levelname": "level",
            "name": "logger",
        },
        static_fields={
            "app_name": settings.app_name,
            "app_env": settings.app_env,
        },
    )


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structured logging.

    Safe to call more than once; the root handler is replaced so the
    app context always reflects the latest settings.
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.render_to_log_kwargs,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    json_handler = logging.StreamHandler(sys.stdout)
    json_handler.setFormatter(build_formatter(settings))
    root_logger.addHandler(json_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "logging_configured",
        log_level=settings.log_level,
    )
