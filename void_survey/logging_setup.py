"""Structured logging for the survey CLI and web app.

Level and renderer come from ``SurveySettings`` (``log_level``, ``json_logs``),
so ``VOID_SURVEY_LOG_LEVEL=debug`` works like any other setting.
"""

import logging
import sys
from typing import Any, List, Optional

import structlog

from .config import SurveySettings, load_settings


PACKAGE_LOGGER = "void_survey"
# Chatty at INFO; one line per HTTP request
QUIET_LOGGERS = ("httpx", "httpcore", "multipart")


def _add_survey_context(logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("app", PACKAGE_LOGGER)
    return event_dict


def configure_logging(settings: Optional[SurveySettings] = None) -> None:
    settings = settings or load_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_survey_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]
    processors.append(structlog.processors.JSONRenderer() if settings.json_logs else structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stderr, so CLI output on stdout stays clean
    logging.basicConfig(format="%(message)s", handlers=[logging.StreamHandler(sys.stderr)], level=level)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
