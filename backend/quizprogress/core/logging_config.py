"""
Logging configuration.

Every record handled by the console handler is stamped with the current
request id and learner reference, so a submission can be followed from the
incoming request line through the engine and progress logs to the response
line. Development output is a single human-readable line; production output
is one JSON object per line.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from quizprogress.core.config import settings

# Set by RequestLoggingMiddleware for the lifetime of a request
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Set by SubmissionEngine.submit for the lifetime of a submission
learner_context: ContextVar[Optional[str]] = ContextVar("learner_ref", default=None)

# Structured extras passed by the middleware, the engine and AnalyticsTracker
_EXTRA_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_host",
    "user_identifier",
    "learner_id",
    "result_id",
    "error_id",
    "event_data",
)

_PLACEHOLDER = "-"


class RequestContextFilter(logging.Filter):
    """Copy request_id and learner_ref from the context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_context.get() or _PLACEHOLDER
        if not hasattr(record, "learner_ref"):
            record.learner_ref = learner_context.get() or _PLACEHOLDER
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Records that bypassed RequestContextFilter read the context directly
        context_fields = {
            "request_id": getattr(record, "request_id", None)
            or request_id_context.get(),
            "learner_ref": getattr(record, "learner_ref", None)
            or learner_context.get(),
        }
        for key, value in context_fields.items():
            if value and value != _PLACEHOLDER:
                log_entry[key] = value

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def build_logging_config(env: str, log_level: int, debug: bool) -> Dict[str, Any]:
    """
    Build the dictConfig mapping for the given environment.

    Args:
        env: Deployment environment; "production" selects JSON output
        log_level: Numeric level for the root and quizprogress loggers
        debug: When true, uvicorn's per-request access lines are suppressed
            since RequestLoggingMiddleware already logs each request

    Returns:
        A mapping accepted by logging.config.dictConfig
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_context": {"()": RequestContextFilter},
        },
        "formatters": {
            "default": {
                "format": (
                    "%(asctime)s - %(name)s - %(levelname)s "
                    "[req=%(request_id)s learner=%(learner_ref)s] %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if env == "production" else "default",
                "filters": ["request_context"],
                "stream": sys.stdout,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "quizprogress": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": logging.WARNING if debug else logging.INFO,
                "handlers": ["console"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": logging.WARNING,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging() -> None:
    """Apply the logging configuration for the current settings."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.config.dictConfig(
        build_logging_config(settings.ENV, log_level, settings.DEBUG)
    )
