"""
Logging configuration.

Two output formats, selected by LOG_FORMAT:
- console: human-readable lines for development
- json: one JSON object per line for log aggregation

LOG_LEVEL sets the root level (default INFO).
"""

import json
import logging
import logging.config
from datetime import datetime, timezone

from ledgerbook.core.config import Settings, get_settings


class JsonFormatter(logging.Formatter):
    """Render a log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("entry_id", "entry_number", "user_id", "event_type"):
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = str(value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def get_logging_config(settings: Settings) -> dict:
    formatter = "json" if settings.log_format == "json" else "verbose"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "verbose": {
                "format": "[{asctime}] {levelname} {name} {message}",
                "style": "{",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["console"], "level": settings.log_level},
        "loggers": {
            "sqlalchemy.engine": {"level": "WARNING", "propagate": True},
            "uvicorn.access": {"level": "WARNING", "propagate": True},
        },
    }


def configure_logging(settings: Settings | None = None) -> None:
    logging.config.dictConfig(get_logging_config(settings or get_settings()))
