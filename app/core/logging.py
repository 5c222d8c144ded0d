# ===================================
# app/core/logging.py
# ===================================
"""
Configuration des logs de l'application.

Les événements métier sont émis avec `extra={...}` ; le formatter JSON
recopie ces champs dans l'enregistrement pour qu'ils restent exploitables.
"""

import json
import logging
import logging.config
from datetime import datetime, timezone

from app.core.config import settings

# Attributs standards d'un LogRecord, exclus des champs "extra"
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Une ligne JSON par événement, champs `extra` inclus."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging() -> None:
    """Configure les handlers selon LOG_LEVEL / LOG_FORMAT."""

    logging.captureWarnings(True)

    formatter = "json" if settings.log_format == "json" else "verbose"

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JsonFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
            },
        },
        "loggers": {
            "": {
                "handlers": ["console"],
                "level": settings.log_level,
            },
            "uvicorn.access": {
                "handlers": ["console"],
                "level": "INFO",
                "propagate": False,
            },
            "apscheduler": {
                "handlers": ["console"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    })
