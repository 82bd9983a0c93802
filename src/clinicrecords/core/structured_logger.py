"""
Structured logging for the clinic records core.

Module loggers live under the ``clinicrecords`` tree. ``StructuredLogger``
attaches key/value fields to a record as ``extra_data``; ``JSONFormatter``
merges them into the emitted JSON line.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import LoggingSettings

ROOT_LOGGER = "clinicrecords"


class StructuredLogger:
    """Logger that carries bound context fields into every record."""

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self.context = dict(context or {})

    def log(self, level: int, message: str, **fields: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(level, message, extra={"extra_data": {**self.context, **fields}})

    def info(self, message: str, **fields: Any) -> None:
        self.log(logging.INFO, message, **fields)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with structured fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_obj.update(extra_data)

        return json.dumps(log_obj, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines; structured fields are appended as key=value pairs."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            line += " " + " ".join(f"{k}={v}" for k, v in extra_data.items())
        return line


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """Install a stdout handler on the ``clinicrecords`` logger tree."""
    settings = settings or LoggingSettings()
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(settings.level)

    if any(getattr(h, "_clinicrecords_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if settings.format == "json" else TextFormatter())
    handler._clinicrecords_handler = True
    root.addHandler(handler)


def get_logger(name: str, **context: Any) -> StructuredLogger:
    """Get a structured logger, optionally with bound context fields."""
    return StructuredLogger(name, context)
