"""Log formatting for the watcher and cache (JSON lines or plain text)."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from .config import LoggingConfig

# Structured fields passed via ``extra=`` by the cache, clients and watcher
FIELDS = (
    "provider", "prefix", "attempt", "elapsed_seconds",
    "seconds_since_refresh", "addresses", "active", "upstreams",
)

# Cloud SDK and transport loggers are chatty at INFO
QUIET_LOGGERS = ("google", "urllib3", "botocore", "boto3", "azure")


def record_fields(record: logging.LogRecord) -> dict:
    """Structured fields set on ``record``, in ``FIELDS`` order."""
    return {key: getattr(record, key) for key in FIELDS if getattr(record, key, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per record; address lists stay lists."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_fields(record),
        }
        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Console format; scalar fields are appended as key=value, lists are left out."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        scalars = [f"{k}={v}" for k, v in record_fields(record).items() if not isinstance(v, (list, tuple))]
        return f"{line} {' '.join(scalars)}" if scalars else line


def configure_logging(config: LoggingConfig) -> None:
    """Replace root handlers with a single stderr handler in the configured format."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if config.format == "json" else TextFormatter())
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
