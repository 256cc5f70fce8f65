# -*- coding: utf-8 -*-
"""
Structured logging helpers for the provisioner.

Provides the JSON formatter used by the audit file sink, so every audit
entry lands on disk as one self-contained JSON object per line.
"""

import json
import logging
import socket
from datetime import datetime, timezone
from typing import Any, Dict

# LogRecord attributes that are part of every record and never "extra".
_STANDARD_RECORD_KEYS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
        "symbol",
    ]
)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Formats log records as JSON with a consistent structure:
    - timestamp (ISO 8601, UTC)
    - level
    - service name
    - logger
    - message
    - hostname
    - any extra fields passed through ``extra=``
    """

    def __init__(self, service_name: str = "docker-provisioner"):
        super().__init__()
        self.service_name = service_name
        self.hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self.hostname,
            "process": record.process,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_KEYS and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)
