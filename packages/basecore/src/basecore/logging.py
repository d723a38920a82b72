"""Structured JSON logging shared by BaseCommerce services."""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

DEFAULT_LOG_LEVEL = "INFO"

# Attributes every LogRecord has; anything else came in through extra={...}
_RECORD_ATTRS = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with extra={...} fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                log_obj[key] = value

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def setup_logging(level: str | None = None) -> None:
    """
    Configure the root logger for JSON output on stdout.

    Level comes from the argument, then LOG_LEVEL, then INFO.
    Calling it again replaces the previous handler.
    """
    level_name = (level or os.getenv("LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_basecore", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler._basecore = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # Keep httpx request lines out of INFO output
    logging.getLogger("httpx").setLevel(logging.WARNING)
