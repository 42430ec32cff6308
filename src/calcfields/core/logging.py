"""
Logging configuration for CalcFields.

Engine components never configure logging: they take an injected logger
and fall back to their module logger. A host process that has no logging
of its own calls setup_logging() once at startup.
"""

import logging
import sys
from typing import Any

import orjson

from calcfields.core.config import settings

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with ``extra`` fields (formula, field_slug) nested."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extra:
            entry["extra"] = extra

        return orjson.dumps(entry, default=str).decode("utf-8")


def setup_logging(log_level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Route the root logger to stdout.

    Args:
        log_level: Level name; defaults to CALCFIELDS_LOG_LEVEL
        json_logs: JSON lines instead of plain text; defaults to
            CALCFIELDS_JSON_LOGS
    """
    level = (log_level or settings.log_level).upper()
    use_json = settings.json_logs if json_logs is None else json_logs

    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured",
        extra={"log_level": level, "json_logs": use_json},
    )
