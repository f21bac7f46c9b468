"""
Logging Configuration — Console logging for the mirror bot.

Two output styles share one set of per-record context fields
(``cycle_id``, ``pr_id``, ``cursor``) passed through ``extra``:

- json: one object per line, context fields as keys
- text: ``HH:MM:SS LEVEL [module] message (pr=#N)``

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)

## Usage

    from pr_mirror.logging_config import setup_logging

    setup_logging()  # once, from the CLI group

    logger.info("mirroring PR", extra={"cycle_id": cycle_id, "pr_id": 101})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

CONTEXT_FIELDS = ("cycle_id", "pr_id", "cursor")

# Third-party loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """{"ts": ..., "level": ..., "logger": ..., "message": ..., <context>}"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """Single-line console output; PR number appended when known."""

    LEVEL_COLORS = {
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = False):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:7}"
        if self.color and record.levelname in self.LEVEL_COLORS:
            level = f"{self.LEVEL_COLORS[record.levelname]}{level}{self.RESET}"

        module = record.name.rsplit(".", 1)[-1][:10]
        line = f"{time_str} {level} [{module:10}] {record.getMessage()}"

        pr_id = getattr(record, "pr_id", None)
        if pr_id is not None:
            line += f" (pr=#{pr_id})"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str | None = None, format_type: str | None = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name. Defaults to $LOG_LEVEL or INFO.
        format_type: "json" or "text". Defaults to $LOG_FORMAT or text.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = (format_type or os.environ.get("LOG_FORMAT", "text")).lower()
    numeric_level = getattr(logging, log_level, logging.INFO)

    formatter: logging.Formatter
    if log_format == "json":
        formatter = JSONFormatter()
    else:
        formatter = HumanFormatter(color=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
