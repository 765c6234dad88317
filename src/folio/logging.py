"""
Logging setup for folio.

Two outputs hang off the ``folio`` logger:

- a console handler for people watching ``folio build`` / ``folio serve``
- an optional JSON Lines file (``folio.log``) for editors and scripts that
  tail the build log

Modules never configure logging themselves; they log through
``logging.getLogger(__name__)`` and the CLI calls ``setup_logging()`` once.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import IO, Any

LOG_FILENAME = "folio.log"

_RESET = "\033[0m"
_DIM = "\033[2m"
_TAG = "\033[35m"

# ANSI colour per level; INFO stays uncoloured and unlabelled
_LEVEL_STYLES = {
    logging.DEBUG: "\033[36m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}


def _wants_color(stream: IO[str]) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class JSONLFormatter(logging.Formatter):
    """
    One JSON object per record.

    Failed builds carry the pipeline stage (``extra={"stage": ...}``), so a tool can tell a
    parse error from a missing component without parsing the message::

        {"timestamp": "...", "level": "ERROR", "logger": "folio.instance",
         "message": "Build failed: ...", "stage": "parse"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry["error"] = {"type": type(error).__name__, "message": str(error)}

        stage = getattr(record, "stage", None)
        if stage:
            entry["stage"] = stage

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """``HH:MM:SS [folio] LEVEL: message``, with the level omitted for INFO."""

    def __init__(self, color: bool = False):
        super().__init__()
        self.color = color

    def _paint(self, code: str, text: str) -> str:
        return f"{code}{text}{_RESET}" if self.color else text

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [self._paint(_DIM, clock), self._paint(_TAG, "[folio]")]

        if record.levelno != logging.INFO:
            style = _LEVEL_STYLES.get(record.levelno, "")
            parts.append(self._paint(style, record.levelname) + ":")

        parts.append(record.getMessage())
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: int = logging.INFO,
    log_dir: Path | str | None = None,
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 2,
) -> logging.Logger:
    """
    Configure the ``folio`` logger. Safe to call repeatedly.

    Args:
        level: Minimum level for both outputs
        log_dir: Where to write ``folio.log``; console only when None
        max_bytes: Rotate the log file past this size
        backup_count: Rotated files to keep

    Returns:
        The ``folio`` logger
    """
    logger = logging.getLogger("folio")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    # folio output should not be duplicated by an application's root handlers
    logger.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ConsoleFormatter(color=_wants_color(sys.stderr)))
    logger.addHandler(console)

    if log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            directory / LOG_FILENAME,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONLFormatter())
        logger.addHandler(file_handler)

    return logger
