# src/taskboard/logging_setup.py

"""
Logging for the operator console.

The console shares its terminal with the REPL, so it only shows engine events
(task created, completion rejected, ...). Per-row store chatter and third-party
output go to the log file under the data dir.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Loggers whose INFO/DEBUG records are file-only.
_FILE_ONLY_PREFIXES = ("taskboard.recurring.store",)

_HANDLER_TAG = "_taskboard_handler"


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """'debug' / 'INFO' / '10' -> logging level; unknown names fall back to default."""
    raw = (name or "").strip().upper()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw) if raw else default
    return level if isinstance(level, int) else default


class ConsoleFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(_FILE_ONLY_PREFIXES):
            return record.levelno >= logging.WARNING
        if name == "taskboard" or name.startswith("taskboard."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(settings) -> Path:
    """
    Install the console and file handlers described by settings.

    Uses settings.log_level (console), settings.file_log_level (file),
    settings.data_dir and settings.app_name (file is <data_dir>/<app_name>.log).
    Safe to call again: handlers from an earlier call are replaced, handlers
    installed by anything else are left alone. Returns the log file path.
    """
    log_dir = Path(settings.data_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{settings.app_name}.log"

    console_level = level_from_name(getattr(settings, "log_level", None), logging.INFO)
    file_level = level_from_name(getattr(settings, "file_log_level", None), logging.DEBUG)

    root = logging.getLogger()
    for h in [h for h in root.handlers if getattr(h, _HANDLER_TAG, False)]:
        root.removeHandler(h)
        h.close()
    root.setLevel(min(console_level, file_level))

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(ConsoleFilter())

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)

    for h in (console, file_handler):
        setattr(h, _HANDLER_TAG, True)
        root.addHandler(h)
    return log_file
