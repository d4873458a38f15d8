"""
Logging configuration.

- Standard library only
- Console gets readable text, the log file gets CSV rows for analysis
- Daily rotation at midnight, 30 files kept
- ``session_user`` tags every record emitted inside a sync session (and the
  tasks it spawns) with the session's user id
"""

import csv
import io
import logging
import os
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOG_DIR = Path(os.environ.get("LOG_DIR", Path(__file__).resolve().parents[2] / "logs"))
LOG_FILE_PREFIX = "task_sync"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CSV_FIELDS = ("timestamp", "level", "module", "message", "user_id", "error")

# Loggers of the SDK stack that are chatty at INFO
QUIET_LOGGERS = ("realtime", "httpx", "httpcore", "hpack", "websockets")

session_user: ContextVar[str] = ContextVar("session_user", default="")


class SessionUserFilter(logging.Filter):
    """Fill ``record.user_id`` from ``session_user`` unless passed via ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "user_id", None):
            record.user_id = session_user.get()
        return True


class CsvFormatter(logging.Formatter):
    """
    One CSV row per record; quoting of commas, quotes and newlines is left
    to the csv module.

    Usage:
        logger.warning("create task failed", extra={"user_id": uid, "error": msg})
    """

    def format(self, record: logging.LogRecord) -> str:
        buffer = io.StringIO()
        csv.writer(buffer).writerow(
            (
                self.formatTime(record, self.datefmt),
                record.levelname,
                record.name,
                record.getMessage(),
                getattr(record, "user_id", None) or "",
                getattr(record, "error", None) or "",
            )
        )
        return buffer.getvalue().rstrip("\r\n")


class CsvRotatingFileHandler(TimedRotatingFileHandler):
    """Rotating handler that starts every new (or empty) file with the CSV header."""

    def _open(self):
        needs_header = (
            not os.path.exists(self.baseFilename) or os.path.getsize(self.baseFilename) == 0
        )
        stream = super()._open()
        if needs_header:
            stream.write(",".join(CSV_FIELDS) + "\n")
            stream.flush()
        return stream


def resolve_level(level: Union[int, str, None] = None) -> int:
    """Level from the argument, else LOG_LEVEL, else INFO."""
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    # Known names map to their number, anything else comes back as a string
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: Union[int, str, None] = None, log_dir: Optional[Path] = None) -> None:
    """
    Install the console and CSV handlers on the root logger.

    Safe to call more than once: a second call finds the CSV handler and
    returns without adding duplicates.
    """
    root = logging.getLogger()
    if any(isinstance(handler, CsvRotatingFileHandler) for handler in root.handlers):
        return

    directory = Path(log_dir) if log_dir is not None else LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)

    root.setLevel(resolve_level(level))
    session_filter = SessionUserFilter()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    console.addFilter(session_filter)
    root.addHandler(console)

    csv_file = CsvRotatingFileHandler(
        filename=directory / f"{LOG_FILE_PREFIX}_{datetime.now():%Y_%m_%d}.csv",
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8",
    )
    csv_file.setFormatter(CsvFormatter(datefmt=DATE_FORMAT))
    csv_file.addFilter(session_filter)
    root.addHandler(csv_file)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
