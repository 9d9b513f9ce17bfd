# src/pocket_pilot/logging_setup.py

"""
Logging for a process that mostly acts on the device by itself.

The console is shared with the interactive prompt. It shows:
- the device actors (lock, scheduler, triage queue) at WARNING and above even
  when the console level is raised, so a lock timeout or a failed task is never
  hidden from whoever is typing;
- the rest of pocket_pilot at the console level, except the poller and the
  shell executor, which log every few seconds and are held to WARNING;
- other libraries only at ERROR.

The rotating file under the data directory keeps every record.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "pocket.log"
LOG_FILE_MAX_BYTES = 2 * 1024 * 1024
LOG_FILE_BACKUPS = 3

ACTOR_LOGGERS = (
    "pocket_pilot.device.lock",
    "pocket_pilot.tasks.task_scheduler",
    "pocket_pilot.notifications.queue",
)
CHATTY_LOGGERS = (
    "pocket_pilot.notifications.watcher",
    "pocket_pilot.device.shell",
)
QUIET_LIBRARIES = ("httpx", "httpcore", "openai", "asyncio")

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-7s [%(name)s] %(message)s"
_DATEFMT = "%H:%M:%S"


def _under(name: str, prefixes: Iterable[str]) -> bool:
    return any(name == p or name.startswith(p + ".") for p in prefixes)


class ConsolePolicy(logging.Filter):
    """Per-logger minimum level for the console handler."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__()
        self.level = level

    def min_level(self, name: str) -> int:
        if _under(name, ACTOR_LOGGERS):
            return min(self.level, logging.WARNING)
        if _under(name, CHATTY_LOGGERS):
            return max(self.level, logging.WARNING)
        if _under(name, ("pocket_pilot",)):
            return self.level
        # third-party and py.warnings
        return max(self.level, logging.ERROR)

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.min_level(record.name)


def setup_logging(
    *,
    log_dir: str | Path = ".local/pocket",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """Install the console + file handlers on the root logger. Returns the log file path."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)

    # Level filtering happens in the policy: actors may go below console_level.
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ConsolePolicy(console_level))
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
