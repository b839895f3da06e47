"""
Log sink for synchronization events.

- Plain log file, colored console (colorama makes ANSI work on Windows).
- COPY / UPDATE green, DELETE / RMDIR / warnings orange, MKDIR light brown, errors red.
- File paths white, folder paths light brown.
- Locked paths are written to locked.log and reported at most once per hold
  window so a file held open by another program doesn't flood the console.
"""

from __future__ import annotations

import datetime as dt
import logging
import sys
import threading
from pathlib import Path
from typing import Optional

from colorama import init as colorama_init

from .models import EventKind, LogEvent

LOGGER_NAME = "folder_sync"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# -------------------------
# Console styling
# -------------------------

class Ansi:
    RESET = "\x1b[0m"
    RED = "\x1b[31m"
    GREEN = "\x1b[32m"
    ORANGE = "\x1b[38;5;208m"
    WHITE = "\x1b[97m"
    LIGHT_BROWN = "\x1b[33m"


ACTION_COLORS = {
    EventKind.COPY_NEW: Ansi.GREEN,
    EventKind.UPDATE: Ansi.GREEN,
    EventKind.CREATE_DIR: Ansi.LIGHT_BROWN,
    EventKind.DELETE_FILE: Ansi.ORANGE,
    EventKind.DELETE_DIR: Ansi.ORANGE,
    EventKind.WARNING: Ansi.ORANGE,
    EventKind.ERROR: Ansi.RED,
}


def label_color(label: str) -> str:
    """Color for an event label; the outcome in `RMDIR_WARN` wins over its action."""
    action, _, outcome = label.partition("_")
    for part in (outcome, action):
        try:
            return ACTION_COLORS[EventKind(part)]
        except ValueError:
            continue
    return ""


def _supports_color(stream) -> bool:
    isatty = getattr(stream, "isatty", None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except ValueError:  # closed stream
        return False


class ColorizingFormatter(logging.Formatter):
    def __init__(self, use_color: bool, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.use_color:
            return base
        if record.levelno >= logging.ERROR:
            return f"{Ansi.RED}{base}{Ansi.RESET}"

        label = getattr(record, "action", None)
        if label:
            color = label_color(label)
            token = f"{label} |"
            if color and token in base:
                base = base.replace(token, f"{color}{label}{Ansi.RESET} |", 1)

        path_text = getattr(record, "path_text", None)
        if path_text and path_text in base:
            pcolor = Ansi.LIGHT_BROWN if getattr(record, "is_dir", False) else Ansi.WHITE
            base = base.replace(path_text, f"{pcolor}{path_text}{Ansi.RESET}")

        return base


def setup_logger(
    log_file: Optional[Path] = None,
    *,
    name: str = LOGGER_NAME,
    use_color: Optional[bool] = None,
    stream=None,
) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    if logger.handlers:
        return logger

    stream = stream or sys.stdout
    if use_color is None:
        use_color = _supports_color(stream)
    if use_color:
        colorama_init()

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        fh.setLevel(logging.INFO)
        logger.addHandler(fh)

    ch = logging.StreamHandler(stream)
    ch.setLevel(logging.INFO)
    ch.setFormatter(ColorizingFormatter(use_color=use_color, fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(ch)

    if log_file is not None:
        logger.info("Logging to: %s", log_file)
    return logger


def log_action(
    logger: logging.Logger,
    action: str,
    message: str,
    path: Optional[Path] = None,
    is_dir: Optional[bool] = None,
    level: int = logging.INFO,
) -> None:
    extra = {"action": action}
    if path is not None:
        extra["path_text"] = str(path)
        extra["is_dir"] = bool(is_dir) if is_dir is not None else path.is_dir()
    logger.log(level, f"{action} | {message}", extra=extra)


# -------------------------
# Locked suppression
# -------------------------

class LockedFileTracker:
    """
    Tracks locked paths and suppresses repeated reports per-path for a hold window.
    Writes to locked.log on first lock and on each report after the window expires.
    """

    def __init__(self, locked_log_path: Path, hold_hours: int = 12):
        self.locked_log_path = locked_log_path
        self.hold = dt.timedelta(hours=hold_hours)
        self._next_report: dict[str, dt.datetime] = {}
        self._guard = threading.Lock()
        self.locked_log_path.parent.mkdir(parents=True, exist_ok=True)

    def should_report(self, path: str, now: Optional[dt.datetime] = None) -> bool:
        now = now or dt.datetime.now()
        with self._guard:
            nxt = self._next_report.get(path)
            return nxt is None or now >= nxt

    def mark_locked(self, path: str, now: Optional[dt.datetime] = None) -> None:
        now = now or dt.datetime.now()
        with self._guard:
            self._next_report[path] = now + self.hold

    def write_locked_log(self, event: LogEvent) -> None:
        line = f"{event.timestamp:%Y-%m-%d %H:%M:%S} | {event.label} | {event.message}\n"
        try:
            with self.locked_log_path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError:
            pass

    def maybe_report_locked(self, logger: logging.Logger, event: LogEvent) -> bool:
        """
        If the hold expired for this path, log + write locked.log and extend the hold.
        Otherwise, stay silent. Returns whether the event was reported.
        """
        key = event.paths[-1] if event.paths else event.relative_path
        if not self.should_report(key, event.timestamp):
            return False

        self.write_locked_log(event)
        self.mark_locked(key, event.timestamp)
        log_action(
            logger,
            event.label,
            f"SKIP locked {event.message}",
            path=Path(key),
            is_dir=event.is_dir,
            level=logging.WARNING,
        )
        return True


# -------------------------
# Event sink
# -------------------------

class EventLogger:
    """Callable sink turning LogEvents into log records."""

    def __init__(self, logger: logging.Logger, locked: Optional[LockedFileTracker] = None):
        self.logger = logger
        self.locked = locked

    def __call__(self, event: LogEvent) -> None:
        if event.locked and self.locked is not None:
            self.locked.maybe_report_locked(self.logger, event)
            return
        path = Path(event.paths[-1]) if event.paths else None
        log_action(self.logger, event.label, event.message, path=path, is_dir=event.is_dir, level=event.level)
