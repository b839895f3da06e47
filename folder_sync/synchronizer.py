"""
Long-running mirror service.

A Synchronizer owns everything one mirror needs: the run lock that keeps
timer-triggered and change-triggered runs from overlapping, the map of
pending change notifications, the watchdog observer and the scheduler thread.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .compare import IgnoreMatcher
from .config import SyncConfig
from .digest import ContentComparer
from .errors import FatalConfigError
from .executor import apply_plan
from .logsink import LOGGER_NAME
from .models import LogEvent
from .sync import plan_sync

MIN_INTERVAL_SEC = 1.0
JOIN_TIMEOUT_SEC = 10.0


class Synchronizer:
    def __init__(
        self,
        config: SyncConfig,
        sink: Optional[Callable[[LogEvent], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.sink = sink
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.ignore = IgnoreMatcher(config.ignore_patterns) if config.ignore_patterns else None
        self.runs = 0

        self._run_lock = threading.Lock()
        self._pending: dict[str, str] = {}
        self._pending_guard = threading.Lock()
        self.changed = threading.Event()
        self.stop_event = threading.Event()
        self._observer = None
        self._scheduler: Optional[SyncScheduler] = None

    # -------------------------
    # Pending changes
    # -------------------------

    def notify(self, path: str, change_kind: str) -> None:
        with self._pending_guard:
            first = path not in self._pending
            self._pending[path] = change_kind
        if first:
            self.logger.info("Detected %s event for %s", change_kind, path)
        self.changed.set()

    def pending_changes(self) -> dict[str, str]:
        with self._pending_guard:
            return dict(self._pending)

    def drain_pending(self) -> dict[str, str]:
        with self._pending_guard:
            drained, self._pending = self._pending, {}
        return drained

    def _requeue(self, changes: dict[str, str]) -> None:
        with self._pending_guard:
            for path, kind in changes.items():
                self._pending.setdefault(path, kind)

    # -------------------------
    # Runs
    # -------------------------

    def _emit(self, event: LogEvent) -> None:
        if self.sink is not None:
            self.sink(event)

    def run_once(self, reason: str = "scheduled") -> list[LogEvent]:
        with self._run_lock:
            pending = self.drain_pending()
            if pending:
                self.logger.info(
                    "Synchronization started (%s, %d pending change(s))", reason, len(pending)
                )
            else:
                self.logger.info("Synchronization started (%s)", reason)

            try:
                source_root, replica_root, plan = plan_sync(
                    self.config.source,
                    self.config.replica,
                    case_sensitive=self.config.case_sensitive,
                    ignore=self.ignore,
                    comparer=ContentComparer(chunk_size=self.config.chunk_size),
                )
            except FatalConfigError:
                self._requeue(pending)
                raise

            events = list(plan.warnings)
            for warning in plan.warnings:
                self._emit(warning)
            events.extend(apply_plan(plan, source_root, replica_root, on_event=self._emit))
            self.runs += 1
            self.logger.info("Synchronization completed (%s): %s", reason, plan.summary())
            return events

    # -------------------------
    # Lifecycle
    # -------------------------

    def start(self) -> None:
        self.run_once("initial")

        handler = ChangeHandler(self)
        self._observer = Observer()
        self._observer.schedule(handler, str(handler.source_root), recursive=True)
        self._scheduler = SyncScheduler(self)

        self.logger.info("Starting watcher... (Ctrl+C to stop)")
        self._observer.start()
        self._scheduler.start()

    def stop(self) -> None:
        self.stop_event.set()
        self.changed.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=JOIN_TIMEOUT_SEC)
        if self._scheduler is not None:
            self._scheduler.join(timeout=JOIN_TIMEOUT_SEC)
        self.logger.info("Stopped.")

    def __enter__(self) -> "Synchronizer":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()


# -------------------------
# Watchdog notifications
# -------------------------

class ChangeHandler(FileSystemEventHandler):
    def __init__(self, synchronizer: Synchronizer):
        self.synchronizer = synchronizer
        self.source_root = Path(synchronizer.config.source).expanduser().resolve()
        self.ignore = synchronizer.ignore

    def _record(self, raw_path, kind: str, is_dir: bool) -> None:
        path = os.fsdecode(raw_path)
        if self.ignore:
            try:
                rel = Path(path).relative_to(self.source_root).as_posix()
            except ValueError:
                rel = None
            if rel and self.ignore.is_ignored(rel, is_dir=is_dir):
                return
        self.synchronizer.notify(path, kind)

    def on_created(self, event):
        self._record(event.src_path, "created", bool(event.is_directory))

    def on_modified(self, event):
        if event.is_directory:
            return
        self._record(event.src_path, "modified", False)

    def on_deleted(self, event):
        self._record(event.src_path, "deleted", bool(event.is_directory))

    def on_moved(self, event):
        self._record(event.src_path, "moved", bool(event.is_directory))
        self._record(event.dest_path, "moved", bool(event.is_directory))


# -------------------------
# Interval scheduler
# -------------------------

class SyncScheduler(threading.Thread):
    def __init__(self, synchronizer: Synchronizer):
        super().__init__(daemon=True)
        self.synchronizer = synchronizer
        self.interval_sec = max(MIN_INTERVAL_SEC, float(synchronizer.config.interval_sec))
        self.debounce_sec = synchronizer.config.debounce_sec
        self.stop_event = synchronizer.stop_event
        self.changed = synchronizer.changed
        self.logger = synchronizer.logger

    def _wait_for_trigger(self, deadline: float) -> Optional[str]:
        timeout = max(0.0, deadline - time.monotonic())
        if self.debounce_sec is None:
            self.stop_event.wait(timeout)
            return None if self.stop_event.is_set() else "scheduled"

        if self.changed.wait(timeout) and not self.stop_event.is_set():
            # let a burst of notifications settle
            self.stop_event.wait(self.debounce_sec)
            return None if self.stop_event.is_set() else "change"
        return None if self.stop_event.is_set() else "scheduled"

    def run(self) -> None:
        self.logger.info("SCHEDULER: started (interval=%.1fs)", self.interval_sec)
        deadline = time.monotonic() + self.interval_sec
        while not self.stop_event.is_set():
            reason = self._wait_for_trigger(deadline)
            if reason is None:
                break
            if reason == "scheduled" and time.monotonic() < deadline:
                continue

            self.changed.clear()
            try:
                self.synchronizer.run_once(reason)
            except Exception as e:
                self.logger.error("Synchronization failed (%s): %s", reason, e)
            deadline = time.monotonic() + self.interval_sec
        self.logger.info("SCHEDULER: stopped")
