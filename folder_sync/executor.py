"""
Applies a SyncPlan to the replica tree.

Order is fixed: create directories, copy new files, overwrite modified files,
delete files, delete directories, then sweep directories left empty. Each
operation stands alone; a failure becomes an ERROR event and the run goes on.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Callable, Optional

from .errors import is_locked_error
from .models import EventKind, LogEvent, SyncPlan, identity_key, is_shielded

EventCallback = Callable[[LogEvent], None]


class PlanExecutor:
    def __init__(
        self,
        plan: SyncPlan,
        source_root: Path,
        replica_root: Path,
        on_event: Optional[EventCallback] = None,
    ):
        self.plan = plan
        self.source_root = Path(source_root)
        self.replica_root = Path(replica_root)
        self.on_event = on_event
        self.events: list[LogEvent] = []
        # directories whose removal already failed this run
        self.failed_dirs: set[str] = set()

    # -------------------------
    # Event helpers
    # -------------------------

    def _emit(self, event: LogEvent) -> None:
        self.events.append(event)
        if self.on_event is not None:
            self.on_event(event)

    def _done(self, kind: EventKind, rel: str, message: str, *paths: Path) -> None:
        self._emit(LogEvent(kind, tuple(str(p) for p in paths), relative_path=rel, message=message))

    def _warn(self, action: EventKind, rel: str, message: str, path: Path) -> None:
        self._emit(
            LogEvent(EventKind.WARNING, (str(path),), relative_path=rel, message=message, action=action)
        )

    def _fail(self, action: EventKind, rel: str, message: str, error: OSError, *paths: Path) -> None:
        self._emit(
            LogEvent(
                EventKind.ERROR,
                tuple(str(p) for p in paths),
                relative_path=rel,
                message=f"{message} | {error}",
                action=action,
                locked=is_locked_error(error),
            )
        )

    def _replica_path(self, rel: str) -> Path:
        return self.replica_root / rel

    # -------------------------
    # Steps
    # -------------------------

    def run(self) -> list[LogEvent]:
        for rel in self.plan.to_create:
            self.create_dir(rel)
        for rel in self.plan.to_copy:
            self.copy_file(rel, EventKind.COPY_NEW)
        for rel in self.plan.to_update:
            self.copy_file(rel, EventKind.UPDATE)
        for rel in self.plan.to_delete_files:
            self.delete_file(rel)
        for rel in self.plan.to_delete_dirs:
            self.delete_dir(rel)
        self.clean_empty_dirs()
        return self.events

    def create_dir(self, rel: str) -> None:
        target_rel = self.plan.target_for(rel)
        dst = self._replica_path(target_rel)
        try:
            if dst.is_file() or dst.is_symlink():
                dst.unlink()
                self._done(EventKind.DELETE_FILE, target_rel, f"(obstructs directory) {dst}", dst)
            dst.mkdir(exist_ok=True)
            self._done(EventKind.CREATE_DIR, target_rel, f"{dst}", dst)
        except OSError as e:
            self._fail(EventKind.CREATE_DIR, target_rel, f"mkdir {dst}", e, dst)

    def copy_file(self, rel: str, kind: EventKind) -> None:
        src = self.source_root / rel
        target_rel = self.plan.target_for(rel)
        dst = self._replica_path(target_rel)
        try:
            if dst.is_dir() and not dst.is_symlink():
                shutil.rmtree(dst)
                self._done(EventKind.DELETE_DIR, target_rel, f"(obstructs file) {dst}", dst)
            shutil.copy2(src, dst)
            self._done(kind, target_rel, f"{src} -> {dst}", src, dst)
        except OSError as e:
            self._fail(kind, target_rel, f"{src} -> {dst}", e, src, dst)

    def delete_file(self, rel: str) -> None:
        path = self._replica_path(rel)
        if not os.path.lexists(path) or (path.is_dir() and not path.is_symlink()):
            return
        try:
            path.unlink()
            self._done(EventKind.DELETE_FILE, rel, f"{path}", path)
        except OSError as e:
            self._fail(EventKind.DELETE_FILE, rel, f"delete {path}", e, path)

    def delete_dir(self, rel: str) -> bool:
        path = self._replica_path(rel)
        if not path.is_dir():
            return False
        try:
            # a writer may have added something since the plan was made
            if any(path.iterdir()):
                self._warn(EventKind.DELETE_DIR, rel, f"SKIP not empty {path}", path)
                return False
            path.rmdir()
            self._done(EventKind.DELETE_DIR, rel, f"{path}", path)
            return True
        except OSError as e:
            self.failed_dirs.add(rel)
            self._fail(EventKind.DELETE_DIR, rel, f"rmdir {path}", e, path)
            return False

    # -------------------------
    # Empty directory sweep
    # -------------------------

    def _directories_post_order(self) -> list[tuple[Path, str]]:
        found: list[tuple[Path, str]] = []
        stack: list[tuple[Path, str]] = [(self.replica_root, "")]
        while stack:
            directory, prefix = stack.pop()
            try:
                with os.scandir(directory) as it:
                    children = [e for e in it if e.is_dir(follow_symlinks=False)]
            except OSError:
                continue
            for child in children:
                rel = prefix + child.name
                found.append((Path(child.path), rel))
                stack.append((Path(child.path), rel + "/"))
        # every child was appended after its parent
        found.reverse()
        return found

    def clean_empty_dirs(self) -> None:
        keep = self.plan.keep_dirs
        failed = self.failed_dirs
        while True:
            removed = 0
            for path, rel in self._directories_post_order():
                key = identity_key(rel, self.plan.case_sensitive)
                if rel in failed or key in keep or is_shielded(key, self.plan.shielded):
                    continue
                try:
                    if any(path.iterdir()):
                        continue
                    path.rmdir()
                except OSError as e:
                    failed.add(rel)
                    self._fail(EventKind.DELETE_DIR, rel, f"rmdir {path}", e, path)
                    continue
                self._done(EventKind.DELETE_DIR, rel, f"(empty) {path}", path)
                removed += 1
            if not removed:
                break


def apply_plan(
    plan: SyncPlan,
    source_root: Path,
    replica_root: Path,
    *,
    on_event: Optional[EventCallback] = None,
) -> list[LogEvent]:
    return PlanExecutor(plan, source_root, replica_root, on_event=on_event).run()
