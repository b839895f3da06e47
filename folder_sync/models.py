"""
Value types shared by the comparator, the executor and the log sink.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Collection, Optional


class EventKind(str, Enum):
    CREATE_DIR = "MKDIR"
    COPY_NEW = "COPY"
    UPDATE = "UPDATE"
    DELETE_FILE = "DELETE"
    DELETE_DIR = "RMDIR"
    WARNING = "WARN"
    ERROR = "ERROR"


DIR_KINDS = frozenset({EventKind.CREATE_DIR, EventKind.DELETE_DIR})


@dataclass(frozen=True)
class LogEvent:
    kind: EventKind
    paths: tuple[str, ...]
    relative_path: str = ""
    message: str = ""
    action: Optional[EventKind] = None
    locked: bool = False
    timestamp: dt.datetime = field(default_factory=dt.datetime.now)

    @property
    def level(self) -> int:
        if self.kind is EventKind.ERROR:
            return logging.ERROR
        if self.kind is EventKind.WARNING:
            return logging.WARNING
        return logging.INFO

    @property
    def is_dir(self) -> bool:
        return self.kind in DIR_KINDS or self.action in DIR_KINDS

    @property
    def label(self) -> str:
        if self.action is not None:
            return f"{self.action.value}_{self.kind.value}"
        return self.kind.value

    def __str__(self) -> str:
        return f"[{self.timestamp:%Y-%m-%d %H:%M:%S}] {self.label} | {self.message}"


def path_depth(rel: str) -> int:
    return rel.count("/")


def identity_key(rel: str, case_sensitive: bool) -> str:
    return rel if case_sensitive else rel.casefold()


def is_shielded(key: str, skipped: Collection[str]) -> bool:
    """True if `key` or one of its ancestors is in `skipped` ('' stands for the root)."""
    if not skipped:
        return False
    if "" in skipped:
        return True
    parts = key.split("/")
    return any("/".join(parts[:i]) in skipped for i in range(1, len(parts) + 1))


@dataclass
class FileEntry:
    relative_path: str
    path: Path
    size: int
    fingerprint: Optional[str] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class DirectoryEntry:
    relative_path: str
    path: Path

    @property
    def depth(self) -> int:
        return path_depth(self.relative_path)


@dataclass(frozen=True)
class SyncPlan:
    """
    Everything a run will do, decided before the replica is touched.

    Source-relative paths: to_create, to_copy, to_update, unchanged.
    Replica-relative paths: to_delete_files, to_delete_dirs.
    `targets` maps every source-relative path to where it lives in the replica.
    """

    to_create: tuple[str, ...] = ()
    to_copy: tuple[str, ...] = ()
    to_update: tuple[str, ...] = ()
    to_delete_files: tuple[str, ...] = ()
    to_delete_dirs: tuple[str, ...] = ()
    unchanged: tuple[str, ...] = ()
    targets: dict[str, str] = field(default_factory=dict)
    keep_dirs: frozenset[str] = frozenset()
    # keys of source entries that could not be read; their replica subtrees are left alone
    shielded: frozenset[str] = frozenset()
    warnings: tuple[LogEvent, ...] = ()
    case_sensitive: bool = False

    def target_for(self, rel: str) -> str:
        return self.targets.get(rel, rel)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_copy or self.to_update
                    or self.to_delete_files or self.to_delete_dirs)

    def summary(self) -> str:
        """One-line +N ~N -N summary."""
        parts = []
        added = len(self.to_create) + len(self.to_copy)
        deleted = len(self.to_delete_files) + len(self.to_delete_dirs)
        if added:
            parts.append(f"+{added}")
        if self.to_update:
            parts.append(f"~{len(self.to_update)}")
        if deleted:
            parts.append(f"-{deleted}")
        return " ".join(parts) if parts else "no changes"
