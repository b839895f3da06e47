"""
Tree comparison: inventories both trees and classifies every relative path.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Set, Union

from pathspec import GitIgnoreSpec

from .digest import ContentComparer
from .models import (
    DirectoryEntry,
    EventKind,
    FileEntry,
    LogEvent,
    SyncPlan,
    identity_key,
    is_shielded,
    path_depth,
)


# -------------------------
# Ignore rules
# -------------------------

class IgnoreMatcher:
    def __init__(self, patterns: Sequence[str]):
        self.patterns = tuple(patterns)
        self.spec = GitIgnoreSpec.from_lines(self.patterns)

    def is_ignored(self, rel: str, is_dir: bool = False) -> bool:
        if is_dir and not rel.endswith("/"):
            rel += "/"
        return self.spec.match_file(rel)

    def __bool__(self) -> bool:
        return bool(self.patterns)


# -------------------------
# Tree walk
# -------------------------

@dataclass
class TreeInventory:
    root: Path
    case_sensitive: bool
    files: dict[str, FileEntry] = field(default_factory=dict)
    dirs: dict[str, DirectoryEntry] = field(default_factory=dict)
    # keys of entries that exist but could not be inventoried
    skipped: set[str] = field(default_factory=set)
    # entries whose key was already taken by another spelling
    duplicates: list[Union[FileEntry, DirectoryEntry]] = field(default_factory=list)
    warnings: list[LogEvent] = field(default_factory=list)

    def key(self, rel: str) -> str:
        return identity_key(rel, self.case_sensitive)

    def shields(self, key: str) -> bool:
        """True if `key` or one of its ancestors was skipped during the walk."""
        return is_shielded(key, self.skipped)

    def skip(self, path: Path, rel: str, reason: str, shield: bool = True) -> None:
        if shield:
            self.skipped.add(self.key(rel))
        self.warnings.append(
            LogEvent(
                EventKind.WARNING,
                (str(path),),
                relative_path=rel,
                message=f"SKIP scan ({reason}) {path}",
            )
        )


def _entry_size(entry: os.DirEntry) -> int:
    return entry.stat().st_size


def scan_tree(
    root: Path,
    *,
    case_sensitive: bool = False,
    ignore: Optional[IgnoreMatcher] = None,
    preferred: Optional[Set[str]] = None,
    walk_duplicates: bool = False,
) -> TreeInventory:
    """
    Inventory every regular file and directory under `root`.

    When two names fold to one key, the spelling listed in `preferred` wins,
    else the first in sorted order. With `walk_duplicates`, the losing
    spellings and everything beneath them go to `duplicates` silently;
    otherwise they are skipped with a warning.
    """
    inv = TreeInventory(root=root, case_sensitive=case_sensitive)
    preferred = preferred or set()
    # (directory, prefix, inside a duplicate directory)
    stack: list[tuple[Path, str, bool]] = [(root, "", False)]

    while stack:
        directory, prefix, in_duplicate = stack.pop()
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: (prefix + e.name not in preferred, e.name))
        except OSError as e:
            inv.skip(directory, prefix.rstrip("/"), f"unreadable directory: {e}")
            continue

        for entry in entries:
            rel = prefix + entry.name
            path = Path(entry.path)
            try:
                if entry.is_dir(follow_symlinks=False):
                    if ignore and ignore.is_ignored(rel, is_dir=True):
                        continue
                    key = inv.key(rel)
                    if in_duplicate or key in inv.dirs or key in inv.files:
                        if walk_duplicates:
                            inv.duplicates.append(DirectoryEntry(rel, path))
                            stack.append((path, rel + "/", True))
                        else:
                            inv.skip(path, rel, "name collides with another entry", shield=False)
                        continue
                    inv.dirs[key] = DirectoryEntry(rel, path)
                    stack.append((path, rel + "/", False))
                elif entry.is_symlink() and entry.is_dir():
                    inv.skip(path, rel, "symbolic link to a directory")
                elif entry.is_file():
                    if ignore and ignore.is_ignored(rel):
                        continue
                    key = inv.key(rel)
                    if in_duplicate or key in inv.dirs or key in inv.files:
                        if walk_duplicates:
                            inv.duplicates.append(FileEntry(rel, path, 0))
                        else:
                            inv.skip(path, rel, "name collides with another entry", shield=False)
                        continue
                    inv.files[key] = FileEntry(rel, path, _entry_size(entry))
                else:
                    inv.skip(path, rel, "not a regular file or directory")
            except OSError as e:
                inv.skip(path, rel, f"stat failed: {e}")

    return inv


# -------------------------
# Comparison
# -------------------------

def _new_target(rel: str, targets: dict[str, str]) -> str:
    parent, _, name = rel.rpartition("/")
    if not parent:
        return name
    return f"{targets.get(parent, parent)}/{name}"


def compare_trees(
    source_root: Path,
    replica_root: Path,
    *,
    case_sensitive: bool = False,
    ignore: Optional[IgnoreMatcher] = None,
    comparer: Optional[ContentComparer] = None,
) -> SyncPlan:
    comparer = comparer or ContentComparer()
    source = scan_tree(Path(source_root), case_sensitive=case_sensitive, ignore=ignore)
    source_names = {e.relative_path for e in source.files.values()}
    source_names.update(d.relative_path for d in source.dirs.values())
    replica = scan_tree(
        Path(replica_root),
        case_sensitive=case_sensitive,
        preferred=source_names,
        walk_duplicates=True,
    )

    targets: dict[str, str] = {}

    to_create: list[str] = []
    for key, d in sorted(source.dirs.items(), key=lambda kv: (kv[1].depth, kv[0])):
        match = replica.dirs.get(key)
        if match is not None:
            targets[d.relative_path] = match.relative_path
        else:
            targets[d.relative_path] = _new_target(d.relative_path, targets)
            to_create.append(d.relative_path)

    to_copy: list[str] = []
    to_update: list[str] = []
    unchanged: list[str] = []
    for key, f in sorted(source.files.items()):
        match = replica.files.get(key)
        if match is None:
            targets[f.relative_path] = _new_target(f.relative_path, targets)
            to_copy.append(f.relative_path)
            continue
        targets[f.relative_path] = match.relative_path
        if comparer.differs(f, match):
            to_update.append(f.relative_path)
        else:
            unchanged.append(f.relative_path)

    # losing spellings of a case-folded key, and all beneath them, have no source counterpart
    extra_files = [f for key, f in replica.files.items() if key not in source.files and not source.shields(key)]
    extra_files += [e for e in replica.duplicates if isinstance(e, FileEntry)]
    extra_dirs = [d for key, d in replica.dirs.items() if key not in source.dirs and not source.shields(key)]
    extra_dirs += [e for e in replica.duplicates if isinstance(e, DirectoryEntry)]

    def _key(rel: str) -> str:
        return identity_key(rel, case_sensitive)

    to_delete_files = sorted((f.relative_path for f in extra_files), key=lambda rel: (_key(rel), rel))
    to_delete_dirs = sorted(
        (d.relative_path for d in extra_dirs),
        key=lambda rel: (-path_depth(rel), _key(rel), rel),
    )

    return SyncPlan(
        to_create=tuple(to_create),
        to_copy=tuple(to_copy),
        to_update=tuple(to_update),
        to_delete_files=tuple(to_delete_files),
        to_delete_dirs=tuple(to_delete_dirs),
        unchanged=tuple(unchanged),
        targets=targets,
        keep_dirs=frozenset(source.dirs),
        shielded=frozenset(source.skipped),
        warnings=tuple(source.warnings + replica.warnings),
        case_sensitive=case_sensitive,
    )
