"""
Single entry point: mirror `source` onto `replica` once.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from .compare import IgnoreMatcher, compare_trees
from .config import validate_paths
from .digest import ContentComparer
from .executor import EventCallback, apply_plan
from .models import LogEvent, SyncPlan

PathLike = Union[str, Path]


def plan_sync(
    source: PathLike,
    replica: PathLike,
    *,
    case_sensitive: bool = False,
    ignore: Optional[IgnoreMatcher] = None,
    comparer: Optional[ContentComparer] = None,
) -> tuple[Path, Path, SyncPlan]:
    source_root, replica_root = validate_paths(Path(source), Path(replica))
    plan = compare_trees(
        source_root,
        replica_root,
        case_sensitive=case_sensitive,
        ignore=ignore,
        comparer=comparer,
    )
    return source_root, replica_root, plan


def synchronize(
    source: PathLike,
    replica: PathLike,
    *,
    case_sensitive: bool = False,
    ignore: Optional[IgnoreMatcher] = None,
    comparer: Optional[ContentComparer] = None,
    on_event: Optional[EventCallback] = None,
) -> list[LogEvent]:
    """
    Make `replica` mirror `source` and return one event per action taken.

    Raises FatalConfigError before touching anything if the paths are unusable.
    Per-file failures do not raise; they come back as ERROR events.
    """
    source_root, replica_root, plan = plan_sync(
        source, replica, case_sensitive=case_sensitive, ignore=ignore, comparer=comparer
    )
    events: list[LogEvent] = []
    for warning in plan.warnings:
        events.append(warning)
        if on_event is not None:
            on_event(warning)
    events.extend(apply_plan(plan, source_root, replica_root, on_event=on_event))
    return events
