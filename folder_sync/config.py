from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .digest import DEFAULT_CHUNK_SIZE
from .errors import FatalConfigError

DEFAULT_INTERVAL_SEC = 60.0
LOCK_HOLD_HOURS = 12


@dataclass(frozen=True)
class SyncConfig:
    source: Path
    replica: Path
    log_file: Optional[Path] = None
    interval_sec: float = DEFAULT_INTERVAL_SEC
    case_sensitive: bool = False
    ignore_patterns: tuple[str, ...] = ()
    debounce_sec: Optional[float] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    lock_hold_hours: int = LOCK_HOLD_HOURS


def _is_subpath(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
        return True
    except ValueError:
        return False


def validate_paths(source: Path, replica: Path) -> tuple[Path, Path]:
    source = Path(source).expanduser().resolve()
    replica = Path(replica).expanduser().resolve()

    if not source.is_dir():
        raise FatalConfigError(f"Source folder does not exist or is not a folder: {source}")
    if not os.access(source, os.R_OK | os.X_OK):
        raise FatalConfigError(f"Source folder is not readable: {source}")
    if source == replica:
        raise FatalConfigError("Source and replica folders must be different.")
    if _is_subpath(replica, source):
        raise FatalConfigError("Replica folder must NOT be inside source folder (would cause loops).")
    if _is_subpath(source, replica):
        raise FatalConfigError("Source folder must NOT be inside replica folder (it would be deleted).")

    try:
        replica.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FatalConfigError(f"Cannot create replica folder {replica}: {e}") from e
    if not replica.is_dir():
        raise FatalConfigError(f"Replica path is not a folder: {replica}")
    if not os.access(replica, os.W_OK | os.X_OK):
        raise FatalConfigError(f"Replica folder is not writable: {replica}")
    return source, replica


def validate_log_file(log_file: Path) -> Path:
    log_file = Path(log_file).expanduser().resolve()
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with log_file.open("a", encoding="utf-8"):
            pass
    except OSError as e:
        raise FatalConfigError(f"Cannot write log file {log_file}: {e}") from e
    return log_file
