"""One-way folder mirroring."""

from .compare import IgnoreMatcher, compare_trees, scan_tree
from .config import SyncConfig, validate_paths
from .digest import ContentComparer, md5_file
from .errors import FatalConfigError, FolderSyncError
from .executor import apply_plan
from .models import DirectoryEntry, EventKind, FileEntry, LogEvent, SyncPlan
from .sync import synchronize
from .synchronizer import Synchronizer

__all__ = [
    "ContentComparer",
    "DirectoryEntry",
    "EventKind",
    "FatalConfigError",
    "FileEntry",
    "FolderSyncError",
    "IgnoreMatcher",
    "LogEvent",
    "SyncConfig",
    "SyncPlan",
    "Synchronizer",
    "apply_plan",
    "compare_trees",
    "md5_file",
    "scan_tree",
    "synchronize",
    "validate_paths",
]
