from __future__ import annotations

import errno


class FolderSyncError(Exception):
    """Base class for folder_sync errors."""


class FatalConfigError(FolderSyncError, ValueError):
    """A precondition failed before any synchronization was attempted."""


def is_locked_error(exc: BaseException) -> bool:
    winerror = getattr(exc, "winerror", None)
    if winerror == 32:  # ERROR_SHARING_VIOLATION
        return True
    err = getattr(exc, "errno", None)
    return err in {errno.EACCES, errno.EPERM}
