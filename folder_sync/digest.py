"""
Content equality for files that share a relative path.

Sizes are compared first; only same-size files are hashed. MD5 is used for
change detection, not security: equal digests are treated as equal content.
"""

from __future__ import annotations

import hashlib
import threading
from pathlib import Path
from typing import Callable, Optional

from .models import FileEntry

DEFAULT_CHUNK_SIZE = 1024 * 1024


def md5_file(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    h = hashlib.md5()
    with path.open("rb") as f:
        while True:
            b = f.read(chunk_size)
            if not b:
                break
            h.update(b)
    return h.hexdigest()


class ContentComparer:
    """
    Decides whether two files differ.

    `digest_count` counts every file hashed; `on_digest` is called with the
    path of each file hashed.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_digest: Optional[Callable[[Path], None]] = None,
    ):
        self.chunk_size = chunk_size
        self.on_digest = on_digest
        self.digest_count = 0
        self._guard = threading.Lock()

    def fingerprint(self, entry: FileEntry) -> str:
        if entry.fingerprint is None:
            with self._guard:
                self.digest_count += 1
            if self.on_digest is not None:
                self.on_digest(entry.path)
            entry.fingerprint = md5_file(entry.path, self.chunk_size)
        return entry.fingerprint

    def differs(self, a: FileEntry, b: FileEntry) -> bool:
        if a.size != b.size:
            return True
        try:
            return self.fingerprint(a) != self.fingerprint(b)
        except OSError:
            # unreadable: force a copy attempt rather than skip
            return True
