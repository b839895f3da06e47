"""Tests for the content equality check."""

from pathlib import Path

from folder_sync.digest import ContentComparer, md5_file
from folder_sync.models import FileEntry


def _entry(path: Path) -> FileEntry:
    return FileEntry(path.name, path, path.stat().st_size)


class TestMd5File:
    def test_known_digest(self, tmp_path):
        p = tmp_path / "hello.txt"
        p.write_bytes(b"hello")
        assert md5_file(p) == "5d41402abc4b2a76b9719d911017c592"

    def test_small_chunks_same_digest(self, tmp_path):
        p = tmp_path / "data.bin"
        p.write_bytes(bytes(range(256)) * 50)
        assert md5_file(p, chunk_size=7) == md5_file(p)


class TestDiffers:
    def test_size_fast_path_skips_digest(self, tmp_path):
        a = tmp_path / "a"
        b = tmp_path / "b"
        a.write_bytes(b"short")
        b.write_bytes(b"much longer")
        hashed = []
        comparer = ContentComparer(on_digest=hashed.append)

        assert comparer.differs(_entry(a), _entry(b)) is True
        assert comparer.digest_count == 0
        assert hashed == []

    def test_equal_content_is_unchanged(self, tmp_path):
        a = tmp_path / "a"
        b = tmp_path / "b"
        a.write_bytes(b"same bytes")
        b.write_bytes(b"same bytes")
        comparer = ContentComparer()

        assert comparer.differs(_entry(a), _entry(b)) is False
        assert comparer.digest_count == 2

    def test_one_byte_flipped_differs(self, tmp_path):
        a = tmp_path / "a"
        b = tmp_path / "b"
        a.write_bytes(b"abcdef")
        b.write_bytes(b"abcdeF")
        assert ContentComparer().differs(_entry(a), _entry(b)) is True

    def test_hook_sees_each_hashed_path(self, tmp_path):
        a = tmp_path / "a"
        b = tmp_path / "b"
        a.write_bytes(b"xy")
        b.write_bytes(b"xy")
        hashed = []
        ContentComparer(on_digest=hashed.append).differs(_entry(a), _entry(b))
        assert hashed == [a, b]

    def test_fingerprint_cached_on_entry(self, tmp_path):
        a = tmp_path / "a"
        b = tmp_path / "b"
        a.write_bytes(b"xy")
        b.write_bytes(b"xy")
        ea, eb = _entry(a), _entry(b)
        comparer = ContentComparer()
        comparer.differs(ea, eb)
        comparer.differs(ea, eb)
        assert comparer.digest_count == 2
        assert ea.fingerprint == eb.fingerprint

    def test_unreadable_file_counts_as_different(self, tmp_path):
        a = tmp_path / "a"
        a.write_bytes(b"1234")
        missing = FileEntry("gone", tmp_path / "gone", 4)
        assert ContentComparer().differs(_entry(a), missing) is True
