"""End-to-end tests for synchronize()."""

import pytest

from folder_sync import FatalConfigError, synchronize
from folder_sync.compare import IgnoreMatcher
from folder_sync.models import EventKind


SOURCE_TREE = {
    "readme.md": "# hello\n",
    "src/app.py": "print('hi')\n",
    "src/pkg/__init__.py": "",
    "src/pkg/mod.py": "x = 1\n",
    "assets/logo.bin": bytes(range(256)) * 4,
    "empty/": None,
    "deep/a/b/c/d.txt": "deep",
}


class TestScenario:
    def test_two_files_into_empty_replica(self, source, replica, make_tree, read_tree):
        make_tree(source, {"f1.txt": "X", "dir/f2.txt": "Y"})
        events = synchronize(source, replica)

        assert read_tree(replica) == {"f1.txt": b"X", "dir/": None, "dir/f2.txt": b"Y"}
        by_kind = {(e.kind, e.relative_path) for e in events}
        assert by_kind == {
            (EventKind.CREATE_DIR, "dir"),
            (EventKind.COPY_NEW, "dir/f2.txt"),
            (EventKind.COPY_NEW, "f1.txt"),
        }


class TestProperties:
    def test_convergence(self, source, replica, make_tree, read_tree):
        make_tree(source, SOURCE_TREE)
        make_tree(replica, {
            "readme.md": "# stale\n",
            "src/app.py": "print('HI')\n",
            "junk.txt": "junk",
            "old/tree/file.txt": "old",
            "old/empty/": None,
        })
        events = synchronize(source, replica)

        assert read_tree(replica) == read_tree(source)
        assert not [e for e in events if e.kind is EventKind.ERROR]

    def test_idempotence(self, source, replica, make_tree):
        make_tree(source, SOURCE_TREE)
        first = synchronize(source, replica)
        assert first
        assert synchronize(source, replica) == []

    def test_deletion_of_replica_only_entries(self, source, replica, make_tree, read_tree):
        make_tree(source, {"keep.txt": "k"})
        make_tree(replica, {"keep.txt": "k", "extra.txt": "e", "x/y/z.txt": "z"})
        events = synchronize(source, replica)

        assert read_tree(replica) == {"keep.txt": b"k"}
        kinds = [(e.kind, e.relative_path) for e in events]
        assert kinds == [
            (EventKind.DELETE_FILE, "extra.txt"),
            (EventKind.DELETE_FILE, "x/y/z.txt"),
            (EventKind.DELETE_DIR, "x/y"),
            (EventKind.DELETE_DIR, "x"),
        ]

    def test_same_size_different_content_is_updated(self, source, replica, make_tree):
        make_tree(source, {"f.txt": "abcd"})
        make_tree(replica, {"f.txt": "abcX"})
        events = synchronize(source, replica)
        assert [(e.kind, e.relative_path) for e in events] == [(EventKind.UPDATE, "f.txt")]
        assert (replica / "f.txt").read_text() == "abcd"

    def test_case_only_difference_updates_in_place(self, source, replica, make_tree, read_tree):
        make_tree(source, {"Notes.TXT": "fresh"})
        make_tree(replica, {"notes.txt": "stale"})
        synchronize(source, replica)
        assert read_tree(replica) == {"notes.txt": b"fresh"}

    def test_ignore_patterns(self, source, replica, make_tree, read_tree):
        make_tree(source, {"a.txt": "a", "cache/x.bin": "x", "b.log": "b"})
        synchronize(source, replica, ignore=IgnoreMatcher(["cache/", "*.log"]))
        assert read_tree(replica) == {"a.txt": b"a"}


class TestCaseVariantsInReplica:
    @pytest.fixture(autouse=True)
    def _needs_case_sensitive_fs(self, case_insensitive_fs):
        if case_insensitive_fs:
            pytest.skip("needs a case-sensitive filesystem")

    def test_contents_of_duplicate_directory_removed(self, source, replica, make_tree, read_tree):
        make_tree(source, {"dir/y.txt": "y"})
        make_tree(replica, {"Dir/x.txt": "x", "dir/y.txt": "y", "dir/junk.txt": "j"})
        synchronize(source, replica)

        assert read_tree(replica) == {"dir/": None, "dir/y.txt": b"y"}
        assert synchronize(source, replica) == []

    def test_exact_source_spelling_kept(self, source, replica, make_tree, read_tree):
        make_tree(source, {"a.txt": "new"})
        make_tree(replica, {"A.txt": "old", "a.txt": "old"})
        events = synchronize(source, replica)

        assert read_tree(replica) == {"a.txt": b"new"}
        assert {(e.kind, e.relative_path) for e in events} == {
            (EventKind.UPDATE, "a.txt"),
            (EventKind.DELETE_FILE, "A.txt"),
        }


class TestPreconditions:
    def test_missing_source(self, tmp_path):
        with pytest.raises(FatalConfigError, match="does not exist"):
            synchronize(tmp_path / "nope", tmp_path / "replica")
        assert not (tmp_path / "replica").exists()

    def test_replica_created_if_absent(self, source, tmp_path, make_tree):
        make_tree(source, {"a.txt": "a"})
        target = tmp_path / "new" / "replica"
        synchronize(source, target)
        assert (target / "a.txt").read_text() == "a"

    def test_same_folder_rejected(self, source):
        with pytest.raises(FatalConfigError, match="different"):
            synchronize(source, source)

    def test_replica_inside_source_rejected(self, source):
        with pytest.raises(FatalConfigError, match="inside source"):
            synchronize(source, source / "mirror")

    def test_source_inside_replica_rejected(self, replica):
        inner = replica / "src"
        inner.mkdir()
        with pytest.raises(FatalConfigError, match="inside replica"):
            synchronize(inner, replica)

    def test_replica_is_a_file(self, source, tmp_path):
        f = tmp_path / "file"
        f.write_text("x")
        with pytest.raises(FatalConfigError):
            synchronize(source, f)

    def test_fatal_config_error_is_value_error(self, tmp_path):
        with pytest.raises(ValueError):
            synchronize(tmp_path / "nope", tmp_path / "replica")
