"""Shared fixtures for folder_sync tests."""

import logging
import os

import pytest

from folder_sync.logsink import LOGGER_NAME


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


@pytest.fixture
def source(tmp_path):
    p = tmp_path / "source"
    p.mkdir()
    return p


@pytest.fixture
def replica(tmp_path):
    p = tmp_path / "replica"
    p.mkdir()
    return p


@pytest.fixture
def make_tree():
    """Populate a root from {relpath: content}; a trailing slash makes a directory."""
    def _make(root, spec):
        for rel, content in spec.items():
            path = root / rel
            if rel.endswith("/"):
                path.mkdir(parents=True, exist_ok=True)
                continue
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                content = content.encode()
            path.write_bytes(content)
        return root
    return _make


@pytest.fixture
def read_tree():
    """Snapshot a root as {relpath: bytes} for files and {relpath/: None} for directories."""
    def _read(root):
        out = {}
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = os.path.relpath(dirpath, root).replace(os.sep, "/")
            prefix = "" if rel_dir == "." else rel_dir + "/"
            for d in dirnames:
                out[prefix + d + "/"] = None
            for f in filenames:
                with open(os.path.join(dirpath, f), "rb") as fh:
                    out[prefix + f] = fh.read()
        return out
    return _read


@pytest.fixture
def case_insensitive_fs(tmp_path):
    marker = tmp_path / "CaseMarker"
    marker.write_text("x")
    try:
        return (tmp_path / "casemarker").exists()
    finally:
        marker.unlink()
