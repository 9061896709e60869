"""
Shared fixtures for rootfs tests.

InMemoryFileSystem implements the operations the watcher polls, so watcher
scenarios run deterministically without sleeping or touching the disk.
"""

import os
from typing import Dict, Set
from unittest.mock import Mock

import pytest

from rootfs.events import FileSystemListener
from rootfs.paths import clean_path


class InMemoryFileSystem:
    """Fake filesystem of absolute paths with explicit modification times."""

    def __init__(self, root: str = "/root"):
        self.root = root
        self.files: Dict[str, int] = {}
        self.dirs: Set[str] = {root}
        self.read_dir_calls = 0

    def add_dir(self, path: str) -> None:
        path = clean_path(path)
        while path not in self.dirs and path != "/":
            self.dirs.add(path)
            path = os.path.dirname(path)

    def add_file(self, path: str, mtime: int = 1000) -> None:
        path = clean_path(path)
        self.add_dir(os.path.dirname(path))
        self.files[path] = mtime

    def touch(self, path: str, mtime: int) -> None:
        self.files[clean_path(path)] = mtime

    def remove(self, path: str) -> None:
        path = clean_path(path)
        self.files.pop(path, None)
        self.dirs.discard(path)

    # WatchedFileSystem operations

    def clean_path(self, path: str) -> str:
        return clean_path(path)

    def exists(self, path: str) -> bool:
        path = clean_path(path)
        return path in self.files or path in self.dirs

    def is_dir(self, path: str) -> bool:
        return clean_path(path) in self.dirs

    def read_dir(self, path: str, recursive: bool = False) -> Dict[str, str]:
        self.read_dir_calls += 1
        path = clean_path(path)
        if path not in self.dirs:
            raise FileNotFoundError(path)

        entries: Dict[str, str] = {}
        for entry in list(self.files) + list(self.dirs):
            if entry == path or not entry.startswith(path + "/"):
                continue
            name = entry[len(path) + 1:]
            if "/" in name and not recursive:
                continue
            entries[name] = entry
        return dict(sorted(entries.items()))

    def last_mod_time(self, path: str) -> int:
        path = clean_path(path)
        if path in self.files:
            return self.files[path]
        if path in self.dirs:
            return 0
        raise FileNotFoundError(path)


@pytest.fixture
def memory_fs():
    """An empty in-memory filesystem rooted at /root."""
    return InMemoryFileSystem()


@pytest.fixture
def listener():
    """A listener mock that lets every event through."""
    mock = Mock(spec=FileSystemListener)
    mock.on_any.return_value = True
    return mock


@pytest.fixture
def root_dir(tmp_path):
    """A real temporary root directory, as the resolver will see it."""
    return clean_path(os.path.realpath(tmp_path))
