"""A read-write filesystem rooted at a directory."""

from __future__ import annotations

import os
from typing import BinaryIO

DEFAULT_FILE_PERM = 0o755


class DirFS:
    """Filesystem view whose paths are relative to ``root``."""

    def __init__(self, root: str) -> None:
        self.root = root

    def full_path(self, name: str) -> str:
        return os.path.normpath(os.path.join(self.root, name))

    def open(self, name: str) -> BinaryIO:
        return open(self.full_path(name), "rb")

    def open_writable(self, name: str) -> BinaryIO:
        return open(self.full_path(name), "r+b")

    def truncate(self, name: str, size: int) -> None:
        os.truncate(self.full_path(name), size)

    def iterdir(self) -> list[os.DirEntry]:
        """Return the entries of the root directory in lexical order."""
        with os.scandir(self.root) as it:
            return sorted(it, key=lambda e: e.name)