"""Extraction of gzip-compressed tar archives."""

from __future__ import annotations

import gzip
import os
import shutil
import tarfile
from typing import BinaryIO

_CHUNK = 1024


class TaintedPathError(ValueError):
    """Raised when an archive member would be written outside the target."""


def _sanitize_archive_path(dst: str, name: str) -> str:
    target = os.path.normpath(os.path.join(dst, name.replace("/", os.sep)))
    base = os.path.normpath(dst)
    if target.startswith(base):
        return target
    raise TaintedPathError(f"content filepath is tainted: {name}")


def untar(src: BinaryIO, dst: str) -> None:
    """Extract the gzip-compressed tar stream ``src`` into directory ``dst``."""
    with gzip.GzipFile(fileobj=src) as zipped, tarfile.open(
        fileobj=zipped, mode="r|"
    ) as archive:
        for member in archive:
            target = _sanitize_archive_path(dst, member.name)
            if member.isdir():
                os.makedirs(target, exist_ok=True)
            elif member.isreg():
                os.makedirs(os.path.dirname(target), exist_ok=True)
                reader = archive.extractfile(member)
                if reader is None:
                    continue
                with open(target, "wb") as out:
                    shutil.copyfileobj(reader, out, _CHUNK)
                os.chmod(target, member.mode)