"""Reading of APKINDEX archives from local files or remote repositories."""

from __future__ import annotations

import gzip
import io
import tarfile
from dataclasses import dataclass, field
from typing import BinaryIO

import requests


@dataclass
class ApkPackage:
    name: str = ""
    version: str = ""
    arch: str = ""
    description: str = ""
    license: str = ""
    origin: str = ""
    maintainer: str = ""
    url: str = ""
    checksum: str = ""
    commit: str = ""
    build_time: int = 0
    size: int = 0
    installed_size: int = 0
    dependencies: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)
    install_if: list[str] = field(default_factory=list)


@dataclass
class ApkIndex:
    description: str = ""
    packages: list[ApkPackage] = field(default_factory=list)


_STR_FIELDS = {
    "P": "name", "V": "version", "A": "arch", "T": "description",
    "L": "license", "o": "origin", "m": "maintainer", "U": "url",
    "C": "checksum", "c": "commit",
}
_INT_FIELDS = {"t": "build_time", "S": "size", "I": "installed_size"}
_LIST_FIELDS = {"D": "dependencies", "p": "provides", "i": "install_if"}


def parse_apkindex(text: str) -> list[ApkPackage]:
    """Parse the text of an APKINDEX file into packages."""
    packages: list[ApkPackage] = []
    current: ApkPackage | None = None
    for lineno, line in enumerate(text.splitlines(), 1):
        if not line.strip():
            if current is not None:
                packages.append(current)
                current = None
            continue
        key, sep, value = line.partition(":")
        if not sep or len(key) != 1:
            raise ValueError(f"cannot parse line {lineno}: {line!r}")
        if current is None:
            current = ApkPackage()
        if key in _STR_FIELDS:
            setattr(current, _STR_FIELDS[key], value)
        elif key in _INT_FIELDS:
            try:
                setattr(current, _INT_FIELDS[key], int(value))
            except ValueError as e:
                raise ValueError(f"cannot parse line {lineno}: {line!r}") from e
        elif key in _LIST_FIELDS:
            setattr(current, _LIST_FIELDS[key], value.split())
    if current is not None:
        packages.append(current)
    return packages


def index_from_archive(stream: BinaryIO) -> ApkIndex:
    """Read an ApkIndex from an APKINDEX.tar.gz stream."""
    data = gzip.GzipFile(fileobj=stream).read()
    index = ApkIndex()
    found = False
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:", ignore_zeros=True) as tar:
        for member in tar:
            reader = tar.extractfile(member) if member.isreg() else None
            if reader is None:
                continue
            content = reader.read().decode("utf-8")
            if member.name == "APKINDEX":
                index.packages = parse_apkindex(content)
                found = True
            elif member.name == "DESCRIPTION":
                index.description = content
    if not found:
        raise ValueError("APKINDEX not found in archive")
    return index


def fetch_index(arch: str, repo: str) -> ApkIndex:
    """Load the index for ``arch`` from a repository URL or a local archive path."""
    if repo.startswith("http://") or repo.startswith("https://"):
        url = f"{repo}/{arch}/APKINDEX.tar.gz"
        resp = requests.get(url)
        if resp.status_code != 200:
            raise RuntimeError(f"GET {url} ({resp.status_code}): {resp.text}")
        return index_from_archive(io.BytesIO(resp.content))
    try:
        f = open(repo, "rb")
    except OSError as e:
        raise OSError(f"opening {repo!r}: {e}") from e
    with f:
        return index_from_archive(f)