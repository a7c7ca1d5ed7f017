"""Version parsing and ordering for release tags."""

from __future__ import annotations

import functools
import re
from typing import Iterable

_VERSION_RE = re.compile(
    r"^\s*v?(?P<segments>[0-9]+(?:\.[0-9]+)*?)"
    r"(?:-(?P<numpre>[0-9]+[0-9A-Za-z\-~]*(?:\.[0-9A-Za-z\-~]+)*)"
    r"|(?:-?(?P<alphapre>[A-Za-z\-~]+[0-9A-Za-z\-~]*(?:\.[0-9A-Za-z\-~]+)*)))?"
    r"(?:\+(?P<meta>[0-9A-Za-z\-~]+(?:\.[0-9A-Za-z\-~]+)*))?\s*$"
)


class InvalidVersionError(ValueError):
    """Raised for a string that is not a valid version."""


def _compare_part(a: str, b: str) -> int:
    if a == b:
        return 0
    a_num, b_num = a.isdigit(), b.isdigit()
    if a == "":
        return -1 if b_num else 1
    if b == "":
        return 1 if a_num else -1
    if a_num and not b_num:
        return -1
    if b_num and not a_num:
        return 1
    if not a_num:
        return 1 if a > b else -1
    return 1 if int(a) > int(b) else -1


def _compare_prerelease(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return 1
    if not b:
        return -1
    a_parts, b_parts = a.split("."), b.split(".")
    length = max(len(a_parts), len(b_parts))
    a_parts += [""] * (length - len(a_parts))
    b_parts += [""] * (length - len(b_parts))
    for x, y in zip(a_parts, b_parts):
        result = _compare_part(x, y)
        if result:
            return result
    return 0


@functools.total_ordering
class Version:
    """A parsed version such as ``v1.2.3rc1+meta``."""

    def __init__(self, text: str) -> None:
        match = _VERSION_RE.match(text)
        if match is None:
            raise InvalidVersionError(f"Malformed version: {text}")
        segments = [int(s) for s in match.group("segments").split(".")]
        segments += [0] * (3 - len(segments))
        self.original = text
        self.segments: tuple[int, ...] = tuple(segments)
        self.prerelease: str = match.group("alphapre") or match.group("numpre") or ""
        self.metadata: str = match.group("meta") or ""

    def compare(self, other: "Version") -> int:
        """Return -1, 0 or 1 as this version is older, equal or newer."""
        if self.original == other.original:
            return 0
        length = max(len(self.segments), len(other.segments))
        mine = self.segments + (0,) * (length - len(self.segments))
        theirs = other.segments + (0,) * (length - len(other.segments))
        if mine != theirs:
            return 1 if mine > theirs else -1
        return _compare_prerelease(self.prerelease, other.prerelease)

    def _key(self) -> tuple:
        segs = list(self.segments)
        while segs and segs[-1] == 0:
            segs.pop()
        return tuple(segs), self.prerelease

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: "Version") -> bool:
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.original

    def __repr__(self) -> str:
        return f"Version({self.original!r})"


def sort_versions(versions: Iterable[Version]) -> list[Version]:
    """Return versions ordered oldest first."""
    return sorted(versions, key=functools.cmp_to_key(lambda a, b: a.compare(b)))