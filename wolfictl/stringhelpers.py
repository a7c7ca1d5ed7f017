"""Small string utilities."""

from __future__ import annotations

import os
import re
from urllib.parse import urlsplit

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def regexp_split(text: str, separator: str) -> list[str]:
    """Split ``text`` on every match of the ``separator`` regular expression."""
    result: list[str] = []
    last = 0
    for match in re.finditer(separator, text):
        result.append(text[last:match.start()])
        last = match.end()
    result.append(text[last:])
    return result


def is_uri(s: str) -> bool:
    """Return True if ``s`` can be parsed as a URI."""
    if _CONTROL_CHARS.search(s):
        return False
    try:
        urlsplit(s)
    except ValueError:
        return False
    return True


def is_file_path(s: str) -> bool:
    """Return True if ``s`` is an absolute file path."""
    return os.path.isabs(s)