from __future__ import annotations

import os
from typing import Tuple


def norm_path(p: str) -> str:
    """Normalize the part of an entry name below its category id.

    Backslashes become slashes, empty and '.' segments are dropped. A result
    that could leave the destination root ('..' segments, drive-qualified
    segments such as ``C:`` on Windows, NUL bytes) raises ``ValueError``.
    """
    if "\x00" in p:
        raise ValueError("Path may not contain NUL bytes")
    parts = [q for q in p.replace("\\", "/").split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ValueError("Path may not contain '..'")
        if os.name == "nt" and len(q) >= 2 and q[1] == ":" and q[0].isalpha():
            raise ValueError(f"Path segment {q!r} names a drive")
    return "/".join(parts)


def split_category(name: str) -> Tuple[str, str]:
    """Split an entry name into (category id, remaining relative path).

    The remainder is returned as stored; callers normalize it before touching
    the filesystem.
    """
    head, _sep, rest = name.partition("/")
    return head, rest
