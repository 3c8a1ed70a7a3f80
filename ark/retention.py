from __future__ import annotations

import os
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .config import ArkConfig
from .constants import ARCHIVE_SUFFIX


_DAY_SECONDS = 86400


@dataclass
class ArchiveInfo:
    filename: str
    path: str
    size_bytes: int
    created_at: datetime  # modification time, UTC

    @property
    def mtime(self) -> float:
        return self.created_at.timestamp()


def list_archives(directory: str) -> List[ArchiveInfo]:
    """List ``.ocbak`` files in ``directory``, newest first.

    A missing directory, or a path that is not a directory, yields an empty
    list. Files that vanish between the directory scan and ``stat`` are left
    out.
    """
    try:
        names = os.listdir(directory)
    except (FileNotFoundError, NotADirectoryError):
        return []
    out: List[ArchiveInfo] = []
    for fn in names:
        if not fn.endswith(ARCHIVE_SUFFIX):
            continue
        p = os.path.join(directory, fn)
        try:
            st = os.stat(p)
        except FileNotFoundError:
            continue
        if not os.path.isfile(p):
            continue
        out.append(
            ArchiveInfo(
                filename=fn,
                path=p,
                size_bytes=st.st_size,
                created_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            )
        )
    out.sort(key=lambda a: (a.mtime, a.filename), reverse=True)
    return out


def _delete(info: ArchiveInfo) -> bool:
    """Best-effort unlink; an already-missing file counts as deleted."""
    try:
        os.unlink(info.path)
    except FileNotFoundError:
        return True
    except OSError as exc:
        print(f"Warning: failed to prune {info.path}: {exc}", file=sys.stderr)
        return False
    return True


def prune(config: ArkConfig, *, now: Optional[float] = None, log: Optional[Callable[[str], None]] = None) -> List[str]:
    """Apply the retention policy to ``config.backup_dir``.

    Phase one removes archives older than ``max_age_days``; phase two re-lists
    the directory and removes the oldest archives beyond ``max_backups``.

    Returns:
        Filenames that were pruned, in deletion order.
    """
    now = time.time() if now is None else now
    policy = config.retention
    max_age = policy.max_age_days * _DAY_SECONDS
    pruned: List[str] = []

    for info in list_archives(config.backup_dir):
        if now - info.mtime > max_age and _delete(info):
            pruned.append(info.filename)
            if log:
                log(f"[backup] Pruned (age): {info.filename}")

    remaining = list_archives(config.backup_dir)
    for info in remaining[policy.max_backups :]:
        if _delete(info):
            pruned.append(info.filename)
            if log:
                log(f"[backup] Pruned (count): {info.filename}")
    return pruned
