"""Category registry.

Each category maps a stable id to the filesystem roots it owns, resolved
against the base install directory (``~/.openclaw``) and the agent
workspace roots. The id is the first segment of every archived entry name,
so restore depends on ids never changing.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .constants import WORKSPACE_PREFIX


class PathKind(enum.Enum):
    FILE = "file"
    DIR = "dir"


Resolver = Callable[[str, Sequence[str]], List[str]]
DirLister = Callable[[str], Iterable[Tuple[str, bool]]]


@dataclass(frozen=True)
class Category:
    id: str
    label: str
    sensitive: bool
    kind: PathKind
    resolver: Resolver
    # Roots after the first are siblings of base_dir named with this prefix
    sibling_prefix: Optional[str] = None

    def roots(self, base_dir: str, workspace_roots: Sequence[str]) -> List[str]:
        return self.resolver(base_dir, workspace_roots)


def _under_base(name: str) -> Resolver:
    def resolve(base_dir: str, _workspace_roots: Sequence[str]) -> List[str]:
        return [os.path.abspath(os.path.join(base_dir, name))]

    return resolve


def _workspaces(_base_dir: str, workspace_roots: Sequence[str]) -> List[str]:
    return [os.path.abspath(p) for p in workspace_roots]


CATEGORIES: Tuple[Category, ...] = (
    Category("config", "OpenClaw Config", True, PathKind.FILE, _under_base("openclaw.json")),
    Category("credentials", "Credentials", True, PathKind.DIR, _under_base("credentials")),
    Category("wallet", "DOGE Wallet", True, PathKind.DIR, _under_base("doge")),
    Category("brain", "Brain Data", False, PathKind.DIR, _under_base("brain")),
    Category("docrag", "Document Store", False, PathKind.DIR, _under_base("docrag")),
    Category("cron", "Cron Jobs", False, PathKind.DIR, _under_base("cron")),
    Category("extensions", "Extensions/Plugins", False, PathKind.DIR, _under_base("extensions")),
    Category("workspace", "Agent Workspace", False, PathKind.DIR, _workspaces, sibling_prefix=WORKSPACE_PREFIX),
    Category("devices", "Paired Devices", False, PathKind.DIR, _under_base("devices")),
    Category("identity", "Agent Identity", False, PathKind.DIR, _under_base("identity")),
)

_BY_ID = {c.id: c for c in CATEGORIES}


def category_ids() -> List[str]:
    return [c.id for c in CATEGORIES]


def get_category(category_id: str) -> Optional[Category]:
    return _BY_ID.get(category_id)


def resolve_roots(category_id: str, base_dir: str, workspace_roots: Sequence[str]) -> List[str]:
    """Return the ordered filesystem roots for ``category_id``.

    Raises:
        KeyError: if the id is not in the registry.
    """
    return _BY_ID[category_id].roots(base_dir, workspace_roots)


def _scan_dir(path: str) -> List[Tuple[str, bool]]:
    try:
        with os.scandir(path) as it:
            out = []
            for de in it:
                try:
                    is_dir = de.is_dir(follow_symlinks=False)
                except OSError:
                    is_dir = False
                out.append((de.name, is_dir))
            return out
    except OSError:
        return []


def discover_workspaces(base_dir: str, lister: Optional[DirLister] = None) -> List[str]:
    """Find sibling agent workspaces (``workspace-*`` directories) under ``base_dir``.

    Args:
        base_dir: The base install directory to inspect.
        lister: Returns ``(name, is_dir)`` pairs for a directory. Defaults to an
            ``os.scandir`` snapshot; a missing directory yields nothing.

    Returns:
        Sorted absolute paths of the matching directories.
    """
    list_fn = lister or _scan_dir
    found = [
        os.path.abspath(os.path.join(base_dir, name))
        for name, is_dir in list_fn(base_dir)
        if is_dir and name.startswith(WORKSPACE_PREFIX) and len(name) > len(WORKSPACE_PREFIX)
    ]
    return sorted(found)


def workspace_roots(primary: str, base_dir: str, lister: Optional[DirLister] = None) -> List[str]:
    primary = os.path.abspath(primary)
    return [primary] + [p for p in discover_workspaces(base_dir, lister) if p != primary]
