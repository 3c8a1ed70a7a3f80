from __future__ import annotations

import os
import stat
import sys
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from .categories import Category
from .constants import TRANSIENT_DIRS


@dataclass
class CollectResult:
    files: List[Tuple[str, str]] = field(default_factory=list)  # (archive name, absolute path)
    skipped: int = 0
    siblings: List[str] = field(default_factory=list)  # basenames of extra roots

    def extend(self, other: "CollectResult") -> None:
        self.files.extend(other.files)
        self.skipped += other.skipped


def _join(*parts: str) -> str:
    return "/".join(p for p in parts if p)


def _walk(directory: str, name_base: str, out: CollectResult) -> None:
    try:
        with os.scandir(directory) as it:
            children = sorted(it, key=lambda de: de.name)
    except OSError:
        out.skipped += 1
        return
    for de in children:
        try:
            st = de.stat(follow_symlinks=False)
        except OSError:
            out.skipped += 1
            continue
        if stat.S_ISDIR(st.st_mode) and de.name in TRANSIENT_DIRS:
            continue
        # Symlinks, sockets and devices are not archived
        if stat.S_ISREG(st.st_mode):
            out.files.append((_join(name_base, de.name), de.path))
        elif stat.S_ISDIR(st.st_mode):
            _walk(de.path, _join(name_base, de.name), out)


def collect(roots: Sequence[str], archive_prefix: str) -> CollectResult:
    """Collect regular files below ``roots`` as (archive name, absolute path) pairs.

    Missing roots contribute nothing. A root that is a single file becomes
    ``<archive_prefix>/<basename>``; directory roots are walked recursively with
    names relative to the root. Unreadable files and directories are counted in
    ``skipped`` instead of raising.
    """
    out = CollectResult()
    for root in roots:
        try:
            st = os.stat(root)
        except FileNotFoundError:
            continue
        except OSError:
            out.skipped += 1
            continue
        if stat.S_ISREG(st.st_mode):
            out.files.append((_join(archive_prefix, os.path.basename(root)), os.path.abspath(root)))
        elif stat.S_ISDIR(st.st_mode):
            _walk(os.path.abspath(root), archive_prefix, out)
    return out


def collect_category(category: Category, base_dir: str, workspace_roots: Sequence[str]) -> CollectResult:
    """Collect one category; extra roots (sibling workspaces) nest under their basename.

    The basenames of the extra roots are returned in ``siblings`` so restore can
    tell them apart from ordinary subdirectories of the first root. A
    subdirectory of the first root that has the same name as a sibling is left
    out with a warning, and its files are counted in ``skipped``.
    """
    roots = category.roots(base_dir, workspace_roots)
    out = CollectResult()
    if not roots:
        return out
    primary = collect([roots[0]], category.id)
    extra = CollectResult()
    for root in roots[1:]:
        name = os.path.basename(root.rstrip(os.sep))
        out.siblings.append(name)
        extra.extend(collect([root], _join(category.id, name)))

    shadowed = tuple(_join(category.id, name) + "/" for name in out.siblings)
    kept = [f for f in primary.files if not f[0].startswith(shadowed)]
    if len(kept) != len(primary.files):
        print(
            f"Warning: {len(primary.files) - len(kept)} file(s) in {roots[0]} share a name with a sibling workspace and were not archived",
            file=sys.stderr,
        )
    out.files.extend(kept)
    out.skipped += primary.skipped + len(primary.files) - len(kept)
    out.extend(extra)
    return out
