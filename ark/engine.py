"""Create and restore encrypted category backups.

Archive layout: ``OCBAK1`` magic, 32-byte salt, 16-byte nonce and 16-byte
GCM tag, followed by the AES-256-GCM ciphertext of a gzip-compressed tape
container whose first entry is the JSON manifest.
"""

from __future__ import annotations

import os
import sys
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Collection, Iterable, List, Optional, Sequence, Tuple

from . import codec, container, encryption
from .categories import Category, PathKind, get_category, workspace_roots
from .collector import collect_category
from .config import ArkConfig, resolve_workspace
from .constants import ARCHIVE_PREFIX, ARCHIVE_SUFFIX
from .errors import CategoryUnresolvable, EntryNameTooLong
from .header import pack_archive, parse_archive
from .manifest import Manifest
from .pathutil import norm_path, split_category


LogFn = Optional[Callable[[str], None]]


@dataclass
class ArchiveResult:
    path: str
    manifest: Manifest
    size_bytes: int
    duration_ms: int
    skipped: int = 0


@dataclass
class RestoreResult:
    manifest: Manifest
    restored_categories: List[str]
    file_count: int
    duration_ms: int
    failures: List[CategoryUnresolvable] = field(default_factory=list)


def _warn(msg: str) -> None:
    print(f"Warning: {msg}", file=sys.stderr)


def _elapsed_ms(t0: float) -> int:
    return int((time.monotonic() - t0) * 1000)


def _layout(config: ArkConfig) -> Tuple[str, List[str]]:
    """Return (base dir, workspace roots) for ``config``."""
    return config.base_dir, workspace_roots(resolve_workspace(config), config.base_dir)


def archive_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{ARCHIVE_PREFIX}{now.astimezone(timezone.utc):%Y-%m-%dT%H-%M-%S}{ARCHIVE_SUFFIX}"


def _next_nonconflicting_path(path: str) -> str:
    if not os.path.lexists(path):
        return path
    root, ext = os.path.splitext(path)
    i = 1
    while True:
        candidate = f"{root}-{i}{ext}"
        if not os.path.lexists(candidate):
            return candidate
        i += 1


def _write_atomic(directory: str, filename: str, data: bytes) -> str:
    """Write ``data`` under a temporary name, then move it into place."""
    fd, tmp = tempfile.mkstemp(prefix=".ark-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        dst = _next_nonconflicting_path(os.path.join(directory, filename))
        os.replace(tmp, dst)
    except OSError:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise
    return dst


def _read_payload(files: Iterable[Tuple[str, str]]) -> Tuple[List[Tuple[str, bytes]], int]:
    payload: List[Tuple[str, bytes]] = []
    skipped = 0
    for name, path in files:
        try:
            container.check_name(name)
        except EntryNameTooLong as exc:
            _warn(f"skipping {path}: {exc}")
            skipped += 1
            continue
        try:
            with open(path, "rb") as fh:
                payload.append((name, fh.read()))
        except OSError:
            skipped += 1
    return payload, skipped


def create(passphrase: str, config: ArkConfig, log: LogFn = None) -> ArchiveResult:
    """Collect every enabled category into a new encrypted archive.

    Args:
        passphrase: Secret the archive key is derived from.
        config: Backup directory, base directory and category toggles.
        log: Optional sink for progress lines.

    Returns:
        An ``ArchiveResult``. Its manifest's ``total_bytes`` is the uncompressed
        container length; the stored manifest records the payload byte count.
    """
    t0 = time.monotonic()
    base_dir, ws_roots = _layout(config)
    os.makedirs(config.backup_dir, exist_ok=True)

    enabled = config.enabled_categories()
    payload: List[Tuple[str, bytes]] = []
    siblings: List[str] = []
    skipped = 0
    for cat in enabled:
        found = collect_category(cat, base_dir, ws_roots)
        siblings.extend(found.siblings)
        entries, unread = _read_payload(found.files)
        payload.extend(entries)
        skipped += found.skipped + unread
        if log:
            log(f"[backup] {cat.label}: {len(entries)} files")

    manifest = Manifest.new(
        categories=[c.id for c in enabled],
        file_count=len(payload),
        total_bytes=sum(len(content) for _, content in payload),
        workspaces=siblings,
    )
    packed = container.pack(manifest.to_json(), payload)
    sealed = encryption.seal(passphrase, codec.compress(packed))
    data = pack_archive(sealed)
    path = _write_atomic(config.backup_dir, archive_filename(), data)

    if log:
        log(f"[backup] Created {os.path.basename(path)} ({len(data) / 1024 / 1024:.1f}MB, {len(payload)} files)")
    return ArchiveResult(
        path=path,
        manifest=manifest.with_total_bytes(len(packed)),
        size_bytes=len(data),
        duration_ms=_elapsed_ms(t0),
        skipped=skipped,
    )


def destination_for(
    category: Category,
    rel: str,
    base_dir: str,
    ws_roots: Sequence[str],
    siblings: Optional[Collection[str]] = None,
) -> str:
    """Map an entry's path below its category id to a filesystem destination.

    - ``<sibling>/rest`` goes to that sibling directory under ``base_dir``; the
      segment must carry the sibling prefix and, when the manifest lists
      sibling names, be one of them (older archives list none)
    - an empty path, or any path of a file-valued category, is the first root
    - otherwise the path is joined onto the first root
    """
    try:
        rel = norm_path(rel)
    except ValueError as exc:
        raise CategoryUnresolvable(f"Unsafe entry path {rel!r}: {exc}", category=category.id, name=rel) from exc
    roots = category.roots(base_dir, ws_roots)
    if not roots:
        raise CategoryUnresolvable(f"Category {category.id} has no destination", category=category.id, name=rel)
    base = roots[0]
    if category.sibling_prefix and rel:
        head, _sep, rest = rel.partition("/")
        is_sibling = head.startswith(category.sibling_prefix) and (siblings is None or head in siblings)
        if rest and is_sibling:
            return os.path.join(base_dir, head, *rest.split("/"))
    if not rel or category.kind is PathKind.FILE:
        return base
    return os.path.join(base, *rel.split("/"))


def _write_entry(dst: str, content: bytes) -> None:
    os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
    with open(dst, "wb") as fh:
        fh.write(content)


def restore(
    archive_path: str,
    passphrase: str,
    config: ArkConfig,
    *,
    categories: Optional[Sequence[str]] = None,
    dry_run: bool = False,
    log: LogFn = None,
) -> RestoreResult:
    """Decrypt an archive and write its entries back to their category roots.

    Raises:
        InvalidArchive: wrong magic or truncated header (no key derivation happens).
        DecryptionFailed: wrong passphrase or tampered ciphertext/tag.
        CorruptArchive: authenticated data that does not decompress or parse.
    """
    t0 = time.monotonic()
    with open(archive_path, "rb") as fh:
        data = fh.read()
    sealed = parse_archive(data)
    packed = codec.decompress(encryption.open_sealed(passphrase, sealed))
    manifest_raw, entries = container.unpack(packed)
    manifest = Manifest.from_json(manifest_raw)

    base_dir, ws_roots = _layout(config)
    wanted = set(categories) if categories is not None else None
    restored: List[str] = []
    failures: List[CategoryUnresolvable] = []
    count = 0

    for entry in entries:
        cat_id, rel = split_category(entry.name)
        if wanted is not None and cat_id not in wanted:
            continue
        cat = get_category(cat_id)
        if cat is None:
            continue
        try:
            dst = destination_for(cat, rel, base_dir, ws_roots, manifest.workspaces)
        except CategoryUnresolvable as exc:
            _warn(str(exc))
            failures.append(exc)
            continue
        if dry_run:
            if log:
                log(f"[restore] (dry-run) {dst}")
        else:
            try:
                _write_entry(dst, entry.content)
            except OSError as exc:
                err = CategoryUnresolvable(
                    f"Cannot write {dst}: {exc}", category=cat_id, name=entry.name, path=dst
                )
                _warn(str(err))
                failures.append(err)
                continue
        if cat_id not in restored:
            restored.append(cat_id)
        count += 1

    if log:
        verb = "Would restore" if dry_run else "Restored"
        log(f"[restore] {verb} {count} files from {', '.join(restored) or 'no categories'}")
    return RestoreResult(
        manifest=manifest,
        restored_categories=restored,
        file_count=count,
        duration_ms=_elapsed_ms(t0),
        failures=failures,
    )
