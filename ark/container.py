from __future__ import annotations

import struct
import time
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from .constants import (
    BLOCK_SIZE,
    MANIFEST_NAME,
    MAX_ENTRY_SIZE,
    NAME_FIELD_SIZE,
    PREFIX_FIELD_SIZE,
)
from .errors import ContainerDecodeError, EntryNameCollision, EntryNameTooLong


# Entry header block (fixed 512 bytes, POSIX ustar layout)
# struct: 100s 8s 8s 8s 12s 12s 8s 1s 100s 6s 2s 32s 32s 8s 8s 155s 12s
#  - name[100]          - mode[8]        - uid[8]        - gid[8]
#  - size[12] (octal)   - mtime[12]      - chksum[8]     - typeflag[1]
#  - linkname[100]      - magic[6]       - version[2]    - uname[32]
#  - gname[32]          - devmajor[8]    - devminor[8]   - prefix[155]
#  - pad[12]
_HDR_STRUCT = struct.Struct("100s8s8s8s12s12s8s1s100s6s2s32s32s8s8s155s12s")
_CHKSUM_OFFSET = 148
_CHKSUM_BLANK = b" " * 8
_ZERO_BLOCK = bytes(BLOCK_SIZE)
_END_MARKER = _ZERO_BLOCK * 2

_MODE = b"0000644\x00"
_OWNER = b"0001000\x00"
_USTAR_MAGIC = b"ustar\x00"
_USTAR_VERSION = b"00"
_REGTYPES = (b"0", b"\x00")


@dataclass
class ContainerEntry:
    name: str
    size: int
    content: bytes


def _octal(value: int, width: int) -> bytes:
    digits = f"{value:0{width - 1}o}"
    if len(digits) > width - 1:
        raise ValueError(f"value {value} does not fit a {width}-byte octal field")
    return digits.encode("ascii") + b"\x00"


def _parse_octal(raw: bytes, what: str) -> int:
    s = raw.split(b"\x00", 1)[0].strip(b" ")
    if not s:
        return 0
    try:
        return int(s.decode("ascii"), 8)
    except (UnicodeDecodeError, ValueError):
        raise ContainerDecodeError(f"Invalid {what} field: {raw!r}")


def _padded(size: int) -> int:
    return (size + BLOCK_SIZE - 1) // BLOCK_SIZE * BLOCK_SIZE


def _split_name(name: str) -> Tuple[bytes, bytes]:
    """Split ``name`` into (name field, prefix field) bytes.

    Names up to 100 UTF-8 bytes use the name field alone. Longer names are
    split at the first '/' that leaves at most 100 bytes after it and at most
    155 bytes before it. Nothing is ever truncated; an unsplittable name raises
    ``EntryNameTooLong``.
    """
    if not name or "\x00" in name or name.startswith("/"):
        raise ValueError(f"Invalid entry name: {name!r}")
    raw = name.encode("utf-8")
    if len(raw) <= NAME_FIELD_SIZE:
        return raw, b""
    i = raw.find(b"/")
    while i != -1:
        tail = raw[i + 1 :]
        if i > PREFIX_FIELD_SIZE:
            break
        if tail and len(tail) <= NAME_FIELD_SIZE:
            return tail, raw[:i]
        i = raw.find(b"/", i + 1)
    raise EntryNameTooLong(
        f"Entry name too long for container ({len(raw)} bytes; max {NAME_FIELD_SIZE} "
        f"or {PREFIX_FIELD_SIZE}+{NAME_FIELD_SIZE} split at '/'): {name}"
    )


def check_name(name: str) -> None:
    """Raise if ``name`` cannot be stored in a container header."""
    _split_name(name)


def _build_header(name: str, size: int, mtime: int) -> bytes:
    if size < 0 or size > MAX_ENTRY_SIZE:
        raise ValueError(f"Entry too large for container: {name} ({size} bytes)")
    name_field, prefix_field = _split_name(name)
    fields = [
        name_field,
        _MODE,
        _OWNER,
        _OWNER,
        _octal(size, 12),
        _octal(mtime, 12),
        _CHKSUM_BLANK,
        b"0",
        b"",
        _USTAR_MAGIC,
        _USTAR_VERSION,
        b"",
        b"",
        b"",
        b"",
        prefix_field,
        b"",
    ]
    pre = _HDR_STRUCT.pack(*fields)
    chksum = sum(pre)
    fields[6] = f"{chksum:06o}".encode("ascii") + b"\x00 "
    return _HDR_STRUCT.pack(*fields)


def _append_entry(out: bytearray, name: str, content: bytes, mtime: int) -> None:
    out += _build_header(name, len(content), mtime)
    out += content
    pad = _padded(len(content)) - len(content)
    if pad:
        out += bytes(pad)


def pack(manifest: bytes, entries: Iterable[Tuple[str, bytes]], *, mtime: Optional[int] = None) -> bytes:
    """Serialize the manifest and ``(name, content)`` entries into one container.

    The manifest is always written first under the reserved manifest name.
    Duplicate names raise ``EntryNameCollision``.
    """
    ts = int(time.time()) if mtime is None else int(mtime)
    out = bytearray()
    _append_entry(out, MANIFEST_NAME, manifest, ts)
    seen = {MANIFEST_NAME}
    for name, content in entries:
        if name in seen:
            raise EntryNameCollision(f"Duplicate entry name in container: {name}")
        seen.add(name)
        _append_entry(out, name, content, ts)
    out += _END_MARKER
    return bytes(out)


def _decode_name(name_field: bytes, prefix_field: bytes) -> str:
    name = name_field.split(b"\x00", 1)[0]
    prefix = prefix_field.split(b"\x00", 1)[0]
    try:
        if prefix:
            return prefix.decode("utf-8") + "/" + name.decode("utf-8")
        return name.decode("utf-8")
    except UnicodeDecodeError:
        raise ContainerDecodeError(f"Entry name is not valid UTF-8: {prefix!r} {name!r}")


def iter_entries(data: bytes) -> Iterator[ContainerEntry]:
    """Yield ``ContainerEntry`` objects until the end marker.

    Every slice is bounded by the stream length; malformed headers raise
    ``ContainerDecodeError``.
    """
    view = memoryview(data)
    n = len(data)
    pos = 0
    while True:
        if pos + BLOCK_SIZE > n:
            raise ContainerDecodeError("Container ended without end-of-archive marker")
        block = bytes(view[pos : pos + BLOCK_SIZE])
        if block == _ZERO_BLOCK:
            return
        fields = _HDR_STRUCT.unpack(block)
        stored_sum = _parse_octal(fields[6], "checksum")
        calc_sum = sum(block[:_CHKSUM_OFFSET]) + sum(_CHKSUM_BLANK) + sum(block[_CHKSUM_OFFSET + 8 :])
        if stored_sum != calc_sum:
            raise ContainerDecodeError(f"Header checksum mismatch at offset {pos}")
        size = _parse_octal(fields[4], "size")
        pos += BLOCK_SIZE
        end = pos + size
        if end > n:
            raise ContainerDecodeError(f"Entry at offset {pos - BLOCK_SIZE} declares {size} bytes past end of container")
        content = bytes(view[pos:end])
        pos += _padded(size)
        if fields[7] not in _REGTYPES:
            continue
        yield ContainerEntry(name=_decode_name(fields[0], fields[15]), size=size, content=content)


def unpack(data: bytes) -> Tuple[bytes, List[ContainerEntry]]:
    """Parse a container into (manifest bytes, remaining entries)."""
    entries = list(iter_entries(data))
    if not entries or entries[0].name != MANIFEST_NAME:
        raise ContainerDecodeError("Container does not start with a manifest entry")
    return entries[0].content, entries[1:]
