from __future__ import annotations

import zlib
from typing import Optional

from .constants import COMPRESS_LEVEL
from .errors import CorruptArchive


# wbits=31 selects gzip framing around the deflate stream
_GZIP_WBITS = 16 + zlib.MAX_WBITS


class Codec:
    """Whole-buffer gzip codec for the packed container."""

    def __init__(self, level: Optional[int] = None):
        self.level = COMPRESS_LEVEL if level is None else level

    def compress(self, data: bytes) -> bytes:
        c = zlib.compressobj(self.level, zlib.DEFLATED, _GZIP_WBITS)
        return c.compress(data) + c.flush()

    def decompress(self, data: bytes) -> bytes:
        d = zlib.decompressobj(_GZIP_WBITS)
        try:
            out = d.decompress(data) + d.flush()
        except zlib.error as exc:
            raise CorruptArchive(f"Invalid compressed stream: {exc}") from exc
        if not d.eof:
            raise CorruptArchive("Compressed stream is truncated")
        return out


def compress(data: bytes, level: Optional[int] = None) -> bytes:
    return Codec(level).compress(data)


def decompress(data: bytes) -> bytes:
    return Codec().decompress(data)
