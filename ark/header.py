from __future__ import annotations

import struct

from .constants import HEADER_SIZE, MAGIC
from .encryption import SealedPayload
from .errors import InvalidArchive


# Archive header (fixed 70 bytes)
# struct: 6s 32s 16s 16s
#  - magic[6]  "OCBAK1"
#  - salt[32]
#  - nonce[16]
#  - tag[16]
# followed by the ciphertext
_HEADER_STRUCT = struct.Struct("6s32s16s16s")


def pack_archive(sealed: SealedPayload) -> bytes:
    return _HEADER_STRUCT.pack(MAGIC, sealed.salt, sealed.nonce, sealed.tag) + sealed.ciphertext


def parse_archive(data: bytes) -> SealedPayload:
    """Split raw archive bytes into their sealed parts.

    The magic is compared before anything else so that foreign files are
    rejected without any cryptographic work.
    """
    if data[: len(MAGIC)] != MAGIC:
        raise InvalidArchive("Invalid backup file: wrong magic header")
    if len(data) < HEADER_SIZE:
        raise InvalidArchive("Invalid backup file: truncated header")
    _magic, salt, nonce, tag = _HEADER_STRUCT.unpack_from(data, 0)
    return SealedPayload(salt=salt, nonce=nonce, tag=tag, ciphertext=bytes(data[HEADER_SIZE:]))
