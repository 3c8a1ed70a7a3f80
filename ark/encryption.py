from __future__ import annotations

import os
from dataclasses import dataclass

from Cryptodome.Cipher import AES
from Cryptodome.Hash import SHA512
from Cryptodome.Protocol.KDF import PBKDF2

from .constants import KEY_SIZE, NONCE_SIZE, PBKDF2_ITERATIONS, SALT_SIZE, TAG_SIZE
from .errors import DecryptionFailed


_DECRYPT_FAILED_MSG = "Decryption failed: wrong passphrase or corrupted archive"


def derive_key(passphrase: str, salt: bytes) -> bytes:
    """PBKDF2-HMAC-SHA512 over ``passphrase`` and ``salt``; returns a 32-byte key."""
    return PBKDF2(
        passphrase.encode("utf-8"),
        salt,
        dkLen=KEY_SIZE,
        count=PBKDF2_ITERATIONS,
        hmac_hash_module=SHA512,
    )


@dataclass
class SealedPayload:
    salt: bytes
    nonce: bytes
    tag: bytes
    ciphertext: bytes


class EncryptionContext:
    """AES-256-GCM bound to one passphrase-derived key."""

    def __init__(self, key: bytes, salt: bytes):
        if len(key) != KEY_SIZE:
            raise ValueError("Key must be 32 bytes for AES-256-GCM")
        self.key = key
        self.salt = salt

    @classmethod
    def create(cls, passphrase: str) -> "EncryptionContext":
        salt = os.urandom(SALT_SIZE)
        return cls(derive_key(passphrase, salt), salt)

    @classmethod
    def from_salt(cls, passphrase: str, salt: bytes) -> "EncryptionContext":
        if len(salt) != SALT_SIZE:
            raise ValueError("Salt must be 32 bytes")
        return cls(derive_key(passphrase, salt), salt)

    def seal(self, plaintext: bytes) -> SealedPayload:
        nonce = os.urandom(NONCE_SIZE)
        cipher = AES.new(self.key, AES.MODE_GCM, nonce=nonce, mac_len=TAG_SIZE)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
        return SealedPayload(salt=self.salt, nonce=nonce, tag=tag, ciphertext=ciphertext)

    def open(self, sealed: SealedPayload) -> bytes:
        """Verify and decrypt; any mismatch raises ``DecryptionFailed``."""
        if len(sealed.nonce) != NONCE_SIZE or len(sealed.tag) != TAG_SIZE:
            raise DecryptionFailed(_DECRYPT_FAILED_MSG)
        cipher = AES.new(self.key, AES.MODE_GCM, nonce=sealed.nonce, mac_len=TAG_SIZE)
        try:
            return cipher.decrypt_and_verify(sealed.ciphertext, sealed.tag)
        except ValueError:
            raise DecryptionFailed(_DECRYPT_FAILED_MSG) from None


def seal(passphrase: str, plaintext: bytes) -> SealedPayload:
    """Encrypt ``plaintext`` under a fresh salt and nonce."""
    return EncryptionContext.create(passphrase).seal(plaintext)


def open_sealed(passphrase: str, sealed: SealedPayload) -> bytes:
    return EncryptionContext.from_salt(passphrase, sealed.salt).open(sealed)
