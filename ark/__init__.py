"""
Ark: encrypted, category-aware backups for an OpenClaw installation.

Features:

- Fixed registry of data categories (config, credentials, wallet, workspaces, ...)
  resolved against the base install directory, with automatic discovery of
  sibling agent workspaces.
- Single-file ``.ocbak`` archives: a ustar-compatible container holding a JSON
  manifest and every collected file, gzip-compressed, then sealed with
  AES-256-GCM under a PBKDF2-HMAC-SHA512 key (PyCryptodomex).
- Selective restore by category, with dry-run previews.
- Retention by age and count over a backup directory.

The header (magic, salt, nonce, tag) is checked before any key derivation, and
the tag covers the whole compressed container.
"""

__version__ = "0.1"

__all__ = [
    "categories",
    "collector",
    "container",
    "encryption",
    "engine",
    "retention",
    "config",
]

# Programmatic API: ark.engine.create/restore and ark.retention.list_archives/prune.
