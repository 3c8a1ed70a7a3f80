# Archive header magic and field sizes
MAGIC = b"OCBAK1"  # 6 bytes: "OCBAK1"
SALT_SIZE = 32
NONCE_SIZE = 16
TAG_SIZE = 16
KEY_SIZE = 32
HEADER_SIZE = len(MAGIC) + SALT_SIZE + NONCE_SIZE + TAG_SIZE  # 70

# PBKDF2-HMAC-SHA512 work factor
PBKDF2_ITERATIONS = 600_000

# Compression (gzip framing over deflate)
COMPRESS_LEVEL = 6

# Container (ustar-compatible tape format)
BLOCK_SIZE = 512
NAME_FIELD_SIZE = 100
PREFIX_FIELD_SIZE = 155
MAX_ENTRY_SIZE = 8 ** 11 - 1  # 11 octal digits
MANIFEST_NAME = "manifest.json"
MANIFEST_VERSION = "1"

# Archive files on disk
ARCHIVE_SUFFIX = ".ocbak"
ARCHIVE_PREFIX = "openclaw-backup-"

# Collection
TRANSIENT_DIRS = frozenset({"node_modules", ".git", ".cache", "__pycache__"})
WORKSPACE_PREFIX = "workspace-"
