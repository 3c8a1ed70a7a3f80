class ArkError(Exception):
    """Base class for Ark-specific errors."""


# Archive reading
class InvalidArchive(ArkError):
    pass


class DecryptionFailed(ArkError):
    pass


class CorruptArchive(ArkError):
    pass


class ContainerDecodeError(CorruptArchive):
    pass


# Archive writing
class EntryNameTooLong(ArkError):
    pass


class EntryNameCollision(ArkError):
    pass


# Restore
class CategoryUnresolvable(ArkError):
    def __init__(self, message: str, *, category: str = "", name: str = "", path: str = ""):
        super().__init__(message)
        self.category = category
        self.name = name
        self.path = path


class ConfigError(ArkError):
    pass
