"""
Errors raised by the photo storage layer.

All of them derive from PhotoStorageError so callers that only care about
"the photo could not be stored or loaded" can catch one type. None of them
are retried internally.
"""

from typing import Optional


class KeyValueStoreError(Exception):
    """Raised by a backing key-value store when a get/set/delete fails."""
    pass


class PhotoStorageError(Exception):
    """Base class for photo storage failures."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key


class DecodeError(PhotoStorageError):
    """The image source could not be decoded as an image."""
    pass


class StorageWriteError(PhotoStorageError):
    """
    An underlying key-value write failed.

    No rollback is performed. Chunks written before the failure may remain,
    but the manifest is only written after every chunk, so a failed write
    never becomes visible as a new object. Treat the state of the key as
    unknown and re-read before retrying.
    """
    pass


class StorageReadError(PhotoStorageError):
    """An underlying key-value read failed."""
    pass


class CorruptObjectError(PhotoStorageError):
    """The manifest exists but the chunks don't match it."""
    pass
