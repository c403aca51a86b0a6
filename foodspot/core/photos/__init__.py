"""
Photo storage.

Photos are encoded by a codec and persisted by an object store on top of a
size-limited key-value store. See store.py for the chunking protocol and
layout.py for the persisted format.
"""

from .codec import BlobCodec, ImageSource, JpegBlobCodec, PassThroughCodec
from .errors import (
    CorruptObjectError,
    DecodeError,
    KeyValueStoreError,
    PhotoStorageError,
    StorageReadError,
    StorageWriteError,
)
from .layout import CHUNK_SIZE, chunk_key, manifest_key
from .storage import PhotoBackend, PhotoStorage, create_photo_storage
from .store import ChunkedObjectStore, DirectObjectStore, KeyValueStore, ObjectStore

__all__ = [
    "BlobCodec",
    "ImageSource",
    "JpegBlobCodec",
    "PassThroughCodec",
    "CorruptObjectError",
    "DecodeError",
    "KeyValueStoreError",
    "PhotoStorageError",
    "StorageReadError",
    "StorageWriteError",
    "CHUNK_SIZE",
    "chunk_key",
    "manifest_key",
    "PhotoBackend",
    "PhotoStorage",
    "create_photo_storage",
    "ChunkedObjectStore",
    "DirectObjectStore",
    "KeyValueStore",
    "ObjectStore",
]
