"""
Photo storage facade.

Pairs a codec with an object store. The pairing follows the backend:

- chunked: JpegBlobCodec + ChunkedObjectStore (size-limited stores)
- direct:  PassThroughCodec + DirectObjectStore (native large values)

Callers get a PhotoStorage and never check which backend is active.
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from .codec import BlobCodec, ImageSource, JpegBlobCodec, PassThroughCodec
from .store import ChunkedObjectStore, DirectObjectStore, KeyValueStore, ObjectStore

logger = logging.getLogger(__name__)

PhotoBackend = Literal["chunked", "direct"]


@dataclass
class PhotoStorage:
    """Encode-then-store for photos, and the matching load."""
    codec: BlobCodec
    store: ObjectStore
    backend: PhotoBackend = "chunked"

    async def save(self, key: str, source: ImageSource) -> int:
        """
        Encode ``source`` and store it under ``key``.

        Returns the number of bytes stored. Any DecodeError or
        StorageWriteError propagates; the photo is not stored in that case.
        """
        encoded = await self.codec.encode(source)
        await self.store.write(key, encoded)
        return len(encoded)

    async def load(self, key: str) -> Optional[bytes]:
        """Stored photo bytes, or None if nothing is stored under ``key``."""
        return await self.store.read(key)

    async def delete(self, key: str) -> bool:
        return await self.store.delete(key)


def create_photo_storage(kv: KeyValueStore, backend: PhotoBackend = "chunked") -> PhotoStorage:
    """
    Build the PhotoStorage for a backend.

    Args:
        kv: Backing key-value store
        backend: "chunked" for size-limited stores, "direct" otherwise

    Returns:
        PhotoStorage with the codec and store for that backend
    """
    if backend == "chunked":
        storage = PhotoStorage(
            codec=JpegBlobCodec(),
            store=ChunkedObjectStore(kv),
            backend=backend,
        )
    elif backend == "direct":
        storage = PhotoStorage(
            codec=PassThroughCodec(),
            store=DirectObjectStore(kv),
            backend=backend,
        )
    else:
        raise ValueError(f"Unknown photo backend: {backend}")

    logger.info("Initialized photo storage", extra={"backend": backend})
    return storage
