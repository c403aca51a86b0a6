"""
Object stores for photo payloads.

Two implementations share the ObjectStore protocol:

- ChunkedObjectStore splits a payload into CHUNK_SIZE slices, writes each
  under a derived key, then writes a manifest with the chunk count. The
  manifest is the commit record: it is written only after every chunk, and
  reads never look past the count it records.
- DirectObjectStore is a pass-through for backends that hold large values
  natively. One key, one entry, no chunking.

Which one is used is decided once at startup (see storage.create_photo_storage)
and injected into callers.

read() returns None when the object does not exist and b"" when it exists
but is empty. The two are never coalesced.
"""

import asyncio
import logging
import weakref
from typing import Iterable, Optional, Protocol

from . import layout
from .errors import (
    CorruptObjectError,
    KeyValueStoreError,
    StorageReadError,
    StorageWriteError,
)

logger = logging.getLogger(__name__)

# chunks fetched concurrently per round trip on read
FETCH_BATCH = 8


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class KeyValueStore(Protocol):
    """
    Backing key-value primitive.

    Values are text. Each operation touches a single key and is atomic on
    its own; nothing spans keys. Implementations may reject values above a
    size ceiling. All failures surface as KeyValueStoreError.
    """

    async def get(self, key: str) -> Optional[str]:
        """Return the value, or None if the key is not set."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""
        ...


class ObjectStore(Protocol):
    """Key-addressed storage of arbitrary-length byte sequences."""

    async def write(self, key: str, data: bytes) -> None:
        ...

    async def read(self, key: str) -> Optional[bytes]:
        ...

    async def delete(self, key: str) -> bool:
        ...


# ---------------------------------------------------------------------------
# Chunked store
# ---------------------------------------------------------------------------

class ChunkedObjectStore:
    """
    Stores objects as fixed-size chunks plus a manifest entry.

    Operations on the same key are serialized with a per-key lock so that
    a reader never sees new chunks under an old manifest. Different keys
    run independently.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    async def write(self, key: str, data: bytes) -> None:
        """
        Replace the object at ``key`` with ``data``.

        Chunks are written one at a time in index order, then the manifest.
        Chunks left over from a longer previous object are removed after the
        new manifest is in place.

        Raises:
            StorageWriteError: if any chunk or manifest write fails
        """
        data = bytes(data)
        count = layout.chunk_count(len(data))

        async with self._lock_for(key):
            previous_count = await self._previous_count(key)

            for index, chunk in enumerate(layout.split_chunks(data)):
                await self._set(key, layout.chunk_key(key, index), layout.encode_value(chunk))
                logger.debug(
                    "Wrote chunk",
                    extra={"key": key, "index": index, "size_bytes": len(chunk)},
                )

            await self._set(key, layout.manifest_key(key), layout.encode_manifest(count))

            if previous_count > count:
                await self._discard_chunks(key, range(count, previous_count))

        logger.info(
            "Stored chunked object",
            extra={"key": key, "size_bytes": len(data), "chunks": count},
        )

    async def read(self, key: str) -> Optional[bytes]:
        """
        Reassemble the object at ``key``.

        Chunks are fetched concurrently, FETCH_BATCH at a time, and joined in
        index order. A missing or bad chunk stops the read at its batch.

        Returns:
            The stored bytes, or None if no manifest exists for ``key``

        Raises:
            StorageReadError: if any underlying read fails
            CorruptObjectError: if the chunks don't match the manifest
        """
        async with self._lock_for(key):
            raw_manifest = await self._get(key, layout.manifest_key(key))
            if raw_manifest is None:
                return None

            try:
                count = layout.parse_manifest(raw_manifest)
            except ValueError as e:
                raise CorruptObjectError(f"Unreadable manifest for {key}: {e}", key=key) from e

            parts: list[bytes] = []
            for start in range(0, count, FETCH_BATCH):
                indexes = range(start, min(start + FETCH_BATCH, count))
                values = await asyncio.gather(
                    *(self._get(key, layout.chunk_key(key, index)) for index in indexes)
                )
                parts.extend(
                    self._check_chunk(key, index, count, value)
                    for index, value in zip(indexes, values)
                )

        return b"".join(parts)

    async def delete(self, key: str) -> bool:
        """
        Remove the object at ``key``.

        The manifest goes first, so the object is absent to readers as soon
        as that single delete succeeds. Chunks are removed afterwards.

        Returns:
            True if an object existed, False if the key was already absent
        """
        async with self._lock_for(key):
            count = await self._previous_count(key, must_exist=True)
            if count is None:
                return False

            try:
                await self._kv.delete(layout.manifest_key(key))
            except KeyValueStoreError as e:
                logger.error(
                    "Failed to delete manifest",
                    extra={"key": key, "error": str(e)},
                )
                raise StorageWriteError(f"Delete failed for {key}: {e}", key=key) from e

            await self._discard_chunks(key, range(count))

        logger.info("Deleted chunked object", extra={"key": key, "chunks": count})
        return True

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def _previous_count(self, key: str, must_exist: bool = False) -> Optional[int]:
        """
        Chunk count of whatever is currently stored at ``key``.

        Only used to find chunks to clean up, so an unreadable manifest
        counts as zero chunks. With ``must_exist`` a missing manifest gives
        None instead of 0.
        """
        try:
            raw = await self._kv.get(layout.manifest_key(key))
        except KeyValueStoreError as e:
            if must_exist:
                raise StorageReadError(f"Read failed for {key}: {e}", key=key) from e
            logger.warning(
                "Could not read previous manifest, skipping cleanup",
                extra={"key": key, "error": str(e)},
            )
            return 0

        if raw is None:
            return None if must_exist else 0

        try:
            return layout.parse_manifest(raw)
        except ValueError:
            logger.warning(
                "Ignoring unreadable previous manifest",
                extra={"key": key, "value": raw[:32]},
            )
            return 0

    async def _discard_chunks(self, key: str, indexes: Iterable[int]) -> None:
        # runs after the manifest no longer references these chunks
        for index in indexes:
            try:
                await self._kv.delete(layout.chunk_key(key, index))
            except KeyValueStoreError as e:
                logger.warning(
                    "Failed to delete stale chunk",
                    extra={"key": key, "index": index, "error": str(e)},
                )

    async def _get(self, key: str, entry_key: str) -> Optional[str]:
        try:
            return await self._kv.get(entry_key)
        except KeyValueStoreError as e:
            logger.error(
                "Failed to read entry",
                extra={"key": key, "entry_key": entry_key, "error": str(e)},
            )
            raise StorageReadError(f"Read failed for {entry_key}: {e}", key=key) from e

    async def _set(self, key: str, entry_key: str, value: str) -> None:
        try:
            await self._kv.set(entry_key, value)
        except KeyValueStoreError as e:
            logger.error(
                "Failed to write entry",
                extra={"key": key, "entry_key": entry_key, "error": str(e)},
            )
            raise StorageWriteError(f"Write failed for {entry_key}: {e}", key=key) from e

    @staticmethod
    def _check_chunk(key: str, index: int, count: int, value: Optional[str]) -> bytes:
        """Decode one chunk and verify it fits the manifest."""
        if value is None:
            raise CorruptObjectError(
                f"Chunk {index} of {count} missing for {key}", key=key
            )

        try:
            chunk = layout.decode_value(value)
        except ValueError as e:
            raise CorruptObjectError(
                f"Chunk {index} of {count} unreadable for {key}: {e}", key=key
            ) from e

        is_last = index == count - 1
        if len(chunk) > layout.CHUNK_SIZE or not chunk:
            valid = False
        elif is_last:
            valid = True
        else:
            valid = len(chunk) == layout.CHUNK_SIZE

        if not valid:
            raise CorruptObjectError(
                f"Chunk {index} of {count} has wrong size {len(chunk)} for {key}",
                key=key,
            )

        return chunk


# ---------------------------------------------------------------------------
# Direct store
# ---------------------------------------------------------------------------

class DirectObjectStore:
    """
    Pass-through store for backends with native large-object support.

    The whole payload lives under the logical key itself. There is no
    manifest and no chunking, and the key doubles as the object reference.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    async def write(self, key: str, data: bytes) -> None:
        try:
            await self._kv.set(key, layout.encode_value(bytes(data)))
        except KeyValueStoreError as e:
            logger.error("Failed to write object", extra={"key": key, "error": str(e)})
            raise StorageWriteError(f"Write failed for {key}: {e}", key=key) from e

        logger.info("Stored object", extra={"key": key, "size_bytes": len(data)})

    async def read(self, key: str) -> Optional[bytes]:
        try:
            value = await self._kv.get(key)
        except KeyValueStoreError as e:
            logger.error("Failed to read object", extra={"key": key, "error": str(e)})
            raise StorageReadError(f"Read failed for {key}: {e}", key=key) from e

        if value is None:
            return None

        try:
            return layout.decode_value(value)
        except ValueError as e:
            raise CorruptObjectError(f"Object {key} unreadable: {e}", key=key) from e

    async def delete(self, key: str) -> bool:
        try:
            existed = await self._kv.get(key) is not None
            await self._kv.delete(key)
        except KeyValueStoreError as e:
            logger.error("Failed to delete object", extra={"key": key, "error": str(e)})
            raise StorageWriteError(f"Delete failed for {key}: {e}", key=key) from e

        return existed

    def reference(self, key: str) -> str:
        """The key is the object reference on this backend."""
        return key
