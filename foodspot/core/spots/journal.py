"""
The food spot journal: CRUD over the key-value store.

All spots live as one JSON list under the ``spots`` key. Photos are stored
separately through PhotoStorage, under ``spot_photo_<id>`` keys.

Saving a spot with a photo stores the photo first and only then writes the
record. If the photo cannot be stored the save fails and the record list is
left exactly as it was.
"""

import asyncio
import json
import logging
import time
from typing import Callable, Optional

from ..photos.codec import ImageSource
from ..photos.errors import (
    KeyValueStoreError,
    PhotoStorageError,
    StorageReadError,
    StorageWriteError,
)
from ..photos.storage import PhotoStorage
from ..photos.store import KeyValueStore
from .models import FoodSpot

logger = logging.getLogger(__name__)

SPOTS_KEY = "spots"
PHOTO_KEY_PREFIX = "spot_photo_"


class SpotNotFoundError(Exception):
    """Raised when a requested spot doesn't exist."""
    pass


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class SpotJournal:
    """
    Repository for food spots and their photos.

    Record updates are serialized with a lock since every change rewrites
    the whole list.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        photos: PhotoStorage,
        clock: Callable[[], int] = _epoch_millis,
    ) -> None:
        self._kv = kv
        self._photos = photos
        self._clock = clock
        self._last_id = 0
        self._lock = asyncio.Lock()

    async def list_spots(self) -> list[FoodSpot]:
        return await self._load()

    async def get_spot(self, spot_id: str) -> FoodSpot:
        for spot in await self._load():
            if spot.id == spot_id:
                return spot
        raise SpotNotFoundError(f"Spot not found: {spot_id}")

    async def save_spot(self, spot: FoodSpot, photo: Optional[ImageSource] = None) -> FoodSpot:
        """
        Create or update a spot, optionally replacing its photo.

        A spot with an empty id is created and gets a new id. A spot with
        an id must already exist.

        If the record can't be written, a newly stored photo is removed
        again and ``spot`` is left as it was passed in.

        Raises:
            SpotNotFoundError: if updating a spot that doesn't exist
            DecodeError: if the photo is not a readable image
            StorageWriteError: if the photo or the record could not be written
        """
        async with self._lock:
            spots = await self._load()

            index = None
            if spot.id:
                index = next((i for i, s in enumerate(spots) if s.id == spot.id), None)
                if index is None:
                    raise SpotNotFoundError(f"Spot not found: {spot.id}")

            previous_photo_key = spots[index].photo_key if index is not None else ""
            original_id, original_photo_key = spot.id, spot.photo_key
            photo_key = ""

            if photo is not None:
                photo_key = f"{PHOTO_KEY_PREFIX}{self._next_id()}"
                size = await self._photos.save(photo_key, photo)
                spot.photo_key = photo_key
                logger.info(
                    "Stored spot photo",
                    extra={"photo_key": photo_key, "size_bytes": size},
                )
            elif not spot.photo_key:
                spot.photo_key = previous_photo_key

            if index is None:
                spot.id = str(self._next_id())
                spots.append(spot)
            else:
                spots[index] = spot

            try:
                await self._persist(spots)
            except StorageWriteError:
                # no record points at the new photo
                if photo_key:
                    await self._discard_photo(photo_key)
                spot.id, spot.photo_key = original_id, original_photo_key
                raise

        logger.info("Saved spot", extra={"spot_id": spot.id, "has_photo": spot.has_photo})

        if previous_photo_key and previous_photo_key != spot.photo_key:
            await self._discard_photo(previous_photo_key)

        return spot

    async def delete_spot(self, spot_id: str) -> FoodSpot:
        """
        Delete a spot and then its photo.

        The record goes first. If the photo can't be removed afterwards it
        is left behind and logged.
        """
        async with self._lock:
            spots = await self._load()
            remaining = [s for s in spots if s.id != spot_id]
            if len(remaining) == len(spots):
                raise SpotNotFoundError(f"Spot not found: {spot_id}")

            deleted = next(s for s in spots if s.id == spot_id)
            await self._persist(remaining)

        logger.info("Deleted spot", extra={"spot_id": spot_id})

        if deleted.has_photo:
            await self._discard_photo(deleted.photo_key)

        return deleted

    async def load_photo(self, spot: FoodSpot) -> Optional[bytes]:
        """Photo bytes for ``spot``, or None if it has none stored."""
        if not spot.has_photo:
            return None
        return await self._photos.load(spot.photo_key)

    def _next_id(self) -> int:
        # ids come from the clock but must stay unique within a millisecond
        self._last_id = max(self._clock(), self._last_id + 1)
        return self._last_id

    async def _load(self) -> list[FoodSpot]:
        try:
            raw = await self._kv.get(SPOTS_KEY)
        except KeyValueStoreError as e:
            logger.error("Failed to load spots", extra={"error": str(e)})
            raise StorageReadError(f"Could not load spots: {e}", key=SPOTS_KEY) from e

        if not raw:
            return []

        return [FoodSpot.from_dict(item) for item in json.loads(raw)]

    async def _persist(self, spots: list[FoodSpot]) -> None:
        payload = json.dumps([spot.to_dict() for spot in spots])
        try:
            await self._kv.set(SPOTS_KEY, payload)
        except KeyValueStoreError as e:
            logger.error(
                "Failed to save spots",
                extra={"count": len(spots), "error": str(e)},
            )
            raise StorageWriteError(f"Could not save spots: {e}", key=SPOTS_KEY) from e

    async def _discard_photo(self, photo_key: str) -> None:
        try:
            await self._photos.delete(photo_key)
        except PhotoStorageError as e:
            logger.warning(
                "Failed to delete photo, leaving it orphaned",
                extra={"photo_key": photo_key, "error": str(e)},
            )
