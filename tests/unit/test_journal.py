"""
Tests for the spot journal.

The journal runs on the in-memory store with real chunked photo storage,
so these also cover how records and photos interact.
"""

import json

import pytest

from foodspot.core.photos.errors import DecodeError, StorageWriteError
from foodspot.core.photos.storage import create_photo_storage
from foodspot.core.spots.journal import SPOTS_KEY, SpotJournal, SpotNotFoundError
from foodspot.core.spots.models import FoodSpot


class _Clock:
    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def journal(kv) -> SpotJournal:
    return SpotJournal(kv, create_photo_storage(kv, backend="chunked"), clock=_Clock())


class TestSaveSpot:
    """Creating and updating spots."""

    @pytest.mark.asyncio
    async def test_new_spot_gets_id_and_is_listed(self, journal):
        saved = await journal.save_spot(FoodSpot(spot_name="Noodle Bar"))

        assert saved.id == "1700000000000"
        assert [s.spot_name for s in await journal.list_spots()] == ["Noodle Bar"]

    @pytest.mark.asyncio
    async def test_ids_are_unique_within_a_millisecond(self, journal):
        first = await journal.save_spot(FoodSpot(spot_name="A"))
        second = await journal.save_spot(FoodSpot(spot_name="B"))

        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_records_stored_as_json_list(self, journal, kv):
        await journal.save_spot(FoodSpot(spot_name="Noodle Bar", rating=4))

        records = json.loads(await kv.get(SPOTS_KEY))
        assert records[0]["spot_name"] == "Noodle Bar"
        assert records[0]["rating"] == 4

    @pytest.mark.asyncio
    async def test_update_replaces_fields(self, journal):
        saved = await journal.save_spot(FoodSpot(spot_name="Noodle Bar"))

        await journal.save_spot(FoodSpot(id=saved.id, spot_name="Noodle House", rating=5))

        spot = await journal.get_spot(saved.id)
        assert spot.spot_name == "Noodle House"
        assert spot.rating == 5
        assert len(await journal.list_spots()) == 1

    @pytest.mark.asyncio
    async def test_update_unknown_spot_raises(self, journal):
        with pytest.raises(SpotNotFoundError):
            await journal.save_spot(FoodSpot(id="404", spot_name="Ghost"))

    @pytest.mark.asyncio
    async def test_get_unknown_spot_raises(self, journal):
        with pytest.raises(SpotNotFoundError):
            await journal.get_spot("missing")


class TestSpotPhotos:
    """Photos are stored before the record and cleaned up after it."""

    @pytest.mark.asyncio
    async def test_photo_is_stored_and_loadable(self, journal, kv, image_factory):
        saved = await journal.save_spot(
            FoodSpot(spot_name="Noodle Bar"), photo=image_factory(2000, 1000)
        )

        assert saved.photo_key.startswith("spot_photo_")
        assert await kv.get(f"{saved.photo_key}_chunks") == "1"
        photo = await journal.load_photo(saved)
        assert photo[:2] == b"\xff\xd8"  # JPEG SOI marker

    @pytest.mark.asyncio
    async def test_spot_without_photo_loads_none(self, journal):
        saved = await journal.save_spot(FoodSpot(spot_name="Noodle Bar"))

        assert await journal.load_photo(saved) is None

    @pytest.mark.asyncio
    async def test_bad_photo_leaves_records_untouched(self, journal, kv):
        await journal.save_spot(FoodSpot(spot_name="Existing"))
        before = await kv.get(SPOTS_KEY)

        with pytest.raises(DecodeError):
            await journal.save_spot(FoodSpot(spot_name="New"), photo=b"not an image")

        assert await kv.get(SPOTS_KEY) == before

    @pytest.mark.asyncio
    async def test_failed_photo_write_leaves_records_untouched(self, flaky_kv, image_factory):
        journal = SpotJournal(flaky_kv, create_photo_storage(flaky_kv), clock=_Clock())
        flaky_kv.fail_set.add("spot_photo_1700000000000_0")

        with pytest.raises(StorageWriteError):
            await journal.save_spot(FoodSpot(spot_name="New"), photo=image_factory(100, 100))

        assert await journal.list_spots() == []

    @pytest.mark.asyncio
    async def test_failed_record_write_removes_new_photo(self, flaky_kv, image_factory):
        journal = SpotJournal(flaky_kv, create_photo_storage(flaky_kv), clock=_Clock())
        flaky_kv.fail_set.add(SPOTS_KEY)
        spot = FoodSpot(spot_name="New")

        with pytest.raises(StorageWriteError):
            await journal.save_spot(spot, photo=image_factory(100, 100))

        assert flaky_kv.keys() == []
        assert spot.id == ""
        assert spot.photo_key == ""

    @pytest.mark.asyncio
    async def test_failed_update_keeps_previous_photo(self, flaky_kv, image_factory):
        journal = SpotJournal(flaky_kv, create_photo_storage(flaky_kv), clock=_Clock())
        saved = await journal.save_spot(
            FoodSpot(spot_name="Noodle Bar"), photo=image_factory(100, 100)
        )
        old_key = saved.photo_key
        flaky_kv.fail_set.add(SPOTS_KEY)

        with pytest.raises(StorageWriteError):
            await journal.save_spot(
                FoodSpot(id=saved.id, spot_name="Noodle Bar"), photo=image_factory(120, 80)
            )

        assert flaky_kv.keys() == sorted([SPOTS_KEY, f"{old_key}_0", f"{old_key}_chunks"])
        assert (await journal.get_spot(saved.id)).photo_key == old_key

    @pytest.mark.asyncio
    async def test_update_without_photo_keeps_existing_photo(self, journal, image_factory):
        saved = await journal.save_spot(
            FoodSpot(spot_name="Noodle Bar"), photo=image_factory(100, 100)
        )

        updated = await journal.save_spot(FoodSpot(id=saved.id, spot_name="Renamed"))

        assert updated.photo_key == saved.photo_key
        assert await journal.load_photo(updated) is not None

    @pytest.mark.asyncio
    async def test_new_photo_replaces_and_removes_old_one(self, journal, kv, image_factory):
        saved = await journal.save_spot(
            FoodSpot(spot_name="Noodle Bar"), photo=image_factory(100, 100)
        )
        old_key = saved.photo_key

        updated = await journal.save_spot(
            FoodSpot(id=saved.id, spot_name="Noodle Bar"), photo=image_factory(120, 80)
        )

        assert updated.photo_key != old_key
        assert await kv.get(f"{old_key}_chunks") is None
        assert await kv.get(f"{old_key}_0") is None


class TestDeleteSpot:
    """Deleting a spot removes its record and its photo."""

    @pytest.mark.asyncio
    async def test_delete_removes_record_and_photo(self, journal, kv, image_factory):
        saved = await journal.save_spot(
            FoodSpot(spot_name="Noodle Bar"), photo=image_factory(100, 100)
        )

        await journal.delete_spot(saved.id)

        assert await journal.list_spots() == []
        assert kv.keys() == [SPOTS_KEY]

    @pytest.mark.asyncio
    async def test_delete_unknown_spot_raises(self, journal):
        with pytest.raises(SpotNotFoundError):
            await journal.delete_spot("missing")

    @pytest.mark.asyncio
    async def test_photo_cleanup_failure_still_deletes_record(self, flaky_kv, image_factory):
        journal = SpotJournal(flaky_kv, create_photo_storage(flaky_kv), clock=_Clock())
        saved = await journal.save_spot(
            FoodSpot(spot_name="Noodle Bar"), photo=image_factory(100, 100)
        )
        flaky_kv.fail_delete.add(f"{saved.photo_key}_chunks")

        await journal.delete_spot(saved.id)

        assert await journal.list_spots() == []
