"""
Shared fixtures.

Stores here are in-memory; nothing touches the network or the disk unless
a test asks for tmp_path.
"""

import asyncio
import io
from typing import Optional

import pytest
from PIL import Image

from foodspot.core.photos.errors import KeyValueStoreError
from foodspot.infrastructure.storage.client import InMemoryKeyValueStore


class FlakyKeyValueStore(InMemoryKeyValueStore):
    """
    In-memory store that fails on chosen keys.

    Lets tests simulate a backing store that rejects a particular write or
    read partway through an operation.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_set: set[str] = set()
        self.fail_get: set[str] = set()
        self.fail_delete: set[str] = set()
        self.set_calls: list[str] = []

    async def get(self, key: str) -> Optional[str]:
        if key in self.fail_get:
            raise KeyValueStoreError(f"simulated get failure for {key}")
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        self.set_calls.append(key)
        if key in self.fail_set:
            raise KeyValueStoreError(f"simulated set failure for {key}")
        await super().set(key, value)

    async def delete(self, key: str) -> None:
        if key in self.fail_delete:
            raise KeyValueStoreError(f"simulated delete failure for {key}")
        await super().delete(key)


def make_image(width: int, height: int, mode: str = "RGB", fmt: str = "PNG") -> bytes:
    """Encode a solid-colour image of the given size."""
    color = (200, 120, 40, 255)[: len(mode)] if mode in ("RGB", "RGBA") else 128
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def flaky_kv() -> FlakyKeyValueStore:
    return FlakyKeyValueStore()


class YieldingKeyValueStore(InMemoryKeyValueStore):
    """
    In-memory store that suspends on every call, like a networked store.

    Gives concurrent operations on one key a chance to interleave. Counts
    reads so tests can bound how much a read fetches.
    """

    def __init__(self) -> None:
        super().__init__()
        self.get_calls = 0

    async def get(self, key: str) -> Optional[str]:
        self.get_calls += 1
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        await super().set(key, value)

    async def delete(self, key: str) -> None:
        await asyncio.sleep(0)
        await super().delete(key)


@pytest.fixture
def slow_kv() -> YieldingKeyValueStore:
    return YieldingKeyValueStore()


@pytest.fixture
def image_factory():
    return make_image
