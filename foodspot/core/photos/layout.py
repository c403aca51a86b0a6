"""
Persisted layout of chunked objects.

Everything that decides what ends up in the key-value store lives here:
the derived key names, how a chunk of bytes becomes a text value, and how
the manifest records the chunk count. These are pure functions so the
format can be tested without any store.

For a logical key ``photo_1`` holding 2,500,000 bytes the store contains:

    photo_1_0       base64 of bytes[0:1048576]
    photo_1_1       base64 of bytes[1048576:2097152]
    photo_1_2       base64 of bytes[2097152:2500000]
    photo_1_chunks  "3"
"""

import base64
import binascii
from typing import Iterator

CHUNK_SIZE = 1024 * 1024

MANIFEST_SUFFIX = "_chunks"


def manifest_key(key: str) -> str:
    """Key of the entry holding the chunk count for ``key``."""
    return f"{key}{MANIFEST_SUFFIX}"


def chunk_key(key: str, index: int) -> str:
    """Key of chunk ``index`` of ``key`` (plain decimal, no padding)."""
    if index < 0:
        raise ValueError("Chunk index cannot be negative")
    return f"{key}_{index}"


def chunk_count(size: int) -> int:
    """Number of chunks needed for ``size`` bytes (ceiling division)."""
    if size < 0:
        raise ValueError("Size cannot be negative")
    return -(-size // CHUNK_SIZE)


def split_chunks(data: bytes) -> Iterator[bytes]:
    """Yield consecutive CHUNK_SIZE slices of ``data``; nothing for empty data."""
    view = memoryview(data)
    for start in range(0, len(data), CHUNK_SIZE):
        yield bytes(view[start:start + CHUNK_SIZE])


def encode_value(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_value(value: str) -> bytes:
    """
    Turn a stored text value back into bytes.

    Raises ValueError if the value is not valid base64.
    """
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Invalid base64 value: {e}") from e


def encode_manifest(count: int) -> str:
    return str(count)


def parse_manifest(value: str) -> int:
    """
    Parse a stored chunk count.

    Raises ValueError for anything other than a non-negative decimal integer.
    """
    text = value.strip()
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"Invalid chunk count: {value!r}")
    return int(text)


def encoded_chunk_size() -> int:
    """Length of the text value of a full chunk."""
    # base64 emits 4 characters per started 3-byte group
    return 4 * -(-CHUNK_SIZE // 3)
