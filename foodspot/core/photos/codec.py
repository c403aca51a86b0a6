"""
Photo encoding before storage.

On the chunked backend photos are turned upright according to their EXIF
orientation and shrunk before they are stored: the long
edge is scaled down to at most 800 px and the result re-encoded as JPEG at
quality 0.7. That keeps a typical photo to a handful of chunks. Nothing
guarantees the output fits in one chunk, so callers never assume it does.

On the direct backend the store takes large values natively and photos are
passed through untouched.

Pillow does the decoding, resizing and encoding. It is CPU-bound, so it runs
in a worker thread to keep the event loop free.
"""

import asyncio
import io
import logging
from pathlib import Path
from typing import Protocol, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError

logger = logging.getLogger(__name__)

# Raw image bytes (e.g. an upload body) or a path to an image file
ImageSource = Union[bytes, Path]

MAX_LONG_EDGE = 800
JPEG_QUALITY = 0.7


class BlobCodec(Protocol):
    """Turns an image source into the bytes handed to the object store."""

    async def encode(self, source: ImageSource) -> bytes:
        ...


def scaled_size(width: int, height: int, max_long_edge: int = MAX_LONG_EDGE) -> tuple[int, int]:
    """
    Target dimensions for an image of ``width`` x ``height``.

    Never upscales. Dimensions are truncated, with a floor of 1 px so that
    extreme aspect ratios still produce a valid image.
    """
    if width <= 0 or height <= 0:
        raise ValueError("Image dimensions must be positive")

    long_edge = max(width, height)
    if long_edge <= max_long_edge:
        return width, height

    # integer form of int(side * max_long_edge / long_edge), free of float drift
    return (
        max(1, width * max_long_edge // long_edge),
        max(1, height * max_long_edge // long_edge),
    )


class JpegBlobCodec:
    """Resize to a bounded long edge and re-encode as lossy JPEG."""

    def __init__(
        self,
        max_long_edge: int = MAX_LONG_EDGE,
        quality: float = JPEG_QUALITY,
    ) -> None:
        if not 0.0 < quality <= 1.0:
            raise ValueError("quality must be in (0, 1]")
        self._max_long_edge = max_long_edge
        # Pillow's JPEG quality runs 1-95 in practice; 0.7 maps to 70
        self._quality = int(round(quality * 100))

    async def encode(self, source: ImageSource) -> bytes:
        """
        Encode ``source`` for storage.

        Raises:
            DecodeError: if the source is not a readable image
        """
        return await asyncio.to_thread(self._encode_sync, source)

    def _encode_sync(self, source: ImageSource) -> bytes:
        raw = _read_source(source)

        try:
            with Image.open(io.BytesIO(raw)) as image:
                image.load()
                # the orientation tag does not survive re-encoding, so apply it now
                image = ImageOps.exif_transpose(image)
                original_size = image.size
                target_size = scaled_size(*image.size, max_long_edge=self._max_long_edge)

                if target_size != image.size:
                    image = image.resize(target_size, Image.Resampling.LANCZOS)

                # JPEG has no alpha or palette
                if image.mode != "RGB":
                    image = image.convert("RGB")

                buffer = io.BytesIO()
                image.save(buffer, format="JPEG", quality=self._quality)
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            logger.warning(
                "Failed to decode image",
                extra={"size_bytes": len(raw), "error": str(e)},
            )
            raise DecodeError(f"Could not decode image: {e}") from e

        encoded = buffer.getvalue()
        logger.debug(
            "Encoded photo",
            extra={
                "original_size": original_size,
                "target_size": target_size,
                "input_bytes": len(raw),
                "output_bytes": len(encoded),
            },
        )
        return encoded


class PassThroughCodec:
    """Identity codec for backends that store large values natively."""

    async def encode(self, source: ImageSource) -> bytes:
        if isinstance(source, Path):
            return await asyncio.to_thread(source.read_bytes)
        return bytes(source)


def _read_source(source: ImageSource) -> bytes:
    if isinstance(source, Path):
        try:
            return source.read_bytes()
        except OSError as e:
            raise DecodeError(f"Could not read image file {source}: {e}") from e
    return bytes(source)
