"""
Food spot API endpoints.

CRUD for journal entries plus photo retrieval. Spots are created and
updated with multipart forms so a photo can travel with the fields.

A save with a photo only returns once the photo is stored. If the photo
can't be decoded or stored the request fails and no record is written.
"""

import logging
from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile, status
from pydantic import BaseModel, Field

from ...core.photos.errors import (
    CorruptObjectError,
    DecodeError,
    PhotoStorageError,
)
from ...core.spots.journal import SpotNotFoundError
from ...core.spots.models import FoodSpot
from ..dependencies import AuthenticatedUser, SettingsDep, SpotJournalDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class SpotResponse(BaseModel):
    """A single food spot."""
    id: str = Field(description="Spot identifier")
    spot_name: str = Field(description="Name of the place")
    description: str = Field(description="Free-form notes")
    visited_on: date = Field(description="Date of the visit")
    rating: int = Field(description="Rating from 0 to 5")
    favorite_menu_item: str = Field(description="Favorite dish")
    photo_url: Optional[str] = Field(None, description="Path of the photo endpoint, if the spot has a photo")

    @classmethod
    def from_spot(cls, spot: FoodSpot) -> "SpotResponse":
        return cls(
            id=spot.id,
            spot_name=spot.spot_name,
            description=spot.description,
            visited_on=spot.visited_on,
            rating=spot.rating,
            favorite_menu_item=spot.favorite_menu_item,
            photo_url=f"/api/v1/spots/{spot.id}/photo" if spot.has_photo else None,
        )


class SpotListResponse(BaseModel):
    """All spots in the journal."""
    spots: list[SpotResponse]
    count: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _storage_http_error(e: PhotoStorageError, action: str) -> HTTPException:
    """Map a storage failure to the HTTP error the client sees."""
    if isinstance(e, DecodeError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Photo could not be read as an image",
        )
    if isinstance(e, CorruptObjectError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stored photo data is corrupt",
        )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Storage unavailable, could not {action}. Please try again.",
    )


async def _read_photo(photo: Optional[UploadFile], max_size_mb: int) -> Optional[bytes]:
    if photo is None:
        return None

    if photo.content_type and not photo.content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported photo type: {photo.content_type}",
        )

    max_bytes = max_size_mb * 1024 * 1024
    too_large = HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"Photo exceeds {max_size_mb}MB limit",
    )

    if photo.size is not None and photo.size > max_bytes:
        raise too_large

    # size can be unknown; never buffer more than one byte past the limit
    data = await photo.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise too_large
    return data


def _build_spot(**fields) -> FoodSpot:
    try:
        return FoodSpot(**fields)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=SpotListResponse,
    status_code=status.HTTP_200_OK,
    summary="List spots",
)
async def list_spots(
    api_key: AuthenticatedUser = None,
    journal: SpotJournalDep = None,
) -> SpotListResponse:
    try:
        spots = await journal.list_spots()
    except PhotoStorageError as e:
        raise _storage_http_error(e, "load spots")

    return SpotListResponse(
        spots=[SpotResponse.from_spot(spot) for spot in spots],
        count=len(spots),
    )


@router.get(
    "/{spot_id}",
    response_model=SpotResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a spot",
)
async def get_spot(
    spot_id: str,
    api_key: AuthenticatedUser = None,
    journal: SpotJournalDep = None,
) -> SpotResponse:
    try:
        spot = await journal.get_spot(spot_id)
    except SpotNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Spot not found")
    except PhotoStorageError as e:
        raise _storage_http_error(e, "load spot")

    return SpotResponse.from_spot(spot)


@router.post(
    "",
    response_model=SpotResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a spot",
    description="Create a journal entry, optionally with a photo",
)
async def create_spot(
    spot_name: Annotated[str, Form(max_length=200)],
    description: Annotated[str, Form(max_length=5000)] = "",
    visited_on: Annotated[Optional[date], Form()] = None,
    rating: Annotated[int, Form(ge=0, le=5)] = 0,
    favorite_menu_item: Annotated[str, Form(max_length=200)] = "",
    photo: Annotated[Optional[UploadFile], File(description="Photo of the spot")] = None,
    api_key: AuthenticatedUser = None,
    journal: SpotJournalDep = None,
    settings: SettingsDep = None,
) -> SpotResponse:
    photo_data = await _read_photo(photo, settings.max_upload_size_mb)
    spot = _build_spot(
        spot_name=spot_name,
        description=description,
        visited_on=visited_on or date.today(),
        rating=rating,
        favorite_menu_item=favorite_menu_item,
    )

    try:
        saved = await journal.save_spot(spot, photo=photo_data)
    except PhotoStorageError as e:
        logger.error(
            "Failed to create spot",
            extra={"spot_name": spot_name, "error": str(e)},
        )
        raise _storage_http_error(e, "save spot")

    return SpotResponse.from_spot(saved)


@router.put(
    "/{spot_id}",
    response_model=SpotResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a spot",
    description="Replace a spot's fields; a new photo replaces the old one",
)
async def update_spot(
    spot_id: str,
    spot_name: Annotated[str, Form(max_length=200)],
    description: Annotated[str, Form(max_length=5000)] = "",
    visited_on: Annotated[Optional[date], Form()] = None,
    rating: Annotated[int, Form(ge=0, le=5)] = 0,
    favorite_menu_item: Annotated[str, Form(max_length=200)] = "",
    photo: Annotated[Optional[UploadFile], File(description="Replacement photo")] = None,
    api_key: AuthenticatedUser = None,
    journal: SpotJournalDep = None,
    settings: SettingsDep = None,
) -> SpotResponse:
    photo_data = await _read_photo(photo, settings.max_upload_size_mb)
    spot = _build_spot(
        id=spot_id,
        spot_name=spot_name,
        description=description,
        visited_on=visited_on or date.today(),
        rating=rating,
        favorite_menu_item=favorite_menu_item,
    )

    try:
        saved = await journal.save_spot(spot, photo=photo_data)
    except SpotNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Spot not found")
    except PhotoStorageError as e:
        logger.error(
            "Failed to update spot",
            extra={"spot_id": spot_id, "error": str(e)},
        )
        raise _storage_http_error(e, "save spot")

    return SpotResponse.from_spot(saved)


@router.delete(
    "/{spot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a spot",
    description="Delete a spot and its photo",
)
async def delete_spot(
    spot_id: str,
    api_key: AuthenticatedUser = None,
    journal: SpotJournalDep = None,
) -> Response:
    try:
        await journal.delete_spot(spot_id)
    except SpotNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Spot not found")
    except PhotoStorageError as e:
        raise _storage_http_error(e, "delete spot")

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{spot_id}/photo",
    status_code=status.HTTP_200_OK,
    summary="Get a spot's photo",
    responses={404: {"description": "Spot or photo not found"}},
)
async def get_spot_photo(
    spot_id: str,
    api_key: AuthenticatedUser = None,
    journal: SpotJournalDep = None,
    settings: SettingsDep = None,
) -> Response:
    try:
        spot = await journal.get_spot(spot_id)
        data = await journal.load_photo(spot)
    except SpotNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Spot not found")
    except PhotoStorageError as e:
        logger.error(
            "Failed to load photo",
            extra={"spot_id": spot_id, "error": str(e)},
        )
        raise _storage_http_error(e, "load photo")

    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")

    # chunked photos are always re-encoded as JPEG; direct ones are stored as uploaded
    media_type = "image/jpeg" if settings.photo_backend == "chunked" else "application/octet-stream"
    return Response(content=data, media_type=media_type)
