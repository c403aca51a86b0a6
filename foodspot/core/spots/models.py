"""
Domain models for the food spot journal.

A FoodSpot is one journal entry: a place, what was eaten there, how good it
was, and optionally a photo. The photo itself is not part of the model, only
the key it is stored under.
"""

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

MIN_RATING = 0
MAX_RATING = 5


@dataclass
class FoodSpot:
    """
    A single journal entry.

    ``id`` is empty until the spot is first saved. ``photo_key`` is empty
    when the spot has no photo.
    """
    spot_name: str
    description: str = ""
    id: str = ""
    photo_key: str = ""
    visited_on: date = field(default_factory=date.today)
    rating: int = 0
    favorite_menu_item: str = ""

    def __post_init__(self) -> None:
        if not self.spot_name.strip():
            raise ValueError("Spot name cannot be empty")
        if not MIN_RATING <= self.rating <= MAX_RATING:
            raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

    @property
    def has_photo(self) -> bool:
        return bool(self.photo_key)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["visited_on"] = self.visited_on.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FoodSpot":
        return cls(
            id=str(data.get("id", "")),
            spot_name=data["spot_name"],
            description=data.get("description", ""),
            photo_key=data.get("photo_key", ""),
            visited_on=date.fromisoformat(data["visited_on"]) if data.get("visited_on") else date.today(),
            rating=int(data.get("rating", 0)),
            favorite_menu_item=data.get("favorite_menu_item", ""),
        )
