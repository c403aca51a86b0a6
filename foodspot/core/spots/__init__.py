"""
Food spot journal: domain model and repository.
"""

from .journal import SpotJournal, SpotNotFoundError
from .models import FoodSpot

__all__ = [
    "FoodSpot",
    "SpotJournal",
    "SpotNotFoundError",
]
