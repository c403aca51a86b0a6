"""
FoodSpot Journal - a journal of food spots with photos.

This package contains the complete application:
- core: Framework-agnostic journal and photo storage logic
- infrastructure: Key-value store backends
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
