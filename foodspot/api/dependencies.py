"""
FastAPI dependency injection.

Dependencies provide the key-value store, photo storage and journal to
route handlers. The photo backend (chunked or direct) is chosen here, once,
from settings; routes only ever see a SpotJournal.

The store and journal are process-wide singletons: the in-memory backend
would otherwise lose everything between requests, and the journal's lock
only serializes writers that share the same instance.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.photos.storage import create_photo_storage
from ..core.photos.store import KeyValueStore
from ..core.spots.journal import SpotJournal
from ..infrastructure.storage.client import StorageConfig, create_kv_store

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Shared instances, created on first use
_kv_store: Optional[KeyValueStore] = None
_journal: Optional[SpotJournal] = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_kv_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> KeyValueStore:
    """Provide the backing key-value store for the configured backend."""
    global _kv_store

    if _kv_store is None:
        config = None
        if settings.kv_backend == "r2":
            config = StorageConfig(
                access_key_id=settings.r2_access_key_id,
                secret_access_key=settings.r2_secret_access_key,
                bucket_name=settings.r2_bucket_name,
                endpoint_url=settings.r2_endpoint,
                prefix=settings.r2_prefix,
            )

        _kv_store = create_kv_store(
            backend=settings.kv_backend,
            config=config,
            data_dir=settings.kv_data_dir,
            max_value_bytes=settings.kv_max_value_bytes,
        )
        logger.info(
            "Created shared key-value store",
            extra={"backend": settings.kv_backend},
        )

    return _kv_store


def get_spot_journal(
    settings: Annotated[Settings, Depends(get_settings)],
    kv: Annotated[KeyValueStore, Depends(get_kv_store)],
) -> SpotJournal:
    """Provide the journal, with photo storage for the configured backend."""
    global _journal

    if _journal is None:
        photos = create_photo_storage(kv, backend=settings.photo_backend)
        _journal = SpotJournal(kv, photos)
        logger.info(
            "Created shared spot journal",
            extra={"photo_backend": settings.photo_backend},
        )

    return _journal


def reset_dependencies() -> None:
    """Drop the shared instances so the next request rebuilds them."""
    global _kv_store, _journal
    _kv_store = None
    _journal = None


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
KeyValueStoreDep = Annotated[KeyValueStore, Depends(get_kv_store)]
SpotJournalDep = Annotated[SpotJournal, Depends(get_spot_journal)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
