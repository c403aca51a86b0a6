"""
Key-value storage backends.

R2 (Cloudflare) via the S3-compatible API, a local directory, and an
in-memory store for development without credentials.
"""

from .client import (
    FilesystemKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueBackend,
    R2KeyValueStore,
    StorageConfig,
    create_kv_store,
)

__all__ = [
    "FilesystemKeyValueStore",
    "InMemoryKeyValueStore",
    "KeyValueBackend",
    "R2KeyValueStore",
    "StorageConfig",
    "create_kv_store",
]
