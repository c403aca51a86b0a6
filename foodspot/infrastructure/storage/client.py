"""
Key-value stores backing the photo and spot storage.

Three implementations of the KeyValueStore protocol:

- R2KeyValueStore: Cloudflare R2 (S3-compatible) via boto3, one object per
  key. Holds large values natively, so it pairs with the direct photo backend.
- FilesystemKeyValueStore: one file per key in a local directory. Enforces a
  per-entry size ceiling, like the browser/local stores the chunked photo
  backend was designed for.
- InMemoryKeyValueStore: dictionaries only, for local development and tests.
  Can enforce the same ceiling.

Every failure is raised as KeyValueStoreError.
"""

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional
from urllib.parse import quote

from ...core.photos.errors import KeyValueStoreError
from ...core.photos.store import KeyValueStore

logger = logging.getLogger(__name__)

KeyValueBackend = Literal["memory", "filesystem", "r2"]


@dataclass
class StorageConfig:
    """Configuration for R2/S3-compatible storage."""
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    region: str = "auto"  # R2 uses 'auto' for region
    prefix: str = "foodspot/"


def _check_size(key: str, value: str, max_value_bytes: Optional[int]) -> None:
    if max_value_bytes is None:
        return
    size = len(value.encode("utf-8"))
    if size > max_value_bytes:
        raise KeyValueStoreError(
            f"Value for {key} is {size} bytes, over the {max_value_bytes} byte limit"
        )


class R2KeyValueStore:
    """
    Cloudflare R2 key-value store.

    Uses boto3 because R2 is S3-compatible. Each key maps to the object
    ``{prefix}{key}`` holding the UTF-8 value. boto3 is synchronous, so
    calls run in a worker thread.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize R2 client with boto3.

        boto3 is imported here so the in-memory and filesystem stores don't
        need it installed.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for R2 storage. Install with: pip install boto3"
            )

        self._config = config

        # R2 requires v4 signatures and path-style addressing
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized R2 key-value store",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
                "prefix": config.prefix,
            }
        )

    async def get(self, key: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except KeyValueStoreError:
            raise
        except Exception as e:
            logger.error("Failed to get object", extra={"key": key, "error": str(e)})
            raise KeyValueStoreError(f"Get failed for {key}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._config.bucket_name,
                Key=self._object_key(key),
                Body=value.encode("utf-8"),
                ContentType="text/plain; charset=utf-8",
            )
        except Exception as e:
            logger.error("Failed to put object", extra={"key": key, "error": str(e)})
            raise KeyValueStoreError(f"Set failed for {key}: {e}") from e

        logger.debug("Put object", extra={"key": key, "size_bytes": len(value)})

    async def delete(self, key: str) -> None:
        # S3 delete_object succeeds for missing keys
        try:
            await asyncio.to_thread(
                self._s3_client.delete_object,
                Bucket=self._config.bucket_name,
                Key=self._object_key(key),
            )
        except Exception as e:
            logger.error("Failed to delete object", extra={"key": key, "error": str(e)})
            raise KeyValueStoreError(f"Delete failed for {key}: {e}") from e

    def _get_sync(self, key: str) -> Optional[str]:
        from botocore.exceptions import ClientError

        try:
            response = self._s3_client.get_object(
                Bucket=self._config.bucket_name,
                Key=self._object_key(key),
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise

        return response['Body'].read().decode("utf-8")

    def _object_key(self, key: str) -> str:
        return f"{self._config.prefix}{key}"


class FilesystemKeyValueStore:
    """
    Local directory store.

    Files are named by the percent-encoded key, so any key maps to a single
    flat filename. Writes go to a temporary file that is renamed into place,
    which keeps each set atomic.
    """

    def __init__(self, base_dir: Path, max_value_bytes: Optional[int] = None) -> None:
        """
        Args:
            base_dir: Directory for the entries (created if missing)
            max_value_bytes: Per-entry ceiling, or None for no limit
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._max_value_bytes = max_value_bytes
        logger.info(
            "Initialized filesystem key-value store",
            extra={"base_dir": str(self.base_dir), "max_value_bytes": max_value_bytes},
        )

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        _check_size(key, value, self._max_value_bytes)
        await asyncio.to_thread(self._set_sync, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete_sync, key)

    def _path(self, key: str) -> Path:
        return self.base_dir / quote(key, safe="")

    def _get_sync(self, key: str) -> Optional[str]:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise KeyValueStoreError(f"Get failed for {key}: {e}") from e

    def _set_sync(self, key: str, value: str) -> None:
        dest = self._path(key)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, prefix=".tmp-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_path, dest)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise KeyValueStoreError(f"Set failed for {key}: {e}") from e

    def _delete_sync(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise KeyValueStoreError(f"Delete failed for {key}: {e}") from e


# ---------------------------------------------------------------------------
# In-memory store for local development
# ---------------------------------------------------------------------------

class InMemoryKeyValueStore:
    """
    Dictionary-backed store.

    Nothing survives a restart. Not suitable for production, but enough to
    run the API and the test suite without any storage provisioned.
    """

    def __init__(self, max_value_bytes: Optional[int] = None) -> None:
        self._data: dict[str, str] = {}
        self._max_value_bytes = max_value_bytes
        logger.info(
            "Initialized in-memory key-value store",
            extra={"max_value_bytes": max_value_bytes},
        )

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        _check_size(key, value, self._max_value_bytes)
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        """Snapshot of the stored keys, for inspection in tests and tooling."""
        return sorted(self._data)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_kv_store(
    backend: KeyValueBackend = "memory",
    config: Optional[StorageConfig] = None,
    data_dir: Optional[Path] = None,
    max_value_bytes: Optional[int] = None,
) -> KeyValueStore:
    """
    Create a key-value store for the configured backend.

    Args:
        backend: "memory", "filesystem" or "r2"
        config: R2 configuration (required for "r2")
        data_dir: Directory for "filesystem"
        max_value_bytes: Per-entry ceiling for "memory" and "filesystem"

    Returns:
        KeyValueStore implementation
    """
    if backend == "memory":
        return InMemoryKeyValueStore(max_value_bytes=max_value_bytes)

    if backend == "filesystem":
        if data_dir is None:
            raise ValueError("data_dir is required for the filesystem backend")
        return FilesystemKeyValueStore(data_dir, max_value_bytes=max_value_bytes)

    if backend == "r2":
        if config is None:
            raise ValueError("config is required for the r2 backend")
        return R2KeyValueStore(config)

    raise ValueError(f"Unknown key-value backend: {backend}")
