"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Pydantic's BaseSettings validates types at startup, so a bad value fails
immediately instead of on the first request.

The default setup (in-memory key-value store, chunked photos) runs locally
without any external service.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.photos.layout import encoded_chunk_size


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "FoodSpot Journal API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. Several keys allow rotation without downtime."
    )

    # Photo storage
    photo_backend: Literal["chunked", "direct"] = Field(
        default="chunked",
        description="'chunked' re-encodes photos and splits them into 1 MiB chunks; "
                    "'direct' stores them whole (only for stores without a size limit)."
    )

    # Key-value store
    kv_backend: Literal["memory", "filesystem", "r2"] = Field(
        default="memory",
        description="Backing key-value store. 'memory' keeps everything in process."
    )
    kv_data_dir: Path = Field(
        default=Path("data"),
        description="Directory for the filesystem key-value store"
    )
    kv_max_value_bytes: Optional[int] = Field(
        default=2 * 1024 * 1024,
        description="Per-entry size ceiling for memory/filesystem stores. None disables it."
    )

    # R2/S3 Storage Configuration
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account ID for R2"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 secret access key"
    )
    r2_bucket_name: str = Field(
        default="foodspot-journal",
        description="R2 bucket name"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="R2 endpoint URL. Auto-constructed from account_id if not provided."
    )
    r2_prefix: str = Field(
        default="foodspot/",
        description="Prefix for every object key written to the bucket"
    )

    # Application Behavior
    max_upload_size_mb: int = Field(
        default=20,
        description="Maximum photo upload size in MB, checked before decoding."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:8081",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def r2_endpoint(self) -> str:
        """
        Construct R2 endpoint URL from account ID.

        R2 endpoints follow the pattern: https://{account_id}.r2.cloudflarestorage.com
        """
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    def validate_required_fields(self) -> list[str]:
        """
        Validate settings that depend on each other.

        Returns a list of problems, empty if the configuration is usable.
        Kept separate from Pydantic validation so the app can start and
        report the problems from the readiness endpoint.
        """
        missing = []

        if not self.api_keys_list:
            missing.append("API_KEYS")

        if self.kv_backend == "r2":
            if not self.r2_account_id and not self.r2_endpoint_url:
                missing.append("R2_ACCOUNT_ID or R2_ENDPOINT_URL")
            if not self.r2_access_key_id:
                missing.append("R2_ACCESS_KEY_ID")
            if not self.r2_secret_access_key:
                missing.append("R2_SECRET_ACCESS_KEY")

        # every chunk (plus the manifest) has to fit in one entry
        ceiling = self.kv_max_value_bytes if self.kv_backend != "r2" else None
        if ceiling is not None:
            if self.photo_backend == "chunked" and ceiling < encoded_chunk_size():
                missing.append(
                    f"KV_MAX_VALUE_BYTES must be at least {encoded_chunk_size()} for chunked photos"
                )
            if self.photo_backend == "direct":
                missing.append("PHOTO_BACKEND=direct requires a store without KV_MAX_VALUE_BYTES")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
