"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve traffic?)

Readiness writes, reads and deletes a probe entry in the key-value store,
so it fails when the store is unreachable or rejecting writes.
"""

import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ...core.photos.errors import KeyValueStoreError
from ..dependencies import KeyValueStoreDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()

PROBE_KEY_PREFIX = "health_probe_"


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Liveness check - is the process alive?"""
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "kv_backend": settings.kv_backend,
            "photo_backend": settings.photo_backend,
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic. Checks the key-value store.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    kv: KeyValueStoreDep,
) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Checks that the configuration is complete and that the key-value store
    accepts a write/read/delete round trip. Returns 503 if any check fails.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Invalid configuration: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    probe_key = f"{PROBE_KEY_PREFIX}{uuid4().hex}"
    try:
        await kv.set(probe_key, "ok")
        value = await kv.get(probe_key)
        await kv.delete(probe_key)
        if value != "ok":
            raise KeyValueStoreError(f"Probe read back {value!r}")
        checks.append(ReadinessCheck(name="kv_store", status="ok"))
    except KeyValueStoreError as e:
        logger.error("Key-value store health check failed", extra={"error": str(e)})
        checks.append(ReadinessCheck(name="kv_store", status="error", error=str(e)))

    all_ok = all(check.status == "ok" for check in checks)
    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )
