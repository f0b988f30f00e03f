"""
Health check endpoint for monitoring.
"""

import time
from typing import Optional

import structlog
from fastapi import APIRouter, Depends

from ...exceptions import BackendError
from ...models.api_models import HealthResponse
from ...storage.version_store import VersionStore
from ...version import API_VERSION
from ..dependencies import get_version_store

logger = structlog.get_logger(__name__)
router = APIRouter()

# Track start time for uptime calculation
_start_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check(store: VersionStore = Depends(get_version_store)) -> HealthResponse:
    """
    Health check endpoint for monitoring.

    Reports ``degraded`` when the storage backend cannot be listed.

    Returns:
        Health status, uptime and quota usage
    """
    status = "healthy"
    storage_percentage: Optional[float] = None
    try:
        storage_percentage = store.get_global_storage_stats().percentage
    except BackendError as e:
        logger.warning("health_check_storage_unavailable", error=str(e))
        status = "degraded"

    return HealthResponse(
        status=status,
        version=API_VERSION,
        uptime_seconds=time.time() - _start_time,
        storage_percentage=storage_percentage,
    )
