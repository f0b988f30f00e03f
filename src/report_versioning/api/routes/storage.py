"""
Storage statistics endpoint.
"""

from fastapi import APIRouter, Depends

from ...models.version import GlobalStorageStats
from ...storage.version_store import VersionStore
from ..dependencies import get_version_store

router = APIRouter()


@router.get("/storage/stats", response_model=GlobalStorageStats)
async def get_storage_stats(store: VersionStore = Depends(get_version_store)) -> GlobalStorageStats:
    """Storage used by all reports against the quota."""
    return store.get_global_storage_stats()
