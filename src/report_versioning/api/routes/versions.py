"""
Report version endpoints - history browsing, saving, restoration, diffing,
pruning and export/import for one report.

Domain errors propagate to the exception handlers registered in
``api.middleware`` (404 for unknown versions, 400 for malformed imports,
507 when a version cannot be stored).
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends, Query, Request, Response

from ...config import settings
from ...exceptions import FormatError
from ...history import VersionHistory, filter_versions
from ...models.api_models import (
    ImportResponse,
    PruneResponse,
    RestoreRequest,
    RestoreResponse,
    SaveVersionRequest,
    VersionListResponse,
)
from ...models.diff import DiffResult
from ...models.version import ReportVersion, StorageUsage
from ...storage.version_store import VersionStore
from ..dependencies import get_version_store

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/{report_id}/versions", response_model=VersionListResponse)
async def list_versions(
    report_id: str,
    is_auto_save: Optional[bool] = Query(default=None, description="Only auto or manual saves"),
    created_by: Optional[str] = Query(default=None, description="Author user id"),
    start_date: Optional[int] = Query(default=None, description="Earliest timestamp (epoch ms)"),
    end_date: Optional[int] = Query(default=None, description="Latest timestamp (epoch ms)"),
    keyword: Optional[str] = Query(default=None, description="Text in description or case notes"),
    store: VersionStore = Depends(get_version_store),
) -> VersionListResponse:
    """List a report's versions, newest first, optionally filtered."""
    versions = filter_versions(
        VersionHistory(store, report_id).list_versions(),
        is_auto_save=is_auto_save,
        created_by_id=created_by,
        start_date=start_date,
        end_date=end_date,
        keyword=keyword,
    )
    return VersionListResponse(report_id=report_id, version_count=len(versions), versions=versions)


@router.post("/{report_id}/versions", response_model=ReportVersion, status_code=201)
async def save_version(
    report_id: str,
    request: SaveVersionRequest,
    store: VersionStore = Depends(get_version_store),
) -> ReportVersion:
    """
    Save a new version of a report.

    The content is sanitized before storage; the response carries the stored
    (sanitized) version with its assigned number.
    """
    return VersionHistory(store, report_id).create_version(
        request.html_content,
        request.created_by,
        description=request.change_description,
        is_auto_save=request.is_auto_save,
        forensic_context=request.forensic_context,
    )


@router.get("/{report_id}/versions/{version_id}", response_model=ReportVersion)
async def get_version(
    report_id: str,
    version_id: str,
    store: VersionStore = Depends(get_version_store),
) -> ReportVersion:
    return VersionHistory(store, report_id).get_version(version_id)


@router.delete("/{report_id}/versions/{version_id}", status_code=204)
async def delete_version(
    report_id: str,
    version_id: str,
    store: VersionStore = Depends(get_version_store),
) -> Response:
    """Delete one version; deleting an unknown id is a no-op."""
    VersionHistory(store, report_id).delete_version(version_id)
    return Response(status_code=204)


@router.post("/{report_id}/versions/{version_id}/restore", response_model=RestoreResponse)
async def restore_version(
    report_id: str,
    version_id: str,
    request: Optional[RestoreRequest] = Body(default=None),
    store: VersionStore = Depends(get_version_store),
) -> RestoreResponse:
    """
    Restore a version.

    Returns the re-sanitized content. When the request names an author, the
    content is also saved as a new manual version.
    """
    history = VersionHistory(store, report_id)
    sanitization = history.restore_version(version_id)

    version = None
    if request is not None and request.created_by is not None:
        version = history.restore_as_new_version(
            version_id, request.created_by, description=request.change_description
        )

    return RestoreResponse(sanitization=sanitization, version=version)


@router.get("/{report_id}/diff", response_model=DiffResult)
async def diff_versions(
    report_id: str,
    from_id: str = Query(description="Older version id"),
    to_id: str = Query(description="Newer version id"),
    store: VersionStore = Depends(get_version_store),
) -> DiffResult:
    """Line diff between two versions of a report."""
    return VersionHistory(store, report_id).diff(from_id, to_id)


@router.post("/{report_id}/prune", response_model=PruneResponse)
async def prune_versions(
    report_id: str,
    keep_count: int = Query(
        default=settings.auto_prune_keep_count, ge=0, description="Auto-saves to keep"
    ),
    store: VersionStore = Depends(get_version_store),
) -> PruneResponse:
    """Remove old auto-saves, keeping every manual version."""
    deleted = store.prune_old_auto_saves(report_id, keep_count)
    return PruneResponse(report_id=report_id, deleted=deleted)


@router.get("/{report_id}/usage", response_model=StorageUsage)
async def get_usage(
    report_id: str,
    store: VersionStore = Depends(get_version_store),
) -> StorageUsage:
    return store.get_storage_usage(report_id)


@router.get("/{report_id}/export")
async def export_versions(
    report_id: str,
    store: VersionStore = Depends(get_version_store),
) -> Response:
    """Download a report's history as an export file."""
    return Response(
        content=store.export_versions_to_json(report_id),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="report-{report_id}-versions.json"'
        },
    )


@router.post("/{report_id}/import", response_model=ImportResponse)
async def import_versions(
    report_id: str,
    request: Request,
    store: VersionStore = Depends(get_version_store),
) -> ImportResponse:
    """
    Import an export file (sent as the raw request body) into a report.

    Versions whose id already exists in the report are skipped.
    """
    body = await request.body()
    try:
        payload = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"Import payload is not UTF-8: {e}") from e

    imported = store.import_versions_from_json(report_id, payload)
    logger.info("versions_imported_via_api", report_id=report_id, imported=imported)
    return ImportResponse(report_id=report_id, imported=imported)
