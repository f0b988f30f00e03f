"""
API request and response models for FastAPI endpoints.

This module defines the Pydantic models used for API request/response validation.
Payloads use the same camelCase field names as the persisted versions.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .sanitization import SanitizationResult
from .version import CAMEL_CASE_CONFIG, ForensicContext, ReportVersion, VersionAuthor


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status", examples=["healthy"])
    version: str = Field(description="API version", examples=["1.0.0"])
    uptime_seconds: float = Field(description="Service uptime")
    storage_percentage: Optional[float] = Field(
        None, description="Global storage usage as a share of the quota"
    )

    model_config = CAMEL_CASE_CONFIG


class ComponentVersions(BaseModel):
    """Versions of the engine components that shape stored data."""

    sanitizer_version: str = Field(description="HTML sanitizer rule set version")
    diff_version: str = Field(description="Line diff algorithm version")
    storage_schema_version: str = Field(description="Persisted JSON layout version")
    autosave_version: str = Field(description="Auto-save scheduler version")

    model_config = {**CAMEL_CASE_CONFIG, "frozen": True}


class VersionResponse(BaseModel):
    """Version information response."""

    api_version: str = Field(description="API version")
    components: ComponentVersions = Field(description="Current component versions")

    model_config = CAMEL_CASE_CONFIG


class SanitizeRequest(BaseModel):
    """Request model for the sanitize endpoint."""

    html: Optional[str] = Field(None, description="Untrusted HTML to sanitize")

    model_config = CAMEL_CASE_CONFIG


class SaveVersionRequest(BaseModel):
    """Request model for saving a version through the API."""

    html_content: str = Field(description="Report HTML (sanitized before storage)")
    change_description: str = Field("", description="Reason for the save")
    created_by: VersionAuthor = Field(description="Author of the version")
    is_auto_save: bool = Field(False, description="Whether the save was automatic")
    forensic_context: Optional[ForensicContext] = Field(None, description="Case metadata")

    model_config = CAMEL_CASE_CONFIG


class RestoreRequest(BaseModel):
    """
    Request model for restoring a version.

    Without ``created_by`` the restored content is only returned; with it the
    content is also saved as a new manual version.
    """

    created_by: Optional[VersionAuthor] = Field(None, description="Author of the restore")
    change_description: Optional[str] = Field(
        None, description='Description of the new version (default "Restored to version N")'
    )

    model_config = CAMEL_CASE_CONFIG


class RestoreResponse(BaseModel):
    """Response model for restoring a version."""

    sanitization: SanitizationResult = Field(description="Re-sanitized content of the version")
    version: Optional[ReportVersion] = Field(None, description="New version, when one was saved")

    model_config = CAMEL_CASE_CONFIG


class VersionListResponse(BaseModel):
    """Versions of one report, newest first."""

    report_id: str
    version_count: int
    versions: List[ReportVersion] = Field(default_factory=list)

    model_config = CAMEL_CASE_CONFIG


class PruneResponse(BaseModel):
    """Result of pruning auto-saves."""

    report_id: str
    deleted: int = Field(description="Number of auto-saves removed")

    model_config = CAMEL_CASE_CONFIG


class ImportResponse(BaseModel):
    """Result of importing an export file."""

    report_id: str
    imported: int = Field(description="Number of versions written")

    model_config = CAMEL_CASE_CONFIG


class ErrorResponse(BaseModel):
    """Error body returned for domain errors."""

    success: bool = False
    error: str = Field(description="Error category")
    detail: str = Field(description="Human-readable error message")
