# Data models for the version history engine

from .version import (
    DiffStats,
    ForensicContext,
    GlobalStorageStats,
    ReportVersion,
    StorageUsage,
    VersionAuthor,
)
from .sanitization import SanitizationResult
from .diff import DiffLine, DiffResult, LineDifference, VersionComparison
from .api_models import (
    ComponentVersions,
    ErrorResponse,
    HealthResponse,
    ImportResponse,
    PruneResponse,
    RestoreRequest,
    RestoreResponse,
    SanitizeRequest,
    SaveVersionRequest,
    VersionListResponse,
    VersionResponse,
)

__all__ = [
    "ReportVersion",
    "VersionAuthor",
    "ForensicContext",
    "DiffStats",
    "StorageUsage",
    "GlobalStorageStats",
    "SanitizationResult",
    "DiffLine",
    "DiffResult",
    "LineDifference",
    "VersionComparison",
    "HealthResponse",
    "ComponentVersions",
    "VersionResponse",
    "SanitizeRequest",
    "SaveVersionRequest",
    "RestoreRequest",
    "RestoreResponse",
    "VersionListResponse",
    "PruneResponse",
    "ImportResponse",
    "ErrorResponse",
]
