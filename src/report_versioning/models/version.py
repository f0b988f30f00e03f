"""
Report version model - the unit persisted by the version store.

Field names are snake_case in Python and camelCase on the wire (persisted
entries, export files, API payloads). Both spellings are accepted on input.
"""

from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


CAMEL_CASE_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class VersionAuthor(BaseModel):
    """Attribution for a version (not an authorization record)."""

    user_id: str = Field(description="Identifier of the user who created the version")
    username: str = Field(description="Display name of the user")
    role: str = Field(description="Role at the time of the save, e.g. ANALYST")

    model_config = {**CAMEL_CASE_CONFIG, "frozen": True}


class ForensicContext(BaseModel):
    """
    Optional case metadata attached to a version.

    The engine never interprets these fields; unknown keys supplied by the
    metadata editor are kept verbatim.
    """

    case_id: Optional[str] = Field(None, description="Case identifier")
    incident_type: Optional[str] = Field(None, description="Incident classification")
    investigation_phase: Optional[str] = Field(None, description="Current investigation phase")
    evidence_tags: List[str] = Field(default_factory=list, description="Free-form evidence tags")
    notes: Optional[str] = Field(None, description="Analyst notes")

    model_config = {**CAMEL_CASE_CONFIG, "frozen": True, "extra": "allow"}


class DiffStats(BaseModel):
    """Line-level change counts between two HTML snapshots."""

    additions: int = Field(0, ge=0, description="Non-blank lines only in the newer content")
    deletions: int = Field(0, ge=0, description="Non-blank lines only in the older content")
    modifications: int = Field(
        0, ge=0, description="Paired addition/deletion lines (heuristic, not an alignment)"
    )

    model_config = {**CAMEL_CASE_CONFIG, "frozen": True}

    @property
    def total(self) -> int:
        return self.additions + self.deletions + self.modifications


class ReportVersion(BaseModel):
    """
    Immutable snapshot of a report at a point in time.

    ``html_content`` is always sanitizer output once the version has been
    stored; the store re-sanitizes on every write.
    """

    id: str = Field(description="Globally unique, time-ordered version id")
    report_id: str = Field(description="Report the version belongs to (partition key)")
    version_number: int = Field(ge=1, description="Dense per-report sequence number starting at 1")
    timestamp: int = Field(ge=0, description="Creation instant in epoch milliseconds")
    html_content: str = Field(description="Sanitized HTML content")
    change_description: str = Field("", description="Free-text description of the change")
    created_by: VersionAuthor = Field(description="Who created the version")
    is_auto_save: bool = Field(False, description="True for scheduler-driven saves")
    forensic_context: Optional[ForensicContext] = Field(None, description="Optional case metadata")
    diff_stats: Optional[DiffStats] = Field(
        None, description="Change counts relative to the previous version"
    )

    model_config = {
        **CAMEL_CASE_CONFIG,
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "id": "v1760870400000-k3j9x2m1q",
                "reportId": "incident-3167",
                "versionNumber": 3,
                "timestamp": 1760870400000,
                "htmlContent": "<h1>Incident #3167</h1><p>Initial triage complete.</p>",
                "changeDescription": "Added triage summary",
                "createdBy": {"userId": "2", "username": "analyst", "role": "ANALYST"},
                "isAutoSave": False,
                "forensicContext": {"caseId": "CASE-3167", "evidenceTags": ["ransomware"]},
                "diffStats": {"additions": 1, "deletions": 0, "modifications": 0},
            }
        },
    }

    def to_storage_dict(self) -> dict:
        """Serialize to the camelCase JSON-compatible dict used on the wire."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StorageUsage(BaseModel):
    """Snapshot of quota usage; recomputed on every call."""

    used: int = Field(ge=0, description="Serialized bytes of this report's entry")
    available: int = Field(ge=0, description="Quota minus global usage, floored at 0")
    percentage: float = Field(ge=0, le=100, description="Global usage as a share of the quota")

    model_config = {**CAMEL_CASE_CONFIG, "frozen": True}


class GlobalStorageStats(BaseModel):
    """Storage statistics across every report in the backend."""

    total_size: int = Field(ge=0, description="Serialized bytes of all backend entries")
    report_count: int = Field(ge=0, description="Number of reports with stored versions")
    percentage: float = Field(ge=0, le=100, description="Global usage as a share of the quota")

    model_config = {**CAMEL_CASE_CONFIG, "frozen": True}
