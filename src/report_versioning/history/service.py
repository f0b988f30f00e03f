"""
Version history service - saving, browsing, comparison and restoration for
one report.

Restoration always re-sanitizes the stored content before handing it back to
the editor, even though stored content was sanitized on write.
"""

from typing import List, Optional

import structlog

from ..diffing.diff_engine import calculate_diff_stats, compute_diff
from ..exceptions import VersionNotFoundError
from ..models.diff import DiffResult, VersionComparison
from ..models.sanitization import SanitizationResult
from ..models.version import ForensicContext, ReportVersion, VersionAuthor
from ..sanitization.sanitizer import log_sanitization_event
from ..storage.version_store import VersionStore
from .queries import (
    compare_versions,
    generate_version_id,
    get_next_version_number,
    now_ms,
    sort_versions_by_timestamp,
)

logger = structlog.get_logger(__name__)


class VersionHistory:
    """
    History operations for a single report.

    Args:
        store: Version store holding the report
        report_id: Report to operate on
    """

    def __init__(self, store: VersionStore, report_id: str):
        self.store = store
        self.report_id = report_id
        self.logger = logger.bind(report_id=report_id)

    def create_version(
        self,
        html_content: str,
        author: VersionAuthor,
        description: str = "",
        is_auto_save: bool = False,
        forensic_context: Optional[ForensicContext] = None,
    ) -> ReportVersion:
        """
        Save content as the next version of the report.

        The version is numbered after the highest existing one and carries
        diff statistics against the current newest version.

        Raises:
            StorageWriteError: The version could not be written
        """
        versions = self.store.get_versions_for_update(self.report_id)
        latest = versions[0] if versions else None

        version = ReportVersion(
            id=generate_version_id(),
            report_id=self.report_id,
            version_number=get_next_version_number(versions),
            timestamp=now_ms(),
            html_content=html_content,
            change_description=description,
            created_by=author,
            is_auto_save=is_auto_save,
            forensic_context=forensic_context,
            diff_stats=calculate_diff_stats(latest.html_content, html_content) if latest else None,
        )
        return self.store.save_version(version)

    def list_versions(self) -> List[ReportVersion]:
        return sort_versions_by_timestamp(self.store.get_all_versions(self.report_id))

    def get_latest_version(self) -> Optional[ReportVersion]:
        versions = self.list_versions()
        return versions[0] if versions else None

    def get_version(self, version_id: str) -> ReportVersion:
        """
        Raises:
            VersionNotFoundError: No version with this id
        """
        version = self.store.get_version_by_id(self.report_id, version_id)
        if version is None:
            raise VersionNotFoundError(self.report_id, version_id)
        return version

    def restore_version(self, version_id: str) -> SanitizationResult:
        """
        Content of a stored version, re-sanitized for the editor.

        Raises:
            VersionNotFoundError: No version with this id
        """
        return self._restore(self.get_version(version_id))

    def restore_as_new_version(
        self,
        version_id: str,
        author: VersionAuthor,
        description: Optional[str] = None,
        forensic_context: Optional[ForensicContext] = None,
    ) -> ReportVersion:
        """
        Restore a version by saving its content as a new manual version.

        History is never rewritten: the restored content becomes the newest
        version and everything in between stays available.

        Raises:
            VersionNotFoundError: No version with this id
            StorageWriteError: The new version could not be written
        """
        source = self.get_version(version_id)
        restored = self._restore(source)

        return self.create_version(
            restored.sanitized,
            author,
            description=description or f"Restored to version {source.version_number}",
            is_auto_save=False,
            forensic_context=forensic_context or source.forensic_context,
        )

    def delete_version(self, version_id: str) -> None:
        self.store.delete_version(self.report_id, version_id)

    def compare(self, old_version_id: str, new_version_id: str) -> VersionComparison:
        """
        Raises:
            VersionNotFoundError: Either version is missing
        """
        return compare_versions(self.get_version(old_version_id), self.get_version(new_version_id))

    def diff(self, old_version_id: str, new_version_id: str) -> DiffResult:
        """Renderable diff between two stored versions."""
        old = self.get_version(old_version_id)
        new = self.get_version(new_version_id)
        return compute_diff(old.html_content, new.html_content)

    def _restore(self, version: ReportVersion) -> SanitizationResult:
        result = self.store.sanitizer.sanitize(version.html_content)
        log_sanitization_event("version_history.restore_version", result)

        self.logger.info(
            "version_restored",
            version_id=version.id,
            version_number=version.version_number,
            is_clean=result.is_clean,
        )
        return result
