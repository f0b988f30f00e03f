"""
Quota-aware version store.

Keeps the version history of each report as one JSON array under
``<prefix><report_id>`` in a persistence backend, newest first. All mutations
are read-modify-write of that single entry.

Reads favor availability: missing, unparseable or invalid entries and backend
read failures read as an empty history (with a warning logged) so that losing
history never blocks viewing. Writes are stricter: a backend read failure
before a read-modify-write raises StorageWriteError instead of writing a list
that would drop the versions it could not see. A corrupted entry is replaced
on the next write.

The store assumes a single writer per report. Two independent writers (two
processes, two browser tabs) can race between reading the list and writing it
back, and between reading the highest version number and saving the next one;
duplicate or skipped version numbers are an accepted consequence.
"""

import json
import warnings
from datetime import datetime, timezone
from typing import List, Optional

import structlog
from pydantic import ValidationError

from ..exceptions import BackendError, FormatError, QuotaWarning, StorageWriteError
from ..models.version import GlobalStorageStats, ReportVersion, StorageUsage
from ..sanitization.sanitizer import HtmlSanitizer, log_sanitization_event
from .backends import PersistenceBackend, utf8_size

logger = structlog.get_logger(__name__)

DEFAULT_KEY_PREFIX = "report-versioning:versions:"
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024
DEFAULT_WARNING_PERCENTAGE = 90.0
DEFAULT_AUTO_PRUNE_KEEP_COUNT = 20


def _newest_first(versions: List[ReportVersion]) -> List[ReportVersion]:
    return sorted(versions, key=lambda v: (v.timestamp, v.version_number), reverse=True)


class VersionStore:
    """
    CRUD, eviction and quota accounting for report versions.

    Args:
        backend: Key/value persistence backend
        key_prefix: Namespace prefix for report entries
        quota_bytes: Total serialized size allowed across all entries
        warning_percentage: Usage above which a QuotaWarning is emitted
        auto_prune_keep_count: Auto-saves kept when a write needs room
        sanitizer: Sanitizer applied to every written version
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        quota_bytes: int = DEFAULT_QUOTA_BYTES,
        warning_percentage: float = DEFAULT_WARNING_PERCENTAGE,
        auto_prune_keep_count: int = DEFAULT_AUTO_PRUNE_KEEP_COUNT,
        sanitizer: Optional[HtmlSanitizer] = None,
    ):
        self.backend = backend
        self.key_prefix = key_prefix
        self.quota_bytes = quota_bytes
        self.warning_percentage = warning_percentage
        self.auto_prune_keep_count = auto_prune_keep_count
        self.sanitizer = sanitizer or HtmlSanitizer()

    def storage_key(self, report_id: str) -> str:
        return f"{self.key_prefix}{report_id}"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all_versions(self, report_id: str) -> List[ReportVersion]:
        """
        All versions of a report, newest first.

        Returns an empty list when the report has no entry, the entry is
        corrupted or the backend cannot be read.
        """
        key = self.storage_key(report_id)
        try:
            data = self.backend.get(key)
        except BackendError as e:
            logger.warning("version_entry_read_failed", report_id=report_id, error=str(e))
            return []

        return self._parse_entry(report_id, data)

    def get_versions_for_update(self, report_id: str) -> List[ReportVersion]:
        """
        Current history for a read-modify-write, newest first.

        Unlike get_all_versions, a backend read failure is not treated as an
        empty history.

        Raises:
            StorageWriteError: The backend could not be read
        """
        try:
            data = self.backend.get(self.storage_key(report_id))
        except BackendError as e:
            logger.error("version_entry_read_failed_before_write", report_id=report_id, error=str(e))
            raise StorageWriteError(f"Could not read existing versions: {e}", report_id) from e

        return self._parse_entry(report_id, data)

    def _parse_entry(self, report_id: str, data: Optional[str]) -> List[ReportVersion]:
        if not data:
            return []

        try:
            parsed = json.loads(data)
        except ValueError as e:
            logger.warning("version_entry_corrupted", report_id=report_id, error=str(e))
            return []

        if not isinstance(parsed, list):
            logger.warning(
                "version_entry_corrupted",
                report_id=report_id,
                error=f"expected a JSON array, got {type(parsed).__name__}",
            )
            return []

        try:
            versions = [ReportVersion.model_validate(item) for item in parsed]
        except ValidationError as e:
            logger.warning(
                "version_entry_corrupted",
                report_id=report_id,
                error=str(e),
                error_count=e.error_count(),
            )
            return []

        return _newest_first(versions)

    def get_version_by_id(self, report_id: str, version_id: str) -> Optional[ReportVersion]:
        for version in self.get_all_versions(report_id):
            if version.id == version_id:
                return version
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_version(self, version: ReportVersion) -> ReportVersion:
        """
        Sanitize and persist a new version.

        The caller's sanitization is not trusted as the only gate: content is
        sanitized again before writing. When the write would exceed the quota,
        the report's auto-saves are pruned to ``auto_prune_keep_count`` first.

        Args:
            version: Version to store (``html_content`` may be unsanitized)

        Returns:
            The version as stored, with sanitized content

        Raises:
            StorageWriteError: Serialization failed, the backend rejected the
                write, or the quota is exceeded even after pruning
        """
        result = self.sanitizer.sanitize(version.html_content)
        log_sanitization_event("version_store.save_version", result)
        stored = version.model_copy(update={"html_content": result.sanitized})

        report_id = stored.report_id
        versions = self.get_versions_for_update(report_id)
        versions.append(stored)
        serialized = self._serialize(report_id, versions)

        if self._projected_total(report_id, serialized) > self.quota_bytes:
            serialized = self._make_room(report_id, stored, serialized)

        self._write(report_id, serialized)

        logger.info(
            "version_saved",
            report_id=report_id,
            version_id=stored.id,
            version_number=stored.version_number,
            is_auto_save=stored.is_auto_save,
            size_bytes=utf8_size(stored.html_content),
        )

        try:
            usage = self.get_storage_usage(report_id)
        except BackendError as e:
            logger.warning("storage_usage_unavailable", report_id=report_id, error=str(e))
            return stored

        if usage.percentage > self.warning_percentage:
            logger.warning(
                "storage_quota_warning",
                report_id=report_id,
                percentage=round(usage.percentage, 2),
                available=usage.available,
            )
            warnings.warn(
                QuotaWarning(
                    f"Storage usage at {usage.percentage:.1f}% of quota; "
                    "consider deleting old versions"
                ),
                stacklevel=2,
            )

        return stored

    def delete_version(self, report_id: str, version_id: str) -> None:
        """Delete one version; the entry disappears with its last version."""
        versions = self.get_versions_for_update(report_id)
        remaining = [v for v in versions if v.id != version_id]
        if len(remaining) == len(versions):
            logger.debug("version_delete_noop", report_id=report_id, version_id=version_id)
            return

        self._replace(report_id, remaining)
        logger.info("version_deleted", report_id=report_id, version_id=version_id)

    def delete_oldest_auto_saves(self, report_id: str, count: int) -> int:
        """
        Delete the ``count`` oldest auto-saves.

        Returns:
            Number of versions deleted
        """
        versions = self.get_versions_for_update(report_id)
        oldest_first = sorted((v for v in versions if v.is_auto_save), key=lambda v: (v.timestamp, v.version_number))
        doomed = {v.id for v in oldest_first[: max(count, 0)]}
        if not doomed:
            return 0

        self._replace(report_id, [v for v in versions if v.id not in doomed])
        logger.info("oldest_auto_saves_deleted", report_id=report_id, deleted=len(doomed))
        return len(doomed)

    def prune_old_auto_saves(self, report_id: str, keep_count: int) -> int:
        """
        Keep every manual version and the ``keep_count`` newest auto-saves.

        Manual versions are never evicted here.

        Returns:
            Number of auto-saves deleted
        """
        versions = self.get_versions_for_update(report_id)
        remaining = self._pruned(versions, keep_count)
        deleted = len(versions) - len(remaining)
        if deleted == 0:
            return 0

        self._replace(report_id, remaining)
        logger.info(
            "auto_saves_pruned",
            report_id=report_id,
            deleted=deleted,
            keep_count=keep_count,
        )
        return deleted

    def clear_all_versions(self, report_id: str) -> None:
        try:
            self.backend.remove(self.storage_key(report_id))
        except BackendError as e:
            raise StorageWriteError(f"Could not clear versions: {e}", report_id) from e
        logger.info("versions_cleared", report_id=report_id)

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def get_storage_usage(self, report_id: str) -> StorageUsage:
        """
        Usage snapshot for a report.

        ``used`` is the report's own entry; ``percentage`` and ``available``
        are computed from every entry in the backend.
        """
        used = self.backend.size_of(self.storage_key(report_id))
        total = self.backend.total_size()
        return StorageUsage(
            used=used,
            available=max(0, self.quota_bytes - total),
            percentage=min(100.0, total / self.quota_bytes * 100),
        )

    def get_global_storage_stats(self) -> GlobalStorageStats:
        total = self.backend.total_size()
        report_count = sum(1 for key in self.backend.keys() if key.startswith(self.key_prefix))
        return GlobalStorageStats(
            total_size=total,
            report_count=report_count,
            percentage=min(100.0, total / self.quota_bytes * 100),
        )

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_versions_to_json(self, report_id: str) -> str:
        """Serialize a report's full history into the export format."""
        versions = self.get_all_versions(report_id)
        export_data = {
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "reportId": report_id,
            "versionCount": len(versions),
            "versions": [v.to_storage_dict() for v in versions],
        }
        logger.info("versions_exported", report_id=report_id, version_count=len(versions))
        return json.dumps(export_data, indent=2, ensure_ascii=False)

    def import_versions_from_json(self, report_id: str, json_string: str) -> int:
        """
        Import an export file into ``report_id``.

        Imported data is untrusted: every version is re-sanitized on save.
        Versions are re-bound to ``report_id``; ids already present in the
        report are skipped, so importing the same file twice is harmless.

        Returns:
            Number of versions imported

        Raises:
            FormatError: The payload is not a valid export
            StorageWriteError: A version could not be written
        """
        try:
            import_data = json.loads(json_string)
        except (TypeError, ValueError) as e:
            raise FormatError(f"Import payload is not valid JSON: {e}") from e

        if not isinstance(import_data, dict) or not isinstance(import_data.get("versions"), list):
            raise FormatError("Invalid import format: expected an object with a 'versions' array")

        versions = [self._parse_import_item(report_id, item) for item in import_data["versions"]]

        existing_ids = {v.id for v in self.get_versions_for_update(report_id)}
        imported = 0
        for version in versions:
            if version.id in existing_ids:
                logger.debug("import_version_skipped", report_id=report_id, version_id=version.id)
                continue
            self.save_version(version)
            existing_ids.add(version.id)
            imported += 1

        logger.info(
            "versions_imported",
            report_id=report_id,
            version_count=imported,
            skipped=len(versions) - imported,
        )
        return imported

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_import_item(report_id: str, item: object) -> ReportVersion:
        """Validate one imported version and bind it to ``report_id``."""
        if not isinstance(item, dict):
            raise FormatError("Invalid import format: versions must be objects")
        item = {k: v for k, v in item.items() if k not in ("reportId", "report_id")}
        try:
            return ReportVersion.model_validate({**item, "reportId": report_id})
        except ValidationError as e:
            raise FormatError(f"Invalid version in import payload: {e}") from e

    @staticmethod
    def _pruned(versions: List[ReportVersion], keep_count: int) -> List[ReportVersion]:
        auto_saves = _newest_first([v for v in versions if v.is_auto_save])
        kept = {v.id for v in auto_saves[: max(keep_count, 0)]}
        return [v for v in versions if not v.is_auto_save or v.id in kept]

    def _serialize(self, report_id: str, versions: List[ReportVersion]) -> str:
        try:
            return json.dumps(
                [v.to_storage_dict() for v in _newest_first(versions)], ensure_ascii=False
            )
        except (TypeError, ValueError) as e:
            raise StorageWriteError(f"Could not serialize versions: {e}", report_id) from e

    def _projected_total(self, report_id: str, serialized: str) -> int:
        """Global size once ``serialized`` replaces the report's entry."""
        key = self.storage_key(report_id)
        try:
            current = 0
            if self.backend.get(key) is not None:
                current = utf8_size(key) + self.backend.size_of(key)
            total = self.backend.total_size()
        except BackendError as e:
            raise StorageWriteError(f"Could not measure storage usage: {e}", report_id) from e
        return total - current + utf8_size(key) + utf8_size(serialized)

    def _make_room(self, report_id: str, stored: ReportVersion, serialized: str) -> str:
        """Prune auto-saves so the pending write fits, or raise."""
        logger.warning(
            "storage_quota_exceeded_pruning",
            report_id=report_id,
            keep_count=self.auto_prune_keep_count,
        )
        try:
            self.prune_old_auto_saves(report_id, self.auto_prune_keep_count)
        except StorageWriteError as e:
            logger.warning("auto_prune_failed", report_id=report_id, error=str(e))

        # The pending version itself counts toward the auto-saves kept
        versions = self._pruned(
            self.get_versions_for_update(report_id) + [stored], self.auto_prune_keep_count
        )
        if all(v.id != stored.id for v in versions):
            versions.append(stored)
        serialized = self._serialize(report_id, versions)
        projected = self._projected_total(report_id, serialized)
        if projected > self.quota_bytes:
            logger.error(
                "storage_quota_exhausted",
                report_id=report_id,
                projected_bytes=projected,
                quota_bytes=self.quota_bytes,
            )
            raise StorageWriteError(
                f"Storage quota exceeded: {projected} > {self.quota_bytes} bytes after pruning",
                report_id,
            )
        return serialized

    def _write(self, report_id: str, serialized: str) -> None:
        try:
            self.backend.set(self.storage_key(report_id), serialized)
        except BackendError as e:
            logger.error("version_write_failed", report_id=report_id, error=str(e))
            raise StorageWriteError(f"Backend rejected write: {e}", report_id) from e

    def _replace(self, report_id: str, versions: List[ReportVersion]) -> None:
        """Write a full list back, removing the entry when it is empty."""
        if not versions:
            try:
                self.backend.remove(self.storage_key(report_id))
            except BackendError as e:
                raise StorageWriteError(f"Could not remove entry: {e}", report_id) from e
            return
        self._write(report_id, self._serialize(report_id, versions))
