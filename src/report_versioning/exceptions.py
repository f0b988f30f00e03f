"""
Exception hierarchy for the version history engine.

Read paths never raise for missing or corrupted data (they return empty
results); these exceptions cover writes, imports and explicit lookups.
"""


class ReportVersioningError(Exception):
    """Base class for all engine errors."""


class BackendError(ReportVersioningError):
    """A persistence backend failed to read or write an entry."""


class BackendCapacityError(BackendError):
    """A persistence backend refused a write because it is full."""


class StorageWriteError(ReportVersioningError):
    """
    A version could not be durably written.

    Raised when serialization fails, when the backend rejects the write, or
    when the quota is still exceeded after pruning auto-saves.
    """

    def __init__(self, message: str, report_id: str | None = None):
        super().__init__(message)
        self.report_id = report_id


class FormatError(ReportVersioningError):
    """An import payload is not a valid version export."""


class VersionNotFoundError(ReportVersioningError):
    """A version requested by id or number does not exist."""

    def __init__(self, report_id: str, version_id: str):
        super().__init__(f"Version {version_id} not found for report {report_id}")
        self.report_id = report_id
        self.version_id = version_id


class QuotaWarning(UserWarning):
    """Storage usage crossed the warning threshold (non-fatal)."""
