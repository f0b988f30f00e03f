"""
Read-side helpers over version lists.

Pure functions: sorting, filtering, numbering, significance and
human-readable summaries. Timestamps are epoch milliseconds.
"""

import secrets
import string
import time
from datetime import datetime, timezone
from typing import List, Literal, Optional

from ..diffing.diff_engine import calculate_diff_stats
from ..models.diff import VersionComparison
from ..models.version import ReportVersion

_BASE36 = string.digits + string.ascii_lowercase


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_version_id() -> str:
    """
    Unique, roughly time-ordered version id.

    Examples:
        >>> generate_version_id()  # doctest: +SKIP
        'v1760870400000-k3j9x2m1q'
    """
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"v{now_ms()}-{suffix}"


def sort_versions_by_timestamp(
    versions: List[ReportVersion], order: Literal["asc", "desc"] = "desc"
) -> List[ReportVersion]:
    """
    Return a new list sorted by timestamp (newest first by default).

    Versions saved within the same millisecond are ordered by version number.
    """
    return sorted(versions, key=lambda v: (v.timestamp, v.version_number), reverse=(order == "desc"))


def filter_versions(
    versions: List[ReportVersion],
    is_auto_save: Optional[bool] = None,
    created_by_id: Optional[str] = None,
    start_date: Optional[int] = None,
    end_date: Optional[int] = None,
    keyword: Optional[str] = None,
) -> List[ReportVersion]:
    """
    Filter versions by save type, author, time range and keyword.

    The keyword is matched case-insensitively against the change description
    and the forensic notes and case id.
    """
    needle = keyword.lower() if keyword else None
    matches = []

    for version in versions:
        if is_auto_save is not None and version.is_auto_save != is_auto_save:
            continue
        if created_by_id and version.created_by.user_id != created_by_id:
            continue
        if start_date is not None and version.timestamp < start_date:
            continue
        if end_date is not None and version.timestamp > end_date:
            continue
        if needle:
            context = version.forensic_context
            haystacks = [
                version.change_description,
                context.notes if context else None,
                context.case_id if context else None,
            ]
            if not any(h and needle in h.lower() for h in haystacks):
                continue
        matches.append(version)

    return matches


def get_next_version_number(versions: List[ReportVersion]) -> int:
    """Highest existing version number plus one (1 for an empty history)."""
    if not versions:
        return 1
    return max(v.version_number for v in versions) + 1


def format_version_time(timestamp: int) -> str:
    """Format as e.g. ``Oct 19, 2026 14:03:12`` (local time)."""
    return datetime.fromtimestamp(timestamp / 1000).strftime("%b %d, %Y %H:%M:%S")


def format_version_time_relative(timestamp: int, now: Optional[int] = None) -> str:
    """
    Relative time such as ``"5 minutes ago"`` or ``"in 2 hours"``.

    Args:
        timestamp: Epoch milliseconds
        now: Reference instant in epoch milliseconds (defaults to now)
    """
    now = now_ms() if now is None else now
    delta_seconds = (now - timestamp) / 1000
    seconds = abs(delta_seconds)

    if seconds < 45:
        phrase = "less than a minute"
    else:
        for unit, size in (("year", 31_536_000), ("month", 2_592_000), ("day", 86_400),
                           ("hour", 3_600), ("minute", 60)):
            if seconds >= size:
                count = max(1, round(seconds / size))
                phrase = f"{count} {unit}" + ("s" if count != 1 else "")
                break
        else:
            phrase = "1 minute"

    return f"{phrase} ago" if delta_seconds >= 0 else f"in {phrase}"


def compare_versions(old_version: ReportVersion, new_version: ReportVersion) -> VersionComparison:
    """Diff statistics plus a one-line summary for two versions."""
    stats = calculate_diff_stats(old_version.html_content, new_version.html_content)

    parts = []
    if stats.additions:
        parts.append(f"{stats.additions} additions")
    if stats.deletions:
        parts.append(f"{stats.deletions} deletions")
    if stats.modifications:
        parts.append(f"{stats.modifications} modifications")

    return VersionComparison(
        has_differences=stats.total > 0,
        stats=stats,
        summary=", ".join(parts) if parts else "No changes",
    )


def get_recent_versions(
    versions: List[ReportVersion], minutes: int = 30, now: Optional[int] = None
) -> List[ReportVersion]:
    """Versions created within the last ``minutes`` minutes."""
    cutoff = (now_ms() if now is None else now) - minutes * 60 * 1000
    return [v for v in versions if v.timestamp > cutoff]


def get_auto_save_versions(versions: List[ReportVersion]) -> List[ReportVersion]:
    return [v for v in versions if v.is_auto_save]


def get_manual_versions(versions: List[ReportVersion]) -> List[ReportVersion]:
    return [v for v in versions if not v.is_auto_save]


def get_version_by_number(
    versions: List[ReportVersion], version_number: int
) -> Optional[ReportVersion]:
    return next((v for v in versions if v.version_number == version_number), None)


def is_significant_version(version: ReportVersion, threshold: int = 5) -> bool:
    """
    Whether a version carries meaningful changes.

    Without diff statistics, manual saves count as significant and auto-saves
    do not.
    """
    if version.diff_stats is None:
        return not version.is_auto_save
    return version.diff_stats.total >= threshold


def get_version_summary(version: ReportVersion) -> str:
    """
    One-line label for timelines.

    Examples:
        >>> get_version_summary(version)  # doctest: +SKIP
        'v3 - Added IOC table [Manual] (+4, -1)'
    """
    parts = []
    if version.diff_stats:
        if version.diff_stats.additions:
            parts.append(f"+{version.diff_stats.additions}")
        if version.diff_stats.deletions:
            parts.append(f"-{version.diff_stats.deletions}")

    changes = f" ({', '.join(parts)})" if parts else ""
    type_label = "[Auto]" if version.is_auto_save else "[Manual]"
    return f"v{version.version_number} - {version.change_description} {type_label}{changes}"
