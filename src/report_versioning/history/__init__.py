# Version history queries and restoration

from .queries import (
    compare_versions,
    filter_versions,
    format_version_time,
    format_version_time_relative,
    generate_version_id,
    get_auto_save_versions,
    get_manual_versions,
    get_next_version_number,
    get_recent_versions,
    get_version_by_number,
    get_version_summary,
    is_significant_version,
    sort_versions_by_timestamp,
)
from .service import VersionHistory

__all__ = [
    "VersionHistory",
    "compare_versions",
    "filter_versions",
    "format_version_time",
    "format_version_time_relative",
    "generate_version_id",
    "get_auto_save_versions",
    "get_manual_versions",
    "get_next_version_number",
    "get_recent_versions",
    "get_version_by_number",
    "get_version_summary",
    "is_significant_version",
    "sort_versions_by_timestamp",
]
