"""
Version constants for the version history engine.

Component versions are reported on ``/api/v1/version`` so that stored history
and sanitization results can be traced back to the code that produced them.
"""

from .models.api_models import ComponentVersions
from .sanitization.sanitizer import SANITIZER_VERSION

# API Version
API_VERSION = "1.0.0"

# Component versions (update these when implementations change)
DIFF_VERSION = "line-diff-1.0.0"
STORAGE_SCHEMA_VERSION = "versions-json-v1"
AUTOSAVE_VERSION = "autosave-1.0.0"


def get_component_versions() -> ComponentVersions:
    """
    Get the versions of every engine component.

    Returns:
        ComponentVersions instance with current versions
    """
    return ComponentVersions(
        sanitizer_version=SANITIZER_VERSION,
        diff_version=DIFF_VERSION,
        storage_schema_version=STORAGE_SCHEMA_VERSION,
        autosave_version=AUTOSAVE_VERSION,
    )
