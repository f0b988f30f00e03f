"""
Request dependencies shared by the API routes.
"""

from fastapi import Request

from ..storage.version_store import VersionStore


def get_version_store(request: Request) -> VersionStore:
    """Version store attached to the application at creation time."""
    return request.app.state.version_store
