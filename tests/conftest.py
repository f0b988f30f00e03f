"""
Global pytest fixtures and configuration for test suite.

This module provides reusable fixtures for:
- Version stores over in-memory backends
- Version and author factories
- HTTP clients bound to an isolated store
"""

from typing import AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from report_versioning.api.app import create_app
from report_versioning.models.version import (
    DiffStats,
    ForensicContext,
    ReportVersion,
    VersionAuthor,
)
from report_versioning.storage.backends import InMemoryBackend
from report_versioning.storage.version_store import VersionStore

REPORT_ID = "incident-3167"
BASE_TIMESTAMP = 1_760_870_400_000  # 2025-10-19T10:40:00Z


@pytest.fixture
def author() -> VersionAuthor:
    return VersionAuthor(user_id="u-42", username="dana", role="ANALYST")


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store(backend: InMemoryBackend) -> VersionStore:
    """
    Version store over an in-memory backend with the default 5 MiB quota.

    Returns:
        VersionStore instance
    """
    return VersionStore(backend)


@pytest.fixture
def make_version(author: VersionAuthor) -> Callable[..., ReportVersion]:
    """
    Factory for ReportVersion instances with deterministic ids and timestamps.

    Version N gets id ``v-N`` and timestamp ``BASE_TIMESTAMP + N seconds``
    unless overridden.
    """

    def _make(
        version_number: int = 1,
        html_content: str = "<p>Initial findings</p>",
        report_id: str = REPORT_ID,
        is_auto_save: bool = False,
        change_description: str = "",
        timestamp: Optional[int] = None,
        version_id: Optional[str] = None,
        forensic_context: Optional[ForensicContext] = None,
        diff_stats: Optional[DiffStats] = None,
    ) -> ReportVersion:
        return ReportVersion(
            id=version_id or f"v-{version_number}",
            report_id=report_id,
            version_number=version_number,
            timestamp=timestamp if timestamp is not None else BASE_TIMESTAMP + version_number * 1000,
            html_content=html_content,
            change_description=change_description,
            created_by=author,
            is_auto_save=is_auto_save,
            forensic_context=forensic_context,
            diff_stats=diff_stats,
        )

    return _make


@pytest_asyncio.fixture
async def async_client(store: VersionStore) -> AsyncGenerator[AsyncClient, None]:
    """
    Create async HTTP client for testing FastAPI endpoints.

    The app serves the test's in-memory store.

    Yields:
        AsyncClient instance
    """
    transport = ASGITransport(app=create_app(store=store))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def pytest_configure(config):
    """
    Configure pytest with custom markers and settings.
    """
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (API, CLI, end-to-end)"
    )
    config.addinivalue_line(
        "markers", "slow: Slow tests that may take longer to run"
    )
