"""Version storage module.

Provides the quota-aware version store and its persistence backends.
"""

from ..config import Settings, settings as default_settings
from .backends import FileBackend, InMemoryBackend, PersistenceBackend
from .sql_backend import SqlBackend
from .version_store import VersionStore


def create_backend(config: Settings | None = None) -> PersistenceBackend:
    """
    Build the persistence backend selected by configuration.

    Args:
        config: Settings to read from (defaults to the global settings)

    Returns:
        InMemoryBackend, FileBackend or SqlBackend

    Raises:
        ValueError: Unknown backend name
    """
    config = config or default_settings
    backend = config.storage_backend.lower()
    if backend == "memory":
        return InMemoryBackend()
    if backend == "file":
        return FileBackend(config.storage_dir)
    if backend == "sql":
        return SqlBackend(config.storage_db_url, echo=config.storage_db_echo_sql)
    raise ValueError(f"Unknown storage backend: {config.storage_backend}")


def create_version_store(config: Settings | None = None) -> VersionStore:
    """Build a VersionStore wired to the configured backend and quota."""
    config = config or default_settings
    return VersionStore(
        backend=create_backend(config),
        key_prefix=config.storage_key_prefix,
        quota_bytes=config.storage_quota_bytes,
        warning_percentage=config.storage_warning_percentage,
        auto_prune_keep_count=config.auto_prune_keep_count,
    )


__all__ = [
    "PersistenceBackend",
    "InMemoryBackend",
    "FileBackend",
    "SqlBackend",
    "VersionStore",
    "create_backend",
    "create_version_store",
]
