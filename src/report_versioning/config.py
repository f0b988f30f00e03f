"""
Application configuration management.

This module handles configuration from environment variables using Pydantic Settings.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application configuration from environment variables.

    Every setting can be overridden with an environment variable carrying the
    ``REPORT_VERSIONING_`` prefix, e.g. ``REPORT_VERSIONING_STORAGE_BACKEND=sql``.
    """

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Persistence backend
    storage_backend: str = "file"  # "memory" | "file" | "sql"
    storage_dir: str = "data/versions"
    storage_db_url: str = "sqlite:///report_versions.db"
    storage_db_echo_sql: bool = False
    storage_key_prefix: str = "report-versioning:versions:"

    # Quota (5 MiB across all reports)
    storage_quota_bytes: int = 5 * 1024 * 1024
    storage_warning_percentage: float = 90.0
    auto_prune_keep_count: int = 20

    # Auto-save scheduling
    autosave_debounce_ms: int = 3000
    autosave_interval_ms: int = 30000

    model_config = {
        "env_prefix": "REPORT_VERSIONING_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


# Global settings instance
settings = Settings()
