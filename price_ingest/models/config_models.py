from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the price archive importer.

These are the typed shapes produced by ``price_ingest.config.loader``; the
loader is responsible for validation and defaults.
"""

DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_UPLOAD_MB = 50
DEFAULT_ENCODING = "utf-8-sig"
DEFAULT_LOGS_DIRECTORY = "./logs"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    page_size: int = DEFAULT_PAGE_SIZE  # execute_values page size
    max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB  # upload size ceiling enforced by the CLI
    encoding: str = DEFAULT_ENCODING  # CSV payload encoding

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    import_settings: ImportSettings = field(default_factory=ImportSettings)
    logs_directory: str = DEFAULT_LOGS_DIRECTORY
