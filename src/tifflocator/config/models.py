"""Configuration models describing TiffLocator settings."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TiffLocatorBaseModel(BaseModel):
    """Shared configuration for TiffLocator Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class CacheSettings(TiffLocatorBaseModel):
    """Location of the persistent index.

    Attributes:
        database_path: SQLite file holding indexed files and reference identifiers.
    """

    database_path: str = "~/.tifflocator/cache.db"


class ScanOptions(TiffLocatorBaseModel):
    """Options governing directory scans.

    Attributes:
        extensions: Recognized image-container extensions (case-insensitive).
        follow_symlinks: Whether to descend into symlinked directories.
        workers: Number of filtering threads; ``0`` uses the CPU count.
    """

    extensions: List[str] = Field(default_factory=lambda: [".tif", ".tiff"])
    follow_symlinks: bool = True
    workers: int = Field(default=0, ge=0)

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, value: List[str]) -> List[str]:
        normalized: List[str] = []
        for raw in value:
            ext = raw.strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = f".{ext}"
            if ext not in normalized:
                normalized.append(ext)
        if not normalized:
            raise ValueError("at least one extension is required")
        return normalized


class SearchOptions(TiffLocatorBaseModel):
    """Search defaults.

    Attributes:
        default_threshold: Similarity threshold used when a query omits one.
        page_size: Number of results shown per page.
        workers: Number of scoring threads; ``0`` uses the CPU count.
    """

    default_threshold: float = Field(default=0.7, ge=0.5, le=1.0)
    page_size: int = Field(default=500, ge=1)
    workers: int = Field(default=0, ge=0)


class ReferenceOptions(TiffLocatorBaseModel):
    """Reference identifier import settings.

    Attributes:
        id_field: Column carrying one identifier per record.
    """

    id_field: str = "hh_id"


class LoggingSettings(TiffLocatorBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; rotation applies when set.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = 10
    backup_count: int = 3


class CLIOptions(TiffLocatorBaseModel):
    """CLI presentation defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
    """

    quiet_default: bool = False


class TiffLocatorConfig(TiffLocatorBaseModel):
    """Top-level configuration struct for TiffLocator.

    Attributes:
        cache: Index database settings.
        scan: Directory scanning settings.
        search: Search defaults.
        references: Reference identifier import settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    cache: CacheSettings = Field(default_factory=CacheSettings)
    scan: ScanOptions = Field(default_factory=ScanOptions)
    search: SearchOptions = Field(default_factory=SearchOptions)
    references: ReferenceOptions = Field(default_factory=ReferenceOptions)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "TiffLocatorBaseModel",
    "CacheSettings",
    "ScanOptions",
    "SearchOptions",
    "ReferenceOptions",
    "LoggingSettings",
    "CLIOptions",
    "TiffLocatorConfig",
]
