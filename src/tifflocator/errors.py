"""Error taxonomy shared by the index store, ingestion, search, and task layers."""


class TiffLocatorError(Exception):
    """Base exception for TiffLocator operations."""


class StorageError(TiffLocatorError):
    """Raised when the index database is unreachable or corrupt."""


class ScanError(TiffLocatorError):
    """Raised when a scan root does not exist or cannot be read."""


class ValidationError(TiffLocatorError):
    """Raised when identifier input or a search query is malformed."""


class BusyError(TiffLocatorError):
    """Raised when a task of the same kind is already running."""


__all__ = [
    "TiffLocatorError",
    "StorageError",
    "ScanError",
    "ValidationError",
    "BusyError",
]
