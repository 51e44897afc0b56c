"""Populate the index store from directories and identifier lists."""

from .discovery import DEFAULT_EXTENSIONS, DirectoryScanner
from .models import ImportReport, ScanReport
from .references import IdentifierImporter, read_identifier_csv

__all__ = [
    "DirectoryScanner",
    "DEFAULT_EXTENSIONS",
    "IdentifierImporter",
    "read_identifier_csv",
    "ScanReport",
    "ImportReport",
]
