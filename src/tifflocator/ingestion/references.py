"""Reference identifier import."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from tifflocator.errors import ValidationError
from tifflocator.store import IndexStore

from .models import ImportReport

LOGGER = logging.getLogger(__name__)

DEFAULT_ID_FIELD = "hh_id"


def locate_field(fieldnames: Iterable[str], field: str) -> Optional[str]:
    """Return the key in ``fieldnames`` matching ``field`` ignoring case and padding."""
    wanted = field.strip().lower()
    for name in fieldnames:
        if name is not None and name.strip().lower() == wanted:
            return name
    return None


def read_identifier_csv(path: Path | str, field: str = DEFAULT_ID_FIELD) -> List[str]:
    """Read the raw values of ``field`` from a headed CSV file.

    Args:
        path: CSV file to read.
        field: Header naming the identifier column.

    Returns:
        List[str]: Raw column values in file order (untrimmed).

    Raises:
        ValidationError: If the header row lacks ``field`` or the file is not
            UTF-8 encoded CSV.
        OSError: If the file cannot be read.
    """
    source = Path(path).expanduser()
    try:
        with source.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.DictReader(handle)
            column = locate_field(reader.fieldnames or [], field)
            if column is None:
                raise ValidationError(f"CSV file must contain a '{field}' column")
            return [row.get(column) or "" for row in reader]
    except UnicodeDecodeError as exc:
        raise ValidationError(f"{source.name} is not UTF-8 encoded: {exc.reason}") from exc
    except csv.Error as exc:
        raise ValidationError(f"{source.name} is not a readable CSV file: {exc}") from exc


class IdentifierImporter:
    """Validate raw identifier values and persist the new ones."""

    def __init__(self, store: IndexStore) -> None:
        self.store = store

    def import_identifiers(self, values: Sequence[str]) -> ImportReport:
        """Trim, validate, and upsert identifier values.

        Empty values are rejected and reported per record; duplicates (already
        stored, or repeated within ``values``) are counted as skipped.

        Args:
            values: Raw identifier strings, one per record.

        Returns:
            ImportReport: Per-outcome counts plus the stored total.

        Raises:
            ValidationError: If ``values`` contains no records.
            StorageError: If the index cannot be updated.
        """
        if not values:
            raise ValidationError("Identifier input did not contain any records")

        report = ImportReport(processed=len(values))
        accepted: List[Tuple[int, str]] = []
        for line, raw in enumerate(values, start=1):
            text = (raw or "").strip()
            if not text:
                report.rejected += 1
                report.errors.append(f"Record {line}: empty identifier value")
                continue
            accepted.append((line, text))

        LOGGER.info("Importing %d reference identifiers", len(accepted))
        outcomes = self.store.upsert_reference_ids(text for _, text in accepted)
        report.imported = sum(1 for inserted in outcomes if inserted)
        report.skipped = len(outcomes) - report.imported
        report.total = self.store.count_reference_ids()

        LOGGER.info(
            "Identifier import complete: processed %d (imported %d, skipped %d, rejected %d)",
            report.processed,
            report.imported,
            report.skipped,
            report.rejected,
        )
        return report

    def import_records(
        self,
        records: Sequence[Mapping[str, str]],
        field: str = DEFAULT_ID_FIELD,
    ) -> ImportReport:
        """Import the ``field`` value of each record.

        Raises:
            ValidationError: If there are no records or none carries ``field``.
        """
        if not records:
            raise ValidationError("Identifier input did not contain any records")

        values: List[str] = []
        found = False
        for record in records:
            column = locate_field(record.keys(), field)
            if column is None:
                values.append("")
                continue
            found = True
            values.append(record.get(column) or "")

        if not found:
            raise ValidationError(f"No '{field}' field found in identifier records")
        return self.import_identifiers(values)


__all__ = ["IdentifierImporter", "read_identifier_csv", "locate_field", "DEFAULT_ID_FIELD"]
