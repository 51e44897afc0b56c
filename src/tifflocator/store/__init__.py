"""Persistent index of scanned files and reference identifiers."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, List, Tuple

from sqlalchemy import Connection, delete, event, func
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine, select

from tifflocator.errors import StorageError

from .models import IndexedFile, ReferenceIdentifier, identifier_key, utc_now

LOGGER = logging.getLogger(__name__)

_STORAGE_FAILURES = (SQLAlchemyError, sqlite3.Error, OSError)


class IndexStore:
    """SQLite-backed store for indexed files and reference identifiers.

    One instance is created per process and handed explicitly to the scanner,
    importer, and search engine. Writers are serialized by an internal lock and
    each write runs in a single transaction, so a concurrent snapshot read
    sees either none or all of a batch.
    """

    def __init__(self, database_path: Path | str) -> None:
        """Open (and if needed create) the index database.

        Args:
            database_path: Location of the SQLite file.

        Raises:
            StorageError: If the file cannot be created, opened, or migrated.
        """
        self._path = Path(database_path).expanduser()
        self._write_lock = threading.Lock()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create cache directory {self._path.parent}: {exc}") from exc

        self._engine = create_engine(
            f"sqlite:///{self._path}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        event.listen(self._engine, "connect", _configure_pragmas)
        try:
            SQLModel.metadata.create_all(
                self._engine,
                tables=[
                    IndexedFile.__table__,  # type: ignore[list-item]
                    ReferenceIdentifier.__table__,  # type: ignore[list-item]
                ],
            )
        except _STORAGE_FAILURES as exc:
            self._engine.dispose()
            raise StorageError(f"Cannot open index database {self._path}: {exc}") from exc
        LOGGER.debug("Opened index database at %s", self._path)

    @property
    def path(self) -> Path:
        """Return the database file location."""
        return self._path

    # ------------------------------------------------------------------ #
    # Indexed files                                                      #
    # ------------------------------------------------------------------ #

    def upsert_file(self, path: str, name: str, timestamp: datetime | None = None) -> bool:
        """Insert a file record unless its path is already indexed.

        Args:
            path: Absolute file path (unique key).
            name: Display name, normally the file's base name.
            timestamp: Discovery time; defaults to now (UTC).

        Returns:
            bool: ``True`` when a new row was inserted.
        """
        stmt = sqlite_insert(IndexedFile.__table__).on_conflict_do_nothing()
        with self._writing() as conn:
            result = conn.execute(
                stmt, {"path": path, "name": name, "discovered_at": timestamp or utc_now()}
            )
            return result.rowcount > 0

    def upsert_files(
        self,
        entries: Iterable[Tuple[str, str]],
        timestamp: datetime | None = None,
    ) -> int:
        """Insert many ``(path, name)`` pairs in one transaction.

        Returns:
            int: Number of paths that were not indexed before.
        """
        discovered_at = timestamp or utc_now()
        rows = [
            {"path": path, "name": name, "discovered_at": discovered_at} for path, name in entries
        ]
        if not rows:
            return 0
        stmt = sqlite_insert(IndexedFile.__table__).on_conflict_do_nothing()
        with self._writing() as conn:
            before = _count(conn, IndexedFile)
            conn.execute(stmt, rows)
            return _count(conn, IndexedFile) - before

    def list_files(self) -> List[IndexedFile]:
        """Return a snapshot of every indexed file (order not guaranteed)."""
        with self._reading() as session:
            return list(session.exec(select(IndexedFile)).all())

    def count_files(self) -> int:
        """Return the number of indexed files."""
        with self._reading() as session:
            return session.exec(select(func.count()).select_from(IndexedFile)).one()

    # ------------------------------------------------------------------ #
    # Reference identifiers                                              #
    # ------------------------------------------------------------------ #

    def upsert_reference_id(self, text: str, timestamp: datetime | None = None) -> bool:
        """Insert an identifier unless it exists (case-insensitively).

        Returns:
            bool: ``True`` when inserted, ``False`` for a skipped duplicate.
        """
        return self.upsert_reference_ids([text], timestamp)[0]

    def upsert_reference_ids(
        self,
        values: Iterable[str],
        timestamp: datetime | None = None,
    ) -> List[bool]:
        """Insert identifiers in one transaction, reporting each outcome.

        Returns:
            List[bool]: One flag per value; ``False`` marks a duplicate.
        """
        imported_at = timestamp or utc_now()
        stmt = sqlite_insert(ReferenceIdentifier.__table__).on_conflict_do_nothing(
            index_elements=["key"]
        )
        outcomes: List[bool] = []
        with self._writing() as conn:
            for text in values:
                row = {"key": identifier_key(text), "text": text, "imported_at": imported_at}
                result = conn.execute(stmt, row)
                outcomes.append(result.rowcount > 0)
        return outcomes

    def list_reference_ids(self) -> List[str]:
        """Return every stored identifier in ascending order."""
        with self._reading() as session:
            query = select(ReferenceIdentifier.text).order_by(ReferenceIdentifier.text)
            return list(session.exec(query).all())

    def count_reference_ids(self) -> int:
        """Return the number of stored reference identifiers."""
        with self._reading() as session:
            return session.exec(select(func.count()).select_from(ReferenceIdentifier)).one()

    # ------------------------------------------------------------------ #
    # Maintenance                                                        #
    # ------------------------------------------------------------------ #

    def clear_all(self) -> Tuple[int, int]:
        """Delete every file and reference identifier record.

        Returns:
            Tuple[int, int]: Removed file and reference identifier counts.
        """
        with self._writing() as conn:
            files = _count(conn, IndexedFile)
            references = _count(conn, ReferenceIdentifier)
            conn.execute(delete(IndexedFile.__table__))
            conn.execute(delete(ReferenceIdentifier.__table__))
        LOGGER.info("Cleared index cache: %d files, %d reference IDs removed", files, references)
        return files, references

    def close(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()

    def __enter__(self) -> "IndexStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    @contextmanager
    def _writing(self) -> Generator[Connection, None, None]:
        """Yield a transactional connection while holding the writer lock."""
        with self._write_lock:
            try:
                with self._engine.begin() as conn:
                    yield conn
            except _STORAGE_FAILURES as exc:
                raise StorageError(f"Index database write failed: {exc}") from exc

    @contextmanager
    def _reading(self) -> Generator[Session, None, None]:
        try:
            with Session(self._engine) as session:
                yield session
        except _STORAGE_FAILURES as exc:
            raise StorageError(f"Index database read failed: {exc}") from exc


def _count(conn: Connection, model: type[SQLModel]) -> int:
    return conn.execute(select(func.count()).select_from(model)).scalar_one()


def _configure_pragmas(dbapi_conn: Any, _connection_record: Any) -> None:
    """Configure SQLite for one writer plus concurrent readers."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


__all__ = ["IndexStore", "IndexedFile", "ReferenceIdentifier", "identifier_key", "utc_now"]
