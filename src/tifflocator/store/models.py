"""Persisted record types for the index store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, String
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(timezone.utc)


class IndexedFile(SQLModel, table=True):
    """One image file discovered beneath a scanned root.

    Rows are never updated after insertion; they disappear only when the
    cache is cleared.
    """

    __tablename__ = "files"

    id: Optional[int] = Field(default=None, primary_key=True)
    path: str = Field(sa_column=Column(String, unique=True, nullable=False))
    name: str
    discovered_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class ReferenceIdentifier(SQLModel, table=True):
    """A known lookup key imported from an external list.

    ``key`` holds the case-folded text and is unique, so ``hh001`` and
    ``HH001`` (or ``hhé01`` and ``HHÉ01``) collapse onto the first record
    stored. ``text`` keeps that record's original spelling for display.
    """

    __tablename__ = "reference_ids"

    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(sa_column=Column(String, unique=True, nullable=False))
    text: str = Field(sa_column=Column(String, nullable=False))
    imported_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )


def identifier_key(text: str) -> str:
    """Return the case-insensitive dedup key for an identifier."""
    return text.casefold()


__all__ = ["IndexedFile", "ReferenceIdentifier", "identifier_key", "utc_now"]
