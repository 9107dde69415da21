"""
DB models (DTOs) and small normalization helpers for the Clef metadata store.

This module is intentionally lightweight:
- No DB connection knowledge
- No SQL
- Pure dataclasses + helper functions
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ComposerRow:
    """Composer record as stored in SQLite."""

    id: int
    composer_name: str
    born: int | None
    died: int | None


@dataclass(frozen=True, slots=True)
class EraRow:
    id: int
    era: str


@dataclass(frozen=True, slots=True)
class WorkTypeRow:
    id: int
    work_type: str


@dataclass(frozen=True, slots=True)
class DatasetContentsRow:
    """
    One ingested source file.

    `(dataset_name, filename)` identifies the file; filenames are only unique
    within their dataset.
    """

    id: int
    collection: str
    dataset_name: str
    filename: str


@dataclass(frozen=True, slots=True)
class TagRow:
    id: int
    tag: str


@dataclass(frozen=True, slots=True)
class WorkRow:
    """
    Work record as stored in SQLite.

    Notes:
    - `composer_id` and `dataset_contents_id` are required FKs.
    - `era_id` and `work_type_id` are optional FKs.
    """

    id: int
    title: str
    catalog: str | None
    catalog_number: str | None
    pcn: str | None
    composer_id: int
    era_id: int | None
    work_type_id: int | None
    dataset_contents_id: int


@dataclass(frozen=True, slots=True)
class NewWork:
    """
    Input record used by loaders.

    Referenced entities are given by name; `MetadataDb.add_work` resolves them
    and creates the ones that do not exist yet. `born`/`died` are only used when
    the composer is created.
    """

    title: str
    composer: str
    collection: str
    dataset_name: str
    filename: str
    catalog: str | None = None
    catalog_number: str | None = None
    pcn: str | None = None
    born: int | None = None
    died: int | None = None
    era: str | None = None
    work_type: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class JoinedMetadataRow:
    """One (work, tag) pair returned by the batch metadata lookup."""

    collection: str
    dataset_name: str
    filename: str
    title: str
    catalog: str | None
    catalog_number: str | None
    pcn: str | None
    composer_name: str
    born: int | None
    died: int | None
    work_type: str | None
    era: str | None
    tag: str | None


def normalize_text(value: str | None) -> str | None:
    """
    Normalize optional text fields:
    - strip whitespace
    - coerce empty strings to None
    """
    if value is None:
        return None
    v = value.strip()
    return v if v else None


def normalize_int(value: int | None) -> int | None:
    """Normalize optional integer fields (coerce to int, keep None)."""
    if value is None:
        return None
    return int(value)


def require_text(value: str | None, field_name: str) -> str:
    """Normalize a required text field; raise ValueError if it ends up empty."""
    v = normalize_text(value)
    if v is None:
        raise ValueError(f"{field_name} must not be empty")
    return v
