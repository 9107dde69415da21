"""Error types raised by the Clef metadata store."""

from __future__ import annotations

import sqlite3


class CatalogError(RuntimeError):
    """Base error for metadata store operations."""


class CatalogNotReadyError(CatalogError):
    """Raised when lookups are attempted before the catalog is initialized."""


class ConstraintViolationError(CatalogError):
    """
    A write was rejected by a schema constraint.

    `kind` is one of "unique", "foreign_key", "not_null", "check" or "unknown";
    `detail` is SQLite's message, e.g. "UNIQUE constraint failed: composers.composer_name".
    """

    def __init__(self, kind: str, detail: str) -> None:
        super().__init__(f"{kind} constraint violated: {detail}")
        self.kind = kind
        self.detail = detail

    @classmethod
    def from_integrity_error(cls, exc: sqlite3.IntegrityError) -> ConstraintViolationError:
        detail = str(exc)
        prefix = detail.split(" constraint failed", 1)[0].strip().upper()
        kind = {
            "UNIQUE": "unique",
            "FOREIGN KEY": "foreign_key",
            "NOT NULL": "not_null",
            "CHECK": "check",
        }.get(prefix, "unknown")
        return cls(kind, detail)


class InvalidBatchInputError(CatalogError, ValueError):
    """A batch lookup argument is too long or cannot be split unambiguously."""

    def __init__(self, argument: str, reason: str) -> None:
        super().__init__(f"Invalid batch input for {argument}: {reason}")
        self.argument = argument
        self.reason = reason
