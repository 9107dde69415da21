"""
Core domain package.

This package contains the metadata store: schema, storage access, and the
batch lookup. It is independent of the CLI and carries no networking concerns.

We intentionally keep exports minimal; consumers should usually import from the
specific module they need (e.g. `clef.core.catalog`).
"""

from __future__ import annotations

from clef.core.errors import (
    CatalogError,
    CatalogNotReadyError,
    ConstraintViolationError,
    InvalidBatchInputError,
)

__all__: list[str] = [
    "CatalogError",
    "CatalogNotReadyError",
    "ConstraintViolationError",
    "InvalidBatchInputError",
]
