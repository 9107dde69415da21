"""
Internal DB subpackage for Clef.

Splits the storage layer into focused units (models, schema/migrations, and
query groups) while keeping `MetadataDb` as the single public interface.

Re-exports here are primarily for convenience inside the `core` package.
External code should import `MetadataDb` from `clef.core.metadata_db`.
"""

from __future__ import annotations

# Models / DTOs
from .models import (
    ComposerRow,
    DatasetContentsRow,
    EraRow,
    JoinedMetadataRow,
    NewWork,
    TagRow,
    WorkRow,
    WorkTypeRow,
)

# Schema / migrations
from .schema import SCHEMA_VERSION, drop_schema, ensure_schema, migrate

__all__ = [
    # models
    "ComposerRow",
    "EraRow",
    "WorkTypeRow",
    "DatasetContentsRow",
    "TagRow",
    "WorkRow",
    "NewWork",
    "JoinedMetadataRow",
    # schema
    "SCHEMA_VERSION",
    "drop_schema",
    "ensure_schema",
    "migrate",
]
