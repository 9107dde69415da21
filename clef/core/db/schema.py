"""
Database schema + migrations for the Clef metadata store.

- Connection management and the public `MetadataDb` facade live in `metadata_db.py`
- Schema creation, schema versioning, forward-only migrations and resets live here

Design notes:
- We use SQLite `PRAGMA user_version` as the schema version.
- Migrations are forward-only (no downgrade support).
- Every foreign key cascades on delete, including the optional era/work type
  references: deleting an era deletes the works that carry it.
- Text widths are enforced with CHECK constraints; SQLite ignores VARCHAR(n).
- Names, labels and file identifiers compare case-insensitively (COLLATE NOCASE).
"""

from __future__ import annotations

import logging
from typing import Final

import aiosqlite

logger = logging.getLogger(__name__)

# Bump when you change the schema and add a migration in `migrate()`.
SCHEMA_VERSION: Final[int] = 1

# Child tables first, so drops never trip a foreign key.
TABLES: Final[tuple[str, ...]] = (
    "tag_relations",
    "works",
    "tags",
    "dataset_contents",
    "work_type",
    "eras",
    "composers",
)


async def _current_version(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("PRAGMA user_version;")
    row = await cursor.fetchone()
    return int(row[0]) if row is not None else 0


async def ensure_schema(conn: aiosqlite.Connection) -> None:
    """
    Create or migrate schema to current version.

    This function assumes:
    - `conn` is an open aiosqlite connection
    - foreign_keys pragma is enabled by the caller
    """
    current = await _current_version(conn)

    if current > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current} is newer than supported {SCHEMA_VERSION}."
        )

    if current == SCHEMA_VERSION:
        return

    logger.info("Migrating metadata schema from v%d to v%d", current, SCHEMA_VERSION)
    await migrate(conn, from_version=current, to_version=SCHEMA_VERSION)
    await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
    await conn.commit()


async def drop_schema(conn: aiosqlite.Connection) -> None:
    """Drop every metadata table and reset the schema version to 0."""
    logger.info("Dropping metadata schema")
    for table in TABLES:
        await conn.execute(f"DROP TABLE IF EXISTS {table};")
    await conn.execute("PRAGMA user_version = 0;")
    await conn.commit()


async def migrate(conn: aiosqlite.Connection, *, from_version: int, to_version: int) -> None:
    """
    Perform forward-only migrations.

    Keep migrations small. If you need a big refactor, create a new DB.
    """
    # v0 -> v1
    if from_version == 0 and to_version >= 1:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS composers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                composer_name TEXT NOT NULL UNIQUE COLLATE NOCASE
                    CHECK (length(composer_name) <= 100),
                born INTEGER,
                died INTEGER
            )
            """
        )

        # "Era" here means designations like Baroque or Romantic.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS eras (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                era TEXT NOT NULL UNIQUE COLLATE NOCASE
                    CHECK (length(era) <= 50)
            )
            """
        )

        # Composition type or genre, e.g. "sonata" or "symphony".
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS work_type (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                work_type TEXT NOT NULL UNIQUE COLLATE NOCASE
                    CHECK (length(work_type) <= 50)
            )
            """
        )

        # Filenames are unique within a dataset, not globally.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS dataset_contents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL COLLATE NOCASE
                    CHECK (length(collection) <= 50),
                dataset_name TEXT NOT NULL COLLATE NOCASE
                    CHECK (length(dataset_name) <= 50),
                filename TEXT NOT NULL COLLATE NOCASE
                    CHECK (length(filename) <= 50),
                UNIQUE (dataset_name, filename)
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_dataset_contents_filename "
            "ON dataset_contents(filename);"
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tags (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tag TEXT NOT NULL UNIQUE COLLATE NOCASE
                    CHECK (length(tag) <= 50)
            )
            """
        )

        # One work per source file for now. A file holding a single movement,
        # or several works, would need this relationship to become 1:n or m:n.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS works (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL COLLATE NOCASE
                    CHECK (length(title) <= 100),
                catalog TEXT CHECK (catalog IS NULL OR length(catalog) <= 50),
                catalog_number TEXT
                    CHECK (catalog_number IS NULL OR length(catalog_number) <= 50),
                pcn TEXT CHECK (pcn IS NULL OR length(pcn) <= 50),
                composer_id INTEGER NOT NULL
                    REFERENCES composers(id) ON DELETE CASCADE,
                era_id INTEGER
                    REFERENCES eras(id) ON DELETE CASCADE,
                work_type_id INTEGER
                    REFERENCES work_type(id) ON DELETE CASCADE,
                dataset_contents_id INTEGER NOT NULL
                    REFERENCES dataset_contents(id) ON DELETE CASCADE,
                UNIQUE (title, composer_id, dataset_contents_id)
            )
            """
        )
        # Indexes: FK columns, so joins and cascading deletes avoid table scans.
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_works_composer_id ON works(composer_id);"
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_works_era_id ON works(era_id);")
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_works_work_type_id ON works(work_type_id);"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_works_dataset_contents_id "
            "ON works(dataset_contents_id);"
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tag_relations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                work_id INTEGER NOT NULL REFERENCES works(id) ON DELETE CASCADE,
                tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
                UNIQUE (work_id, tag_id)
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tag_relations_tag_id ON tag_relations(tag_id);"
        )

        await conn.commit()
        from_version = 1

    if from_version != to_version:
        raise RuntimeError(f"No migration path from {from_version} to {to_version}.")
