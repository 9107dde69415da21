"""
Metadata store access layer.

Goals:
- SQLite + aiosqlite, async/await friendly.
- Let the engine enforce every invariant (uniqueness, required references,
  cascading deletes); this layer only scopes transactions and translates errors.

Note:
- Models/DTOs and normalization helpers live in `clef.core.db.models`
- Schema/migrations live in `clef.core.db.schema`
- Query functions live in `clef.core.db.queries_*` modules
- `MetadataDb` is the public facade used by the rest of the codebase
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Sequence

import aiosqlite

from clef.core.db import queries_catalog, queries_metadata
from clef.core.db.models import (
    ComposerRow,
    DatasetContentsRow,
    JoinedMetadataRow,
    NewWork,
    WorkRow,
    normalize_int,
    normalize_text,
    require_text,
)
from clef.core.db.schema import TABLES, drop_schema
from clef.core.db.schema import ensure_schema as ensure_schema_sql
from clef.core.errors import ConstraintViolationError

logger = logging.getLogger(__name__)


class MetadataDb:
    """
    Async access layer for the metadata store.

    Usage:
        db = MetadataDb("clef.sqlite3")
        await db.open()
        await db.ensure_schema()
        ... queries ...
        await db.close()

    Notes:
    - Connections are not pooled; we keep a single connection.
    - Every write method runs in its own SAVEPOINT and commits on success.
      On failure nothing it wrote survives and `ConstraintViolationError` is raised.
    - Writes are serialized by a lock, so concurrent tasks never share a SAVEPOINT.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None
        # Savepoints on one connection must not interleave across tasks.
        self._write_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        if self._conn is not None:
            return
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        # Cascading deletes depend on foreign_keys; SQLite defaults it to off.
        await self._conn.execute("PRAGMA foreign_keys = ON;")
        await self._conn.execute("PRAGMA journal_mode = WAL;")
        await self._conn.execute("PRAGMA synchronous = NORMAL;")
        await self._conn.execute("PRAGMA temp_store = MEMORY;")
        logger.debug("Opened metadata DB at %s", self._db_path)

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("MetadataDb is not open. Call await db.open() first.")
        return self._conn

    async def ensure_schema(self) -> None:
        """Create or migrate schema to current version."""
        await ensure_schema_sql(self._require_conn())

    async def reset_schema(self) -> None:
        """Drop all metadata tables and recreate them empty."""
        conn = self._require_conn()
        async with self._write_lock:
            await drop_schema(conn)
            await ensure_schema_sql(conn)

    @asynccontextmanager
    async def _write(self, name: str) -> AsyncIterator[aiosqlite.Connection]:
        conn = self._require_conn()
        async with self._write_lock:
            await conn.execute(f"SAVEPOINT {name};")
            try:
                yield conn
            except sqlite3.IntegrityError as e:
                await conn.execute(f"ROLLBACK TO SAVEPOINT {name};")
                await conn.execute(f"RELEASE SAVEPOINT {name};")
                logger.debug("Write %s rejected: %s", name, e)
                raise ConstraintViolationError.from_integrity_error(e) from e
            except BaseException:
                await conn.execute(f"ROLLBACK TO SAVEPOINT {name};")
                await conn.execute(f"RELEASE SAVEPOINT {name};")
                raise
            await conn.execute(f"RELEASE SAVEPOINT {name};")
            await conn.commit()

    # ===========================================================================
    # Inserts
    # ===========================================================================

    async def add_composer(
        self, name: str, *, born: int | None = None, died: int | None = None
    ) -> int:
        composer_name = require_text(name, "composer_name")
        async with self._write("add_composer") as conn:
            return await queries_catalog.insert_composer(
                conn, composer_name, normalize_int(born), normalize_int(died)
            )

    async def add_era(self, era: str) -> int:
        label = require_text(era, "era")
        async with self._write("add_era") as conn:
            return await queries_catalog.insert_era(conn, label)

    async def add_work_type(self, work_type: str) -> int:
        label = require_text(work_type, "work_type")
        async with self._write("add_work_type") as conn:
            return await queries_catalog.insert_work_type(conn, label)

    async def add_tag(self, tag: str) -> int:
        label = require_text(tag, "tag")
        async with self._write("add_tag") as conn:
            return await queries_catalog.insert_tag(conn, label)

    async def add_dataset_contents(self, collection: str, dataset_name: str, filename: str) -> int:
        collection = require_text(collection, "collection")
        dataset_name = require_text(dataset_name, "dataset_name")
        filename = require_text(filename, "filename")
        async with self._write("add_dataset_contents") as conn:
            return await queries_catalog.insert_dataset_contents(
                conn, collection, dataset_name, filename
            )

    async def add_work_row(
        self,
        *,
        title: str,
        composer_id: int,
        dataset_contents_id: int,
        catalog: str | None = None,
        catalog_number: str | None = None,
        pcn: str | None = None,
        era_id: int | None = None,
        work_type_id: int | None = None,
    ) -> int:
        """Insert a work from already-resolved ids. Unknown ids violate a foreign key."""
        title = require_text(title, "title")
        async with self._write("add_work_row") as conn:
            return await queries_catalog.insert_work(
                conn,
                title=title,
                composer_id=composer_id,
                dataset_contents_id=dataset_contents_id,
                catalog=normalize_text(catalog),
                catalog_number=normalize_text(catalog_number),
                pcn=normalize_text(pcn),
                era_id=normalize_int(era_id),
                work_type_id=normalize_int(work_type_id),
            )

    async def add_work(self, work: NewWork) -> int:
        """
        Insert a work, resolving its references by name.

        Composer, era, work type, source file and tags are looked up and created
        when missing. The work itself must be new: a second work with the same
        (title, composer, source file) raises ConstraintViolationError, and in
        that case none of the referenced rows created here are kept.
        Returns the work id.
        """
        title = require_text(work.title, "title")
        composer = require_text(work.composer, "composer")
        collection = require_text(work.collection, "collection")
        dataset_name = require_text(work.dataset_name, "dataset_name")
        filename = require_text(work.filename, "filename")
        era = normalize_text(work.era)
        work_type = normalize_text(work.work_type)
        tags: tuple[str, ...] = tuple(
            dict.fromkeys(t for t in (normalize_text(x) for x in work.tags) if t)
        )

        async with self._write("add_work") as conn:
            composer_id = await self._ensure_composer(
                conn, composer, normalize_int(work.born), normalize_int(work.died)
            )
            dataset_contents_id = await self._ensure_dataset_contents(
                conn, collection, dataset_name, filename
            )

            era_id: int | None = None
            if era:
                era_id = await self._ensure_era(conn, era)

            work_type_id: int | None = None
            if work_type:
                work_type_id = await self._ensure_work_type(conn, work_type)

            work_id = await queries_catalog.insert_work(
                conn,
                title=title,
                composer_id=composer_id,
                dataset_contents_id=dataset_contents_id,
                catalog=normalize_text(work.catalog),
                catalog_number=normalize_text(work.catalog_number),
                pcn=normalize_text(work.pcn),
                era_id=era_id,
                work_type_id=work_type_id,
            )

            for tag in tags:
                tag_id = await self._ensure_tag(conn, tag)
                await queries_catalog.insert_tag_relation(conn, work_id, tag_id)

        logger.debug("Added work %d: %s (%s/%s)", work_id, title, dataset_name, filename)
        return work_id

    async def tag_work(self, work_id: int, tag: str) -> int:
        """Attach a tag (created if missing) to a work. Returns the relation id."""
        label = require_text(tag, "tag")
        async with self._write("tag_work") as conn:
            tag_id = await self._ensure_tag(conn, label)
            return await queries_catalog.insert_tag_relation(conn, work_id, tag_id)

    async def _ensure_composer(
        self, conn: aiosqlite.Connection, name: str, born: int | None, died: int | None
    ) -> int:
        """Get or create a composer by name, return ID."""
        row = await queries_catalog.get_composer_by_name(conn, name)
        if row is not None:
            return row.id
        return await queries_catalog.insert_composer(conn, name, born, died)

    async def _ensure_era(self, conn: aiosqlite.Connection, era: str) -> int:
        row = await queries_catalog.get_era_by_label(conn, era)
        if row is not None:
            return row.id
        return await queries_catalog.insert_era(conn, era)

    async def _ensure_work_type(self, conn: aiosqlite.Connection, work_type: str) -> int:
        row = await queries_catalog.get_work_type_by_label(conn, work_type)
        if row is not None:
            return row.id
        return await queries_catalog.insert_work_type(conn, work_type)

    async def _ensure_tag(self, conn: aiosqlite.Connection, tag: str) -> int:
        row = await queries_catalog.get_tag_by_label(conn, tag)
        if row is not None:
            return row.id
        return await queries_catalog.insert_tag(conn, tag)

    async def _ensure_dataset_contents(
        self, conn: aiosqlite.Connection, collection: str, dataset_name: str, filename: str
    ) -> int:
        """Get or create a source file by (dataset_name, filename), return ID."""
        row = await queries_catalog.get_dataset_contents(conn, dataset_name, filename)
        if row is not None:
            if row.collection.casefold() != collection.casefold():
                logger.warning(
                    "Source file %s/%s already belongs to collection %r, not %r",
                    dataset_name,
                    filename,
                    row.collection,
                    collection,
                )
            return row.id
        return await queries_catalog.insert_dataset_contents(
            conn, collection, dataset_name, filename
        )

    # ===========================================================================
    # Lookups (delegated to query modules)
    # ===========================================================================

    async def get_composer_by_name(self, name: str) -> ComposerRow | None:
        return await queries_catalog.get_composer_by_name(self._require_conn(), name)

    async def get_dataset_contents(
        self, dataset_name: str, filename: str
    ) -> DatasetContentsRow | None:
        return await queries_catalog.get_dataset_contents(
            self._require_conn(), dataset_name, filename
        )

    async def get_work_by_id(self, work_id: int) -> WorkRow | None:
        return await queries_catalog.get_work_by_id(self._require_conn(), work_id)

    async def list_works_by_dataset_contents(self, dataset_contents_id: int) -> list[WorkRow]:
        return await queries_catalog.list_works_by_dataset_contents(
            self._require_conn(), dataset_contents_id
        )

    async def list_work_tags(self, work_id: int) -> list[str]:
        return await queries_catalog.list_work_tags(self._require_conn(), work_id)

    async def count_rows(self, table: str) -> int:
        return await queries_catalog.count_rows(self._require_conn(), table)

    async def table_counts(self) -> dict[str, int]:
        """Row count for every metadata table."""
        conn = self._require_conn()
        return {t: await queries_catalog.count_rows(conn, t) for t in reversed(TABLES)}

    async def get_joined_metadata(
        self,
        dataset_names: Sequence[str],
        filenames: Sequence[str],
        *,
        include_untagged: bool = False,
    ) -> list[JoinedMetadataRow]:
        return await queries_metadata.get_joined_metadata(
            self._require_conn(),
            dataset_names,
            filenames,
            include_untagged=include_untagged,
        )

    # ===========================================================================
    # Deletes (cascades are applied by SQLite)
    # ===========================================================================

    async def delete_composer(self, composer_id: int) -> bool:
        """Delete a composer with all of its works and their tag relations."""
        async with self._write("delete_composer") as conn:
            return await queries_catalog.delete_composer(conn, composer_id)

    async def delete_era(self, era_id: int) -> bool:
        """Delete an era. Works carrying it are deleted too, not detached."""
        async with self._write("delete_era") as conn:
            return await queries_catalog.delete_era(conn, era_id)

    async def delete_work_type(self, work_type_id: int) -> bool:
        """Delete a work type. Works carrying it are deleted too, not detached."""
        async with self._write("delete_work_type") as conn:
            return await queries_catalog.delete_work_type(conn, work_type_id)

    async def delete_dataset_contents(self, dataset_contents_id: int) -> bool:
        """Delete a source file with all of its works and their tag relations."""
        async with self._write("delete_dataset_contents") as conn:
            return await queries_catalog.delete_dataset_contents(conn, dataset_contents_id)

    async def delete_work(self, work_id: int) -> bool:
        async with self._write("delete_work") as conn:
            return await queries_catalog.delete_work(conn, work_id)

    async def delete_tag(self, tag_id: int) -> bool:
        async with self._write("delete_tag") as conn:
            return await queries_catalog.delete_tag(conn, tag_id)
