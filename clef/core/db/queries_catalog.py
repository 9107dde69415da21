"""
Per-entity DB helpers: insert, lookup, delete and count.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return DTOs from `clef.core.db.models`.
- They never commit and never swallow `sqlite3.IntegrityError`; transaction
  scope and error translation belong to `MetadataDb`.
- These functions assume `conn.row_factory = aiosqlite.Row`.

Important:
- Do NOT interpolate user input into SQL. The only dynamic SQL here is the
  table name in `count_rows`, checked against `schema.TABLES`.
"""

from __future__ import annotations

import aiosqlite

from clef.core.db.models import (
    ComposerRow,
    DatasetContentsRow,
    EraRow,
    TagRow,
    WorkRow,
    WorkTypeRow,
)
from clef.core.db.schema import TABLES

_WORK_COLUMNS = (
    "id, title, catalog, catalog_number, pcn, "
    "composer_id, era_id, work_type_id, dataset_contents_id"
)


def _work_from_row(row: aiosqlite.Row) -> WorkRow:
    return WorkRow(
        id=int(row["id"]),
        title=row["title"],
        catalog=row["catalog"],
        catalog_number=row["catalog_number"],
        pcn=row["pcn"],
        composer_id=int(row["composer_id"]),
        era_id=int(row["era_id"]) if row["era_id"] is not None else None,
        work_type_id=int(row["work_type_id"]) if row["work_type_id"] is not None else None,
        dataset_contents_id=int(row["dataset_contents_id"]),
    )


async def _insert(conn: aiosqlite.Connection, sql: str, params: tuple) -> int:
    cursor = await conn.execute(sql, params)
    row_id = cursor.lastrowid
    if row_id is None:
        raise RuntimeError("Insert failed: no row id returned.")
    return int(row_id)


# ---------------------------------------------------------------------------
# Composers
# ---------------------------------------------------------------------------


async def insert_composer(
    conn: aiosqlite.Connection, name: str, born: int | None, died: int | None
) -> int:
    return await _insert(
        conn,
        "INSERT INTO composers (composer_name, born, died) VALUES (?, ?, ?);",
        (name, born, died),
    )


async def get_composer_by_name(conn: aiosqlite.Connection, name: str) -> ComposerRow | None:
    cursor = await conn.execute(
        "SELECT id, composer_name, born, died FROM composers WHERE composer_name = ?;",
        (name,),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return ComposerRow(
        id=int(row["id"]),
        composer_name=row["composer_name"],
        born=row["born"],
        died=row["died"],
    )


async def delete_composer(conn: aiosqlite.Connection, composer_id: int) -> bool:
    cursor = await conn.execute("DELETE FROM composers WHERE id = ?;", (int(composer_id),))
    return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Eras / work types / tags (simple label tables)
# ---------------------------------------------------------------------------


async def insert_era(conn: aiosqlite.Connection, era: str) -> int:
    return await _insert(conn, "INSERT INTO eras (era) VALUES (?);", (era,))


async def get_era_by_label(conn: aiosqlite.Connection, era: str) -> EraRow | None:
    cursor = await conn.execute("SELECT id, era FROM eras WHERE era = ?;", (era,))
    row = await cursor.fetchone()
    if row is None:
        return None
    return EraRow(id=int(row["id"]), era=row["era"])


async def delete_era(conn: aiosqlite.Connection, era_id: int) -> bool:
    cursor = await conn.execute("DELETE FROM eras WHERE id = ?;", (int(era_id),))
    return cursor.rowcount > 0


async def insert_work_type(conn: aiosqlite.Connection, work_type: str) -> int:
    return await _insert(conn, "INSERT INTO work_type (work_type) VALUES (?);", (work_type,))


async def get_work_type_by_label(
    conn: aiosqlite.Connection, work_type: str
) -> WorkTypeRow | None:
    cursor = await conn.execute(
        "SELECT id, work_type FROM work_type WHERE work_type = ?;", (work_type,)
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return WorkTypeRow(id=int(row["id"]), work_type=row["work_type"])


async def delete_work_type(conn: aiosqlite.Connection, work_type_id: int) -> bool:
    cursor = await conn.execute("DELETE FROM work_type WHERE id = ?;", (int(work_type_id),))
    return cursor.rowcount > 0


async def insert_tag(conn: aiosqlite.Connection, tag: str) -> int:
    return await _insert(conn, "INSERT INTO tags (tag) VALUES (?);", (tag,))


async def get_tag_by_label(conn: aiosqlite.Connection, tag: str) -> TagRow | None:
    cursor = await conn.execute("SELECT id, tag FROM tags WHERE tag = ?;", (tag,))
    row = await cursor.fetchone()
    if row is None:
        return None
    return TagRow(id=int(row["id"]), tag=row["tag"])


async def delete_tag(conn: aiosqlite.Connection, tag_id: int) -> bool:
    cursor = await conn.execute("DELETE FROM tags WHERE id = ?;", (int(tag_id),))
    return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Dataset contents (source files)
# ---------------------------------------------------------------------------


async def insert_dataset_contents(
    conn: aiosqlite.Connection, collection: str, dataset_name: str, filename: str
) -> int:
    return await _insert(
        conn,
        "INSERT INTO dataset_contents (collection, dataset_name, filename) VALUES (?, ?, ?);",
        (collection, dataset_name, filename),
    )


async def get_dataset_contents(
    conn: aiosqlite.Connection, dataset_name: str, filename: str
) -> DatasetContentsRow | None:
    cursor = await conn.execute(
        """
        SELECT id, collection, dataset_name, filename
        FROM dataset_contents
        WHERE dataset_name = ? AND filename = ?
        """,
        (dataset_name, filename),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return DatasetContentsRow(
        id=int(row["id"]),
        collection=row["collection"],
        dataset_name=row["dataset_name"],
        filename=row["filename"],
    )


async def delete_dataset_contents(conn: aiosqlite.Connection, dataset_contents_id: int) -> bool:
    cursor = await conn.execute(
        "DELETE FROM dataset_contents WHERE id = ?;", (int(dataset_contents_id),)
    )
    return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Works + tag relations
# ---------------------------------------------------------------------------


async def insert_work(
    conn: aiosqlite.Connection,
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
    return await _insert(
        conn,
        """
        INSERT INTO works (
            title, catalog, catalog_number, pcn,
            composer_id, era_id, work_type_id, dataset_contents_id
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
        """,
        (
            title,
            catalog,
            catalog_number,
            pcn,
            int(composer_id),
            era_id,
            work_type_id,
            int(dataset_contents_id),
        ),
    )


async def get_work_by_id(conn: aiosqlite.Connection, work_id: int) -> WorkRow | None:
    cursor = await conn.execute(
        f"SELECT {_WORK_COLUMNS} FROM works WHERE id = ?;",
        (int(work_id),),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return _work_from_row(row)


async def list_works_by_dataset_contents(
    conn: aiosqlite.Connection, dataset_contents_id: int
) -> list[WorkRow]:
    cursor = await conn.execute(
        f"SELECT {_WORK_COLUMNS} FROM works WHERE dataset_contents_id = ? ORDER BY id;",
        (int(dataset_contents_id),),
    )
    rows = await cursor.fetchall()
    return [_work_from_row(r) for r in rows]


async def delete_work(conn: aiosqlite.Connection, work_id: int) -> bool:
    cursor = await conn.execute("DELETE FROM works WHERE id = ?;", (int(work_id),))
    return cursor.rowcount > 0


async def insert_tag_relation(conn: aiosqlite.Connection, work_id: int, tag_id: int) -> int:
    return await _insert(
        conn,
        "INSERT INTO tag_relations (work_id, tag_id) VALUES (?, ?);",
        (int(work_id), int(tag_id)),
    )


async def list_work_tags(conn: aiosqlite.Connection, work_id: int) -> list[str]:
    cursor = await conn.execute(
        """
        SELECT t.tag
        FROM tag_relations tr
        JOIN tags t ON t.id = tr.tag_id
        WHERE tr.work_id = ?
        ORDER BY t.tag COLLATE NOCASE;
        """,
        (int(work_id),),
    )
    rows = await cursor.fetchall()
    return [str(r["tag"]) for r in rows]


# ---------------------------------------------------------------------------
# Counts
# ---------------------------------------------------------------------------


async def count_rows(conn: aiosqlite.Connection, table: str) -> int:
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table!r}")
    cursor = await conn.execute(f"SELECT COUNT(*) AS c FROM {table};")
    row = await cursor.fetchone()
    return int(row["c"]) if row is not None else 0
