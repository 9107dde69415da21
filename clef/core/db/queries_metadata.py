"""
Batch metadata lookup: joins works with their composer, source file, era,
work type and tags for a set of dataset names and a set of filenames.

Design:
- The value sets are bound as parameters (`IN (?, ?, ...)`). Nothing is staged
  in a shared table, so concurrent lookups cannot see each other's inputs.
- Both sets are applied independently (dataset_name IN ... AND filename IN ...);
  a dataset/filename combination that was never ingested simply matches nothing.
- This function assumes `conn.row_factory = aiosqlite.Row`.

Important:
- Do NOT interpolate user input into SQL. The only dynamic parts are the
  placeholder lists (built from counts) and one of two static tag-join fragments.
"""

from __future__ import annotations

from typing import Sequence

import aiosqlite

from clef.core.db.models import JoinedMetadataRow

# A work without tags produces no rows.
_TAGS_REQUIRED_JOIN = """
        JOIN tag_relations tr   ON tr.work_id = w.id
        JOIN tags t             ON t.id = tr.tag_id
"""

# A work without tags produces one row with tag = NULL.
_TAGS_OPTIONAL_JOIN = """
        LEFT JOIN tag_relations tr  ON tr.work_id = w.id
        LEFT JOIN tags t            ON t.id = tr.tag_id
"""


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


async def get_joined_metadata(
    conn: aiosqlite.Connection,
    dataset_names: Sequence[str],
    filenames: Sequence[str],
    *,
    include_untagged: bool = False,
) -> list[JoinedMetadataRow]:
    """
    Return one row per (work, tag) pair whose source file matches both sets.

    Callers are expected to pass deduplicated, validated values (see
    `clef.core.batch.parse_batch`). An empty set matches nothing.
    """
    if not dataset_names or not filenames:
        return []

    tag_join = _TAGS_OPTIONAL_JOIN if include_untagged else _TAGS_REQUIRED_JOIN

    sql = f"""
        SELECT
            dc.collection       AS collection,
            dc.dataset_name     AS dataset_name,
            dc.filename         AS filename,
            w.title             AS title,
            w.catalog           AS catalog,
            w.catalog_number    AS catalog_number,
            w.pcn               AS pcn,
            c.composer_name     AS composer_name,
            c.born              AS born,
            c.died              AS died,
            wt.work_type        AS work_type,
            e.era               AS era,
            t.tag               AS tag
        FROM works w
        JOIN composers c            ON c.id = w.composer_id
        JOIN dataset_contents dc    ON dc.id = w.dataset_contents_id
        LEFT JOIN eras e            ON e.id = w.era_id
        LEFT JOIN work_type wt      ON wt.id = w.work_type_id
        {tag_join}
        WHERE dc.dataset_name IN ({_placeholders(len(dataset_names))})
          AND dc.filename IN ({_placeholders(len(filenames))});
    """

    cursor = await conn.execute(sql, (*dataset_names, *filenames))
    rows = await cursor.fetchall()
    return [
        JoinedMetadataRow(
            collection=r["collection"],
            dataset_name=r["dataset_name"],
            filename=r["filename"],
            title=r["title"],
            catalog=r["catalog"],
            catalog_number=r["catalog_number"],
            pcn=r["pcn"],
            composer_name=r["composer_name"],
            born=r["born"],
            died=r["died"],
            work_type=r["work_type"],
            era=r["era"],
            tag=r["tag"],
        )
        for r in rows
    ]
