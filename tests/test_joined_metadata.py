"""
Tests for the batch metadata lookup (MetadataCatalog.get_joined_metadata).

These tests verify:
- One row per (work, tag) pair, with the full projection
- Independent dataset/filename set membership
- Tag visibility (default and include_untagged)
- Batch validation before the store is touched
- Independence of concurrent lookups
"""

from __future__ import annotations

import asyncio

import pytest

from clef.core.catalog import MetadataCatalog
from clef.core.db.models import JoinedMetadataRow, NewWork
from clef.core.errors import CatalogError, CatalogNotReadyError, InvalidBatchInputError
from clef.core.metadata_db import MetadataDb


@pytest.fixture
async def db() -> MetadataDb:
    """Create an in-memory database for testing."""
    db = MetadataDb(":memory:")
    await db.open()
    await db.ensure_schema()
    yield db
    await db.close()


@pytest.fixture
async def catalog(db: MetadataDb) -> MetadataCatalog:
    """Create a MetadataCatalog with in-memory DB."""
    cat = MetadataCatalog(db=db)
    await cat.initialize()
    return cat


async def _load_works(db: MetadataDb) -> None:
    await db.add_work(
        NewWork(
            title="Invention 1",
            composer="Bach",
            born=1685,
            died=1750,
            collection="C",
            dataset_name="D1",
            filename="f1.xml",
            catalog="BWV",
            catalog_number="772",
            era="Baroque",
            work_type="Invention",
            tags=("baroque", "keyboard"),
        )
    )
    await db.add_work(
        NewWork(
            title="Gymnopédie 1",
            composer="Satie",
            collection="C",
            dataset_name="D1",
            filename="f2.xml",
            tags=("piano",),
        )
    )
    await db.add_work(
        NewWork(
            title="Symphony 5",
            composer="Beethoven",
            collection="C",
            dataset_name="D2",
            filename="f3.xml",
            pcn="PCN-5",
            era="Classical",
            work_type="Symphony",
            tags=("orchestral",),
        )
    )
    # Untagged work
    await db.add_work(
        NewWork(
            title="Nocturne",
            composer="Chopin",
            collection="C",
            dataset_name="D2",
            filename="f4.xml",
            era="Romantic",
        )
    )


def _tags(rows: list[JoinedMetadataRow]) -> set[str | None]:
    return {r.tag for r in rows}


class TestJoinedMetadata:
    """Tests for the lookup result shape and filter semantics."""

    async def test_one_row_per_tag(self, db: MetadataDb, catalog: MetadataCatalog) -> None:
        """A work with two tags yields exactly two rows carrying the same work data."""
        await _load_works(db)

        rows = await catalog.get_joined_metadata("D1", "f1.xml")

        assert len(rows) == 2
        assert _tags(rows) == {"baroque", "keyboard"}
        for row in rows:
            assert row.composer_name == "Bach"
            assert row.title == "Invention 1"
            assert row.collection == "C"
            assert row.dataset_name == "D1"
            assert row.filename == "f1.xml"
            assert row.catalog == "BWV"
            assert row.catalog_number == "772"
            assert row.pcn is None
            assert row.born == 1685
            assert row.died == 1750
            assert row.era == "Baroque"
            assert row.work_type == "Invention"

    async def test_optional_attributes_are_none(
        self, db: MetadataDb, catalog: MetadataCatalog
    ) -> None:
        """Works without era or work type still appear, with those fields None."""
        await _load_works(db)

        rows = await catalog.get_joined_metadata("D1", "f2.xml")

        assert len(rows) == 1
        row = rows[0]
        assert row.title == "Gymnopédie 1"
        assert row.era is None
        assert row.work_type is None
        assert row.born is None
        assert row.tag == "piano"

    async def test_batch_of_files(self, db: MetadataDb, catalog: MetadataCatalog) -> None:
        await _load_works(db)

        rows = await catalog.get_joined_metadata("D1,D2", "f1.xml,f2.xml,f3.xml")

        assert len(rows) == 4
        assert {r.title for r in rows} == {"Invention 1", "Gymnopédie 1", "Symphony 5"}
        symphony = next(r for r in rows if r.title == "Symphony 5")
        assert symphony.pcn == "PCN-5"
        assert symphony.era == "Classical"

    async def test_sequence_arguments(self, db: MetadataDb, catalog: MetadataCatalog) -> None:
        await _load_works(db)

        rows = await catalog.get_joined_metadata(["D1"], ("f1.xml", "f2.xml"))

        assert len(rows) == 3

    async def test_repeated_values_do_not_multiply_rows(
        self, db: MetadataDb, catalog: MetadataCatalog
    ) -> None:
        await _load_works(db)

        rows = await catalog.get_joined_metadata("D1,D1,D1", "f1.xml,f1.xml")

        assert len(rows) == 2

    async def test_sets_apply_independently(
        self, db: MetadataDb, catalog: MetadataCatalog
    ) -> None:
        """Membership is checked per set, not per (dataset, filename) pair."""
        await _load_works(db)

        # f3.xml only exists in D2, but D2 is in the dataset set.
        rows = await catalog.get_joined_metadata("D1,D2", "f3.xml")

        assert [r.title for r in rows] == ["Symphony 5"]

    async def test_never_ingested_combination_is_empty(
        self, db: MetadataDb, catalog: MetadataCatalog
    ) -> None:
        """A combination that was never ingested gives an empty result, not an error."""
        await _load_works(db)

        assert await catalog.get_joined_metadata("D1", "f3.xml") == []
        assert await catalog.get_joined_metadata("D9", "f1.xml") == []

    async def test_empty_batches(self, db: MetadataDb, catalog: MetadataCatalog) -> None:
        await _load_works(db)

        assert await catalog.get_joined_metadata("", "f1.xml") == []
        assert await catalog.get_joined_metadata(["D1"], []) == []

    async def test_matching_ignores_case(
        self, db: MetadataDb, catalog: MetadataCatalog
    ) -> None:
        await _load_works(db)

        rows = await catalog.get_joined_metadata("d1", "F1.XML")

        assert len(rows) == 2


class TestTagVisibility:
    """Tests for works without tags."""

    async def test_untagged_work_is_hidden_by_default(
        self, db: MetadataDb, catalog: MetadataCatalog
    ) -> None:
        await _load_works(db)

        assert await catalog.get_joined_metadata("D2", "f4.xml") == []

    async def test_include_untagged(self, db: MetadataDb, catalog: MetadataCatalog) -> None:
        await _load_works(db)

        rows = await catalog.get_joined_metadata("D2", "f4.xml", include_untagged=True)

        assert len(rows) == 1
        assert rows[0].title == "Nocturne"
        assert rows[0].era == "Romantic"
        assert rows[0].tag is None

    async def test_include_untagged_keeps_tag_rows(
        self, db: MetadataDb, catalog: MetadataCatalog
    ) -> None:
        await _load_works(db)

        rows = await catalog.get_joined_metadata("D1", "f1.xml", include_untagged=True)

        assert _tags(rows) == {"baroque", "keyboard"}

    async def test_catalog_default(self, db: MetadataDb) -> None:
        """The catalog-wide default applies when the call does not choose."""
        await _load_works(db)
        cat = MetadataCatalog(db=db, include_untagged=True)
        await cat.initialize()

        assert len(await cat.get_joined_metadata("D2", "f4.xml")) == 1
        assert await cat.get_joined_metadata("D2", "f4.xml", include_untagged=False) == []

    async def test_new_tag_adds_row(
        self, db: MetadataDb, catalog: MetadataCatalog
    ) -> None:
        await _load_works(db)
        tag_rows = await catalog.get_joined_metadata("D1", "f2.xml")
        assert len(tag_rows) == 1

        source = await db.get_dataset_contents("D1", "f2.xml")
        assert source is not None
        works = await db.list_works_by_dataset_contents(source.id)
        await db.tag_work(works[0].id, "impressionist")

        assert _tags(await catalog.get_joined_metadata("D1", "f2.xml")) == {
            "piano",
            "impressionist",
        }


class TestBatchValidation:
    """Malformed batches are rejected before reaching the store."""

    async def test_oversized_batch(self, db: MetadataDb, catalog: MetadataCatalog) -> None:
        await _load_works(db)
        oversized = "f1.xml," + "x" * 500

        with pytest.raises(InvalidBatchInputError) as exc_info:
            await catalog.get_joined_metadata("D1", oversized)
        assert exc_info.value.argument == "filenames"

    async def test_delimiter_inside_value(self, catalog: MetadataCatalog) -> None:
        with pytest.raises(InvalidBatchInputError) as exc_info:
            await catalog.get_joined_metadata(["D1,D2"], ["f1.xml"])
        assert exc_info.value.argument == "dataset_names"

    async def test_custom_ceiling(self, db: MetadataDb) -> None:
        cat = MetadataCatalog(db=db, max_batch_length=5)
        await cat.initialize()

        assert await cat.get_joined_metadata("D1", "f.xml") == []
        with pytest.raises(InvalidBatchInputError):
            await cat.get_joined_metadata("D1", "f1.xml")

    async def test_invalid_batch_is_a_value_error(self, catalog: MetadataCatalog) -> None:
        with pytest.raises(ValueError):
            await catalog.get_joined_metadata("D1,,D2", "f1.xml")


class TestCatalogLifecycle:
    """Tests for MetadataCatalog setup."""

    async def test_lookup_before_initialize(self, db: MetadataDb) -> None:
        cat = MetadataCatalog(db=db)
        assert not cat.initialized
        with pytest.raises(CatalogNotReadyError):
            await cat.get_joined_metadata("D1", "f1.xml")

    async def test_initialize_requires_open_db(self) -> None:
        cat = MetadataCatalog(db=MetadataDb(":memory:"))
        with pytest.raises(CatalogError):
            await cat.initialize()

    def test_rejects_non_positive_ceiling(self) -> None:
        with pytest.raises(ValueError):
            MetadataCatalog(db=MetadataDb(":memory:"), max_batch_length=0)


class TestConcurrentLookups:
    """Concurrent lookups do not see each other's inputs."""

    async def test_gathered_lookups_are_independent(
        self, db: MetadataDb, catalog: MetadataCatalog
    ) -> None:
        await _load_works(db)

        first, second, third = await asyncio.gather(
            catalog.get_joined_metadata("D1", "f1.xml"),
            catalog.get_joined_metadata("D2", "f3.xml"),
            catalog.get_joined_metadata("D1", "f2.xml"),
        )

        assert {r.title for r in first} == {"Invention 1"}
        assert len(first) == 2
        assert [r.title for r in second] == ["Symphony 5"]
        assert [r.title for r in third] == ["Gymnopédie 1"]
