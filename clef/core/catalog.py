from __future__ import annotations

import logging
from typing import Sequence

from clef.core.batch import DEFAULT_MAX_BATCH_LENGTH, parse_batch
from clef.core.db.models import JoinedMetadataRow
from clef.core.errors import CatalogError, CatalogNotReadyError
from clef.core.metadata_db import MetadataDb

logger = logging.getLogger(__name__)


class MetadataCatalog:
    """
    High-level facade for the musical works catalog.

    It owns the batch-input rules of the metadata lookup (length ceiling,
    delimiter handling, deduplication) and the default for untagged works;
    `MetadataDb` does the storage work.

    Dependencies:
    - `MetadataDb` for persistence
    """

    def __init__(
        self,
        *,
        db: MetadataDb,
        max_batch_length: int = DEFAULT_MAX_BATCH_LENGTH,
        include_untagged: bool = False,
    ) -> None:
        if max_batch_length <= 0:
            raise ValueError("max_batch_length must be > 0")
        self._db = db
        self._max_batch_length = max_batch_length
        self._include_untagged = include_untagged
        self._initialized = False

    @property
    def db(self) -> MetadataDb:
        return self._db

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Prepare the catalog for lookups.

        Contract:
        - `MetadataDb` must already be open.
        - schema/migrations are ensured here for convenience.
        """
        if not self._db.is_open:
            raise CatalogError(
                "MetadataDb is not open. Open it before initializing MetadataCatalog."
            )

        await self._db.ensure_schema()
        self._initialized = True

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise CatalogNotReadyError(
                "MetadataCatalog is not initialized. Call await catalog.initialize() first."
            )

    async def get_joined_metadata(
        self,
        dataset_names: str | Sequence[str],
        filenames: str | Sequence[str],
        *,
        include_untagged: bool | None = None,
    ) -> list[JoinedMetadataRow]:
        """
        Look up work metadata for a batch of source files.

        Args:
            dataset_names: Comma-delimited string or sequence of dataset names.
            filenames: Comma-delimited string or sequence of filenames.
            include_untagged: Return works without tags (with tag=None).
                Defaults to the catalog setting.

        Returns:
            One row per (work, tag) pair whose source file's dataset name is in
            `dataset_names` and whose filename is in `filenames`. Unordered.

        Raises:
            InvalidBatchInputError: Either argument is oversized or cannot be
                split unambiguously.
        """
        self._require_initialized()

        datasets = parse_batch(
            dataset_names, argument="dataset_names", max_length=self._max_batch_length
        )
        files = parse_batch(filenames, argument="filenames", max_length=self._max_batch_length)
        untagged = self._include_untagged if include_untagged is None else include_untagged

        rows = await self._db.get_joined_metadata(datasets, files, include_untagged=untagged)
        logger.debug(
            "Joined metadata lookup: %d dataset(s) x %d filename(s) -> %d row(s)",
            len(datasets),
            len(files),
            len(rows),
        )
        return rows
