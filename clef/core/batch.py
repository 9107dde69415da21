"""
Batch argument parsing for the metadata lookup.

A batch is either one comma-delimited string ("D1,D2") or a sequence of
individual values. Both forms are limited to `max_length` characters in their
comma-joined encoding, and a value can never contain the delimiter.
Malformed batches are rejected here, before anything reaches the database;
they are never truncated or split differently from what the caller meant.
"""

from __future__ import annotations

import logging
from typing import Final, Sequence

from clef.core.errors import InvalidBatchInputError

logger = logging.getLogger(__name__)

DELIMITER: Final[str] = ","
DEFAULT_MAX_BATCH_LENGTH: Final[int] = 500


def parse_batch(
    value: str | Sequence[str],
    *,
    argument: str,
    max_length: int = DEFAULT_MAX_BATCH_LENGTH,
) -> tuple[str, ...]:
    """
    Split, validate and deduplicate one batch argument.

    Args:
        value: Comma-delimited string, or a sequence of individual values.
        argument: Argument name, used in error messages.
        max_length: Ceiling for the comma-joined encoding.

    Returns:
        The distinct values in first-seen order. Empty input gives ().

    Raises:
        InvalidBatchInputError: Oversized batch, a value containing the
            delimiter, an empty value, or a non-string value.
    """
    if isinstance(value, str):
        if len(value) > max_length:
            _reject(argument, f"length {len(value)} exceeds the {max_length} character limit")
        if value == "":
            return ()
        values: Sequence[str] = value.split(DELIMITER)
    else:
        values = value
        for v in values:
            if not isinstance(v, str):
                _reject(argument, f"values must be strings, got {type(v).__name__}")
            if DELIMITER in v:
                _reject(argument, f"value {v!r} contains the delimiter {DELIMITER!r}")

    distinct = tuple(dict.fromkeys(values))
    if any(v == "" for v in distinct):
        _reject(argument, "empty values are not allowed")

    encoded_length = len(DELIMITER.join(distinct))
    if encoded_length > max_length:
        _reject(argument, f"length {encoded_length} exceeds the {max_length} character limit")

    return distinct


def _reject(argument: str, reason: str) -> None:
    logger.warning("Rejected batch argument %s: %s", argument, reason)
    raise InvalidBatchInputError(argument, reason)
