"""Column naming and chunk column layout of converted blocks."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pqgateway.block import Meta

SERIES_HASH_LABEL = "__cf_series_hash__"

LABEL_COLUMN_PREFIX = "___cf_meta_label_"
LABEL_INDEX_COLUMN = "___cf_meta_index"
LABEL_HASH_COLUMN = "___cf_meta_hash"
CHUNKS_COLUMN_0 = "___cf_meta_chunk_0"
CHUNKS_COLUMN_1 = "___cf_meta_chunk_1"
CHUNKS_COLUMN_2 = "___cf_meta_chunk_2"

CHUNK_COLUMN_LENGTH = dt.timedelta(hours=8)
CHUNK_COLUMNS_PER_DAY = 3

V0 = 0
V1 = 1
V2 = 2

CHUNK_COLUMNS = [LABEL_HASH_COLUMN, CHUNKS_COLUMN_0, CHUNKS_COLUMN_1, CHUNKS_COLUMN_2]

_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)
_CHUNK_COLUMN_NAMES = (CHUNKS_COLUMN_0, CHUNKS_COLUMN_1, CHUNKS_COLUMN_2)


def chunk_column_name(index: int) -> Optional[str]:
    """Return the name of the chunk column with this index, or None if there is none."""
    if 0 <= index < len(_CHUNK_COLUMN_NAMES):
        return _CHUNK_COLUMN_NAMES[index]
    return None


def label_name_to_column(label: str) -> str:
    return LABEL_COLUMN_PREFIX + label


def column_to_label_name(column: str) -> str:
    return column.removeprefix(LABEL_COLUMN_PREFIX)


def chunk_column_index(meta: Meta, when: dt.datetime) -> int:
    """Return the index of the chunk column holding data for the given time."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=dt.timezone.utc)
    start = _EPOCH + dt.timedelta(milliseconds=meta.mint)
    elapsed = when - start
    if elapsed < CHUNK_COLUMN_LENGTH:
        return 0
    return min(elapsed // CHUNK_COLUMN_LENGTH, CHUNK_COLUMNS_PER_DAY - 1)