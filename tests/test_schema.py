import datetime as dt

import pytest

from pqgateway.block import Meta
from pqgateway.schema import (
    CHUNKS_COLUMN_0,
    CHUNKS_COLUMN_2,
    chunk_column_index,
    chunk_column_name,
    column_to_label_name,
    label_name_to_column,
)

_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)


@pytest.mark.parametrize(
    "hours, expected",
    [(1, 0), (8, 1), (11, 1), (18, 2), (24, 2)],
)
def test_chunk_column_index(hours, expected):
    meta = Meta(mint=0)
    when = _EPOCH + dt.timedelta(milliseconds=meta.mint) + dt.timedelta(hours=hours)
    assert chunk_column_index(meta, when) == expected


def test_chunk_column_index_before_mint_is_zero():
    meta = Meta(mint=86_400_000)
    assert chunk_column_index(meta, _EPOCH) == 0


def test_chunk_column_name():
    assert chunk_column_name(0) == CHUNKS_COLUMN_0
    assert chunk_column_name(2) == CHUNKS_COLUMN_2
    assert chunk_column_name(3) is None
    assert chunk_column_name(-1) is None


def test_label_column_round_trip():
    column = label_name_to_column("__name__")
    assert column == "___cf_meta_label___name__"
    assert column_to_label_name(column) == "__name__"


def test_column_to_label_name_leaves_other_columns():
    assert column_to_label_name("___cf_meta_index") == "___cf_meta_index"