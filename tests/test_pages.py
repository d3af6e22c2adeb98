import pytest

from pqgateway.pages import RowGroup, SymbolTable, build_row_group

COLUMNS = ("A", "B")
ROWS = [
    {"A": "b", "B": "x"},
    {"A": "a"},
    {"A": "b", "B": ""},
    {"A": "c", "B": "y"},
    {"A": None, "B": "x"},
]


def _decoded(chunk):
    return [value for page in chunk.pages for value in page.values]


@pytest.mark.parametrize("page_size", [1, 2, 3, 10])
def test_values_round_trip(page_size):
    rg = build_row_group(ROWS, COLUMNS, page_size)
    assert rg.num_rows == len(ROWS)
    for name in COLUMNS:
        expected = [row.get(name) or None for row in ROWS]
        assert _decoded(rg.column(name)) == expected


@pytest.mark.parametrize("page_size", [1, 2, 3, 10])
def test_pages_respect_page_size(page_size):
    rg = build_row_group(ROWS, COLUMNS, page_size)
    for name in COLUMNS:
        chunk = rg.column(name)
        assert all(0 < p.num_rows <= page_size for p in chunk.pages)
        assert sum(p.num_rows for p in chunk.pages) == len(ROWS)


@pytest.mark.parametrize("page_size", [1, 2, 4])
def test_page_ranges_are_contiguous(page_size):
    chunk = build_row_group(ROWS, COLUMNS, page_size).column("A")
    ranges = chunk.page_ranges
    assert ranges[0].start == 0
    for prev, cur in zip(ranges, ranges[1:]):
        assert cur.start == prev.end
    assert ranges[-1].end == len(ROWS)


def test_dictionary_in_first_appearance_order():
    chunk = build_row_group(ROWS, COLUMNS, 2).column("A")
    assert chunk.dictionary == ("b", "a", "c")
    assert all(p.dictionary == chunk.dictionary for p in chunk.pages)


@pytest.mark.parametrize("page_size", [1, 2, 3])
def test_symbol_table_decodes_pages(page_size):
    chunk = build_row_group(ROWS, COLUMNS, page_size).column("B")
    table = SymbolTable()
    for page in chunk.pages:
        table.reset(page)
        assert len(table) == page.num_rows
        assert [table.get(i) for i in range(page.num_rows)] == page.values
        for i, value in enumerate(page.values):
            assert (table.get_index(i) == -1) == (value is None)


def test_symbol_table_reuse_with_smaller_page():
    big = build_row_group(ROWS, COLUMNS, 10).column("A").pages[0]
    small = build_row_group(ROWS, COLUMNS, 1).column("A").pages[0]
    table = SymbolTable()
    table.reset(big)
    table.reset(small)
    assert len(table) == 1
    assert table.get(0) == "b"


def test_null_page_statistics():
    rg = build_row_group([{"A": None}, {"A": ""}, {}], ["A"], 2)
    pages = rg.column("A").pages
    assert all(p.is_null for p in pages)
    assert all(p.min_value is None and p.max_value is None for p in pages)


@pytest.mark.parametrize("page_size", [1, 2, 3])
def test_page_min_max_bound_values(page_size):
    chunk = build_row_group(ROWS, COLUMNS, page_size).column("A")
    for page in chunk.pages:
        present = [v for v in page.values if v is not None]
        if present:
            assert page.min_value == min(present)
            assert page.max_value == max(present)
            assert not page.is_null


def test_boundary_order():
    ascending = build_row_group([{"A": v} for v in "aabcd"], ["A"], 2).column("A")
    assert ascending.is_ascending
    assert not ascending.is_descending
    descending = build_row_group([{"A": v} for v in "dcbba"], ["A"], 2).column("A")
    assert descending.is_descending
    assert not descending.is_ascending
    unordered = build_row_group([{"A": v} for v in "adbc"], ["A"], 1).column("A")
    assert not unordered.is_ascending
    assert not unordered.is_descending


def test_missing_column_and_sorting_columns():
    rg = build_row_group(ROWS, COLUMNS, 2, sorting_columns=["A"])
    assert rg.column("C") is None
    assert rg.sorting_columns == ("A",)
    assert rg.column_names == list(COLUMNS)


def test_empty_row_group():
    rg = build_row_group([], COLUMNS, 4)
    assert rg.num_rows == 0
    assert rg.column("A").pages == ()
    assert isinstance(rg, RowGroup) and rg.column("A").page_ranges == []


def test_invalid_page_size():
    with pytest.raises(ValueError):
        build_row_group(ROWS, COLUMNS, 0)


def test_unknown_sorting_column():
    with pytest.raises(ValueError):
        build_row_group(ROWS, COLUMNS, 2, sorting_columns=["Z"])


def test_unknown_row_key():
    with pytest.raises(ValueError):
        build_row_group([{"Z": "1"}], COLUMNS, 2)


def test_non_string_value():
    with pytest.raises(TypeError):
        build_row_group([{"A": 3}], COLUMNS, 2)