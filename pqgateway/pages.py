"""In-memory columnar row groups of optional, dictionary encoded string columns."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from pqgateway.rowrange import RowRange


@dataclass(frozen=True)
class Page:
    """One page of a dictionary encoded optional column.

    ``indices`` holds a dictionary index for every non-null row and
    ``definition_levels`` holds 1 for a present row and 0 for a null row.
    """

    dictionary: tuple[str, ...]
    indices: tuple[int, ...]
    definition_levels: tuple[int, ...]

    @property
    def num_rows(self) -> int:
        return len(self.definition_levels)

    @property
    def values(self) -> list[Optional[str]]:
        """The decoded values of the page, None for null rows."""
        present = iter(self.indices)
        return [self.dictionary[next(present)] if level == 1 else None for level in self.definition_levels]

    @property
    def is_null(self) -> bool:
        """True when every row of the page is null."""
        return not self.indices

    @property
    def min_value(self) -> Optional[str]:
        return min((self.dictionary[i] for i in self.indices), default=None)

    @property
    def max_value(self) -> Optional[str]:
        return max((self.dictionary[i] for i in self.indices), default=None)


@dataclass(frozen=True)
class ColumnChunk:
    """All pages of one column within a row group."""

    name: str
    dictionary: tuple[str, ...]
    pages: tuple[Page, ...]
    bloom_filter: Optional[frozenset[str]] = None

    @property
    def page_ranges(self) -> list[RowRange]:
        """The rows covered by each page, in page order."""
        ranges = []
        first = 0
        for page in self.pages:
            ranges.append(RowRange(first, page.num_rows))
            first += page.num_rows
        return ranges

    def _boundaries(self) -> list[tuple[tuple[str, str], tuple[str, str]]]:
        stats = [(p.min_value, p.max_value) for p in self.pages if not p.is_null]
        return list(zip(stats, stats[1:]))

    @property
    def is_ascending(self) -> bool:
        """True when page minimums and maximums never decrease."""
        return all(a[0] <= b[0] and a[1] <= b[1] for a, b in self._boundaries())

    @property
    def is_descending(self) -> bool:
        """True when page statistics decrease and are not ascending."""
        if self.is_ascending:
            return False
        return all(a[0] >= b[0] and a[1] >= b[1] for a, b in self._boundaries())


@dataclass(frozen=True)
class RowGroup:
    """A set of rows stored column by column."""

    num_rows: int
    columns: dict[str, ColumnChunk] = field(default_factory=dict)
    sorting_columns: tuple[str, ...] = ()

    @property
    def column_names(self) -> list[str]:
        return list(self.columns)

    def column(self, name: str) -> Optional[ColumnChunk]:
        """Return the chunk of a column, or None if the row group has no such column."""
        return self.columns.get(name)


class SymbolTable:
    """Decodes the i-th value of a page without materialising all values."""

    def __init__(self) -> None:
        self._dictionary: tuple[str, ...] = ()
        self._symbols: list[int] = []

    def __len__(self) -> int:
        return len(self._symbols)

    def reset(self, page: Page) -> None:
        """Load the symbols of a page; null rows get the index -1."""
        present = iter(page.indices)
        self._symbols = [next(present) if level == 1 else -1 for level in page.definition_levels]
        self._dictionary = page.dictionary

    def get_index(self, index: int) -> int:
        return self._symbols[index]

    def get(self, index: int) -> Optional[str]:
        """Return the value of a row, None if it is null."""
        symbol = self._symbols[index]
        if symbol == -1:
            return None
        return self._dictionary[symbol]


def _cell(row: Mapping[str, Optional[str]], name: str) -> Optional[str]:
    value = row.get(name)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise TypeError(f"column {name!r} holds strings, got {type(value).__name__}")
    return value


def _build_chunk(name: str, cells: Sequence[Optional[str]], page_size: int) -> ColumnChunk:
    codes_by_value: dict[str, int] = {}
    codes = [None if v is None else codes_by_value.setdefault(v, len(codes_by_value)) for v in cells]
    dictionary = tuple(codes_by_value)
    pages = []
    for first in range(0, len(codes), page_size):
        piece = codes[first:first + page_size]
        pages.append(
            Page(
                dictionary=dictionary,
                indices=tuple(c for c in piece if c is not None),
                definition_levels=tuple(0 if c is None else 1 for c in piece),
            )
        )
    return ColumnChunk(name=name, dictionary=dictionary, pages=tuple(pages))


def build_row_group(
    rows: Iterable[Mapping[str, Optional[str]]],
    columns: Iterable[str],
    page_size: int = 1024,
    sorting_columns: Iterable[str] = (),
) -> RowGroup:
    """Build a row group from row mappings.

    Missing keys, None and the empty string are stored as null, like optional
    columns store their zero value. Each page holds at most ``page_size`` rows.
    """
    if page_size < 1:
        raise ValueError(f"page size must be positive, got {page_size}")
    rows = list(rows)
    columns = tuple(columns)
    sorting = tuple(sorting_columns)

    known = set(columns)
    for row in rows:
        unknown = set(row) - known
        if unknown:
            raise ValueError(f"row has unknown columns: {sorted(unknown)}")
    missing = [c for c in sorting if c not in known]
    if missing:
        raise ValueError(f"sorting columns not in schema: {missing}")

    chunks = {name: _build_chunk(name, [_cell(row, name) for row in rows], page_size) for name in columns}
    return RowGroup(num_rows=len(rows), columns=chunks, sorting_columns=sorting)