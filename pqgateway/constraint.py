"""Label matchers and the constraints that turn them into matching row ranges."""

from __future__ import annotations

import enum
import json
import re
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from itertools import groupby
from typing import Callable, Iterable, Optional, Sequence

from pqgateway.metrics import METHOD_SELECT, SCAN_EQUAL, SCAN_REGEX, pages_scanned
from pqgateway.pages import RowGroup, SymbolTable
from pqgateway.rowrange import RowRange, complement_row_ranges, intersect_row_ranges, simplify
from pqgateway.schema import label_name_to_column


class ConstraintError(ValueError):
    """A matcher or constraint cannot be built or applied."""


def _compile(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern, re.DOTALL)
    except re.error as exc:
        raise ConstraintError(f"invalid regular expression {pattern!r}: {exc}") from exc


_LITERAL = r"[^.*+?()\[\]{}^$\\|]*"
_LITERAL_ALTERNATION = re.compile(rf"{_LITERAL}(?:\|{_LITERAL})*")


def _set_matches(pattern: str) -> list[str]:
    """Return the literal strings a pattern matches if it is a plain alternation of literals."""
    if _LITERAL_ALTERNATION.fullmatch(pattern):
        return pattern.split("|")
    return []


class MatchType(enum.Enum):
    EQUAL = "="
    NOT_EQUAL = "!="
    REGEXP = "=~"
    NOT_REGEXP = "!~"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Matcher:
    """Matches the value of one label; regular expressions are anchored at both ends."""

    type: MatchType
    name: str
    value: str
    _regex: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.type in (MatchType.REGEXP, MatchType.NOT_REGEXP):
            object.__setattr__(self, "_regex", _compile(self.value))

    def matches(self, value: str) -> bool:
        if self.type is MatchType.EQUAL:
            return value == self.value
        if self.type is MatchType.NOT_EQUAL:
            return value != self.value
        matched = self._regex.fullmatch(value) is not None
        return matched if self.type is MatchType.REGEXP else not matched

    def __str__(self) -> str:
        return f"{self.name}{self.type}{json.dumps(self.value)}"


def _compare(a: Optional[str], b: Optional[str]) -> int:
    left, right = a or "", b or ""
    return (left > right) - (left < right)


def _matching_runs(
    symbols: SymbolTable, lo: int, hi: int, matches: Callable[[Optional[str]], bool], offset: int
) -> list[RowRange]:
    runs = []
    for matched, group in groupby(range(lo, hi), key=lambda j: matches(symbols.get(j))):
        if matched:
            rows = list(group)
            runs.append(RowRange(offset + rows[0], len(rows)))
    return runs


class Constraint:
    """Restricts the rows of a row group by the values of the column at ``path``."""

    path: str

    def _filter(self, row_group: RowGroup, primary: bool, ranges: list[RowRange], method: str) -> list[RowRange]:
        """Return increasing, non-overlapping row ranges within ``ranges`` that may satisfy the constraint."""
        raise NotImplementedError

    def _init(self, row_group: RowGroup) -> None:
        """Validate the constraint against the row group's columns."""
        raise NotImplementedError


@dataclass
class EqualConstraint(Constraint):
    """Rows whose value equals ``value``; null counts as the empty string."""

    path: str
    value: str

    def __str__(self) -> str:
        return f"equal({json.dumps(self.path)},{json.dumps(self.value)})"

    def _matches(self, value: Optional[str]) -> bool:
        return (value or "") == self.value

    def _init(self, row_group: RowGroup) -> None:
        if row_group.column(self.path) is None:
            return
        if not isinstance(self.value, str):
            raise ConstraintError(f"schema: can only search string kind, got: {type(self.value).__name__}")

    def _filter(self, row_group, primary, ranges, method):
        if not ranges:
            return []
        start, end = ranges[0].start, ranges[-1].end

        chunk = row_group.column(self.path)
        if chunk is None:
            return list(ranges) if self._matches(None) else []
        if chunk.bloom_filter is not None and self.value not in chunk.bloom_filter:
            return []

        matches_empty = self._matches(None)
        ascending, descending = chunk.is_ascending, chunk.is_descending
        symbols = SymbolTable()
        found: list[RowRange] = []
        for page, page_range in zip(chunk.pages, chunk.page_ranges):
            pfrom, pto = page_range.start, page_range.end
            if pfrom > end:
                break
            if pto < start:
                continue
            if page.is_null:
                if matches_empty:
                    found.append(page_range)
                continue

            if not matches_empty:
                max_value = page.max_value
                if max_value is not None and _compare(self.value, max_value) > 0:
                    if descending:
                        break
                    continue
                min_value = page.min_value
                if min_value is not None and _compare(self.value, min_value) < 0:
                    if ascending:
                        break
                    continue

            symbols.reset(page)
            pages_scanned.labels(self.path, SCAN_EQUAL, method).inc()

            n = page.num_rows
            lo = max(pfrom, start) - pfrom
            hi = n - (pto - min(pto, end))
            if ascending and primary:
                keys = [symbols.get(i) or "" for i in range(n)]
                left = max(lo, bisect_left(keys, self.value))
                right = min(hi, bisect_right(keys, self.value))
                if right > left:
                    found.append(RowRange(pfrom + left, right - left))
            else:
                found.extend(_matching_runs(symbols, lo, hi, self._matches, pfrom))

        if not found:
            return []
        return intersect_row_ranges(simplify(found), ranges)


@dataclass
class RegexConstraint(Constraint):
    """Rows whose value fully matches a regular expression; null counts as the empty string."""

    path: str
    pattern: str
    _compiled: re.Pattern = field(init=False, repr=False, compare=False)
    _cache: dict = field(init=False, repr=False, compare=False, default_factory=dict)

    def __post_init__(self) -> None:
        self._compiled = _compile(self.pattern)

    def __str__(self) -> str:
        return f"regex({self.path},{self.pattern})"

    def _matches(self, value: Optional[str]) -> bool:
        accept = self._cache.get(value)
        if accept is None:
            accept = self._compiled.fullmatch(value or "") is not None
            self._cache[value] = accept
        return accept

    def _init(self, row_group: RowGroup) -> None:
        if row_group.column(self.path) is None:
            return
        self._cache = {}

    def _filter(self, row_group, primary, ranges, method):
        if not ranges:
            return []
        start, end = ranges[0].start, ranges[-1].end

        chunk = row_group.column(self.path)
        if chunk is None:
            return list(ranges) if self._matches(None) else []

        symbols = SymbolTable()
        found: list[RowRange] = []
        for page, page_range in zip(chunk.pages, chunk.page_ranges):
            pfrom, pto = page_range.start, page_range.end
            if pfrom > end:
                break
            if pto < start:
                continue
            if page.is_null:
                if self._matches(None):
                    found.append(page_range)
                continue

            symbols.reset(page)
            pages_scanned.labels(self.path, SCAN_REGEX, method).inc()

            n = page.num_rows
            lo = max(pfrom, start) - pfrom
            hi = n - (pto - min(pto, end))
            found.extend(_matching_runs(symbols, lo, hi, self._matches, pfrom))

        if not found:
            return []
        return intersect_row_ranges(simplify(found), ranges)


@dataclass
class NotConstraint(Constraint):
    """The rows that the wrapped constraint rejects."""

    constraint: Constraint

    @property
    def path(self) -> str:
        return self.constraint.path

    def __str__(self) -> str:
        return f"not({self.constraint})"

    def _init(self, row_group: RowGroup) -> None:
        self.constraint._init(row_group)

    def _filter(self, row_group, primary, ranges, method):
        base = self.constraint._filter(row_group, primary, ranges, method)
        return complement_row_ranges(base, ranges)


def equal(path: str, value: str) -> EqualConstraint:
    return EqualConstraint(path, value)


def regex(path: str, pattern: str) -> RegexConstraint:
    return RegexConstraint(path, pattern)


def not_(constraint: Constraint) -> NotConstraint:
    return NotConstraint(constraint)


def matchers_to_constraints(matchers: Iterable[Matcher]) -> list[Constraint]:
    """Turn label matchers into constraints on the label columns."""
    result: list[Constraint] = []
    for matcher in matchers:
        column = label_name_to_column(matcher.name)
        if matcher.type is MatchType.EQUAL:
            result.append(equal(column, matcher.value))
        elif matcher.type is MatchType.NOT_EQUAL:
            result.append(not_(equal(column, matcher.value)))
        elif matcher.type in (MatchType.REGEXP, MatchType.NOT_REGEXP):
            literals = _set_matches(matcher.value)
            if len(literals) == 1:
                inner: Constraint = equal(column, literals[0])
            else:
                inner = regex(column, matcher.value)
            result.append(inner if matcher.type is MatchType.REGEXP else not_(inner))
        else:
            raise ConstraintError(f"unsupported matcher type {matcher.type}")
    return result


def initialize(row_group: RowGroup, constraints: Iterable[Constraint]) -> None:
    """Validate every constraint against the row group."""
    for i, constraint in enumerate(constraints):
        try:
            constraint._init(row_group)
        except ConstraintError as exc:
            raise ConstraintError(f"unable to initialize constraint {i}: {exc}") from exc


def filter_row_group(
    row_group: RowGroup, constraints: Sequence[Constraint], method: str = METHOD_SELECT
) -> list[RowRange]:
    """Return the row ranges of the row group that satisfy all constraints."""
    ordered = list(constraints)
    sorting = row_group.sorting_columns

    # Constraints on sorting columns are cheaper, so they run first.
    placed = 0
    for column in sorting:
        if placed == len(ordered):
            break
        for j in range(len(ordered)):
            if ordered[j].path == column:
                ordered[placed], ordered[j] = ordered[j], ordered[placed]
                placed += 1

    ranges = [RowRange(0, row_group.num_rows)]
    for constraint in ordered:
        primary = bool(sorting) and constraint.path == sorting[0]
        ranges = constraint._filter(row_group, primary, ranges, method)
    return ranges