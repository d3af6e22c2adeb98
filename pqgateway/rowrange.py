"""Half-open ranges of row indexes and the set operations on them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence


@dataclass(frozen=True, order=True)
class RowRange:
    """The rows ``start`` up to, but not including, ``start + count``."""

    start: int
    count: int

    @property
    def end(self) -> int:
        return self.start + self.count


def intersect(a: RowRange, b: RowRange) -> bool:
    """Return whether two ranges share at least one row."""
    return a.start < b.end and b.start < a.end


def intersection(a: RowRange, b: RowRange) -> RowRange:
    """Return the overlap of two ranges; only meaningful if they intersect."""
    start = max(a.start, b.start)
    end = min(a.end, b.end)
    return RowRange(start, end - start)


def total_rows(ranges: Iterable[RowRange]) -> int:
    """Return the number of rows covered by the ranges."""
    return sum(r.count for r in ranges)


def limit_row_ranges(limit: int, ranges: Sequence[RowRange]) -> list[RowRange]:
    """Truncate the ranges so that they cover at most ``limit`` rows."""
    res: list[RowRange] = []
    covered = 0
    for r in ranges:
        if covered + r.count > limit:
            res.append(RowRange(r.start, limit - covered))
            break
        res.append(r)
        covered += r.count
    return simplify(res)


def intersect_row_ranges(lhs: Sequence[RowRange], rhs: Sequence[RowRange]) -> list[RowRange]:
    """Intersect two simplified range lists; the result is simplified too."""
    res: list[RowRange] = []
    left = right = 0
    while left < len(lhs) and right < len(rhs):
        al, bl = lhs[left].start, lhs[left].end
        ar, br = rhs[right].start, rhs[right].end

        if al <= br and ar <= bl:
            start, end = max(al, ar), min(bl, br)
            res.append(RowRange(start, end - start))

        if bl <= br:
            left += 1
        else:
            right += 1
    return simplify(res)


def complement_row_ranges(lhs: Sequence[RowRange], rhs: Sequence[RowRange]) -> list[RowRange]:
    """Return the rows that are in ``rhs`` but not in ``lhs``.

    Both inputs must be simplified; the result is simplified too.
    """
    remaining = list(rhs)
    res: list[RowRange] = []
    left = right = 0
    while left < len(lhs) and right < len(remaining):
        al, bl = lhs[left].start, lhs[left].end
        ar, br = remaining[right].start, remaining[right].end

        if al > br or ar > bl:
            if bl <= br:
                left += 1
            else:
                res.append(RowRange(ar, br - ar))
                right += 1
        elif al < ar and bl > br:
            right += 1
        elif al < ar and bl <= br:
            end = min(bl, br)
            remaining[right] = RowRange(end, remaining[right].count - (end - ar))
            left += 1
        elif al >= ar and bl > br:
            start = max(al, ar)
            res.append(RowRange(ar, start - ar))
            right += 1
        else:
            start, end = max(al, ar), min(bl, br)
            current = remaining[right]
            res.append(RowRange(current.start, start - current.start))
            remaining[right] = RowRange(end, br - end)
            left += 1

    res.extend(remaining[right:])
    return simplify(res)


def simplify(ranges: Iterable[RowRange]) -> list[RowRange]:
    """Sort the ranges, merge overlapping or adjacent ones and drop empty ones."""
    ordered = sorted(ranges, key=lambda r: r.start)
    if not ordered:
        return []

    merged: list[RowRange] = []
    current = ordered[0]
    for following in ordered[1:]:
        if current.end < following.start:
            merged.append(current)
            current = following
            continue
        start = min(current.start, following.start)
        count = max(current.end, following.end) - start
        if count == 0:
            continue
        current = RowRange(start, count)
    merged.append(current)

    return [r for r in merged if r.count != 0]