"""Coalescing of byte ranges into fewer, larger reads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

MAX_UINT64 = (1 << 64) - 1


@dataclass(frozen=True)
class Part:
    """A byte range ``[start, end)`` covering the elements ``elem_rng[0]`` to ``elem_rng[1]``."""

    start: int
    end: int
    elem_rng: tuple[int, int]


@dataclass(frozen=True)
class GapBasedPartitioner:
    """Merges ranges separated by small gaps, up to a maximum range size."""

    max_range_size: int = MAX_UINT64
    max_gap_size: int = MAX_UINT64

    def partition(self, length: int, rng: Callable[[int], tuple[int, int]]) -> list[Part]:
        """Partition ``length`` ranges, sorted by lower bound, into parts covering them all."""
        parts: list[Part] = []
        k = 0
        while k < length:
            first = k
            k += 1
            start, end = rng(first)

            while k < length:
                s, e = rng(k)
                if (e - start) & MAX_UINT64 > self.max_range_size:
                    break
                if self.max_gap_size != MAX_UINT64 and (end + self.max_gap_size) & MAX_UINT64 < s:
                    break
                end = max(end, e)
                k += 1

            parts.append(Part(start, end, (first, k)))
        return parts