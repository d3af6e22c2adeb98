"""Block and stream layout in object storage: paths, names and external label hashes."""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

META_FILE = "meta.pb"
STREAM_FILE = "stream.pb"

_MASK64 = (1 << 64) - 1

_P1 = 11400714785074694791
_P2 = 14029467366897019727
_P3 = 1609587929392839161
_P4 = 9650029242287828579
_P5 = 2870177450012600261


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _MASK64


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _P2) & _MASK64
    acc = _rotl(acc, 31)
    return (acc * _P1) & _MASK64


def _merge_round(acc: int, value: int) -> int:
    acc ^= _round(0, value)
    return (acc * _P1 + _P4) & _MASK64


def _xxh64(data: bytes, seed: int = 0) -> int:
    length = len(data)
    pos = 0
    if length >= 32:
        v1 = (seed + _P1 + _P2) & _MASK64
        v2 = (seed + _P2) & _MASK64
        v3 = seed & _MASK64
        v4 = (seed - _P1) & _MASK64
        limit = length - 32
        while pos <= limit:
            v1 = _round(v1, int.from_bytes(data[pos:pos + 8], "little"))
            v2 = _round(v2, int.from_bytes(data[pos + 8:pos + 16], "little"))
            v3 = _round(v3, int.from_bytes(data[pos + 16:pos + 24], "little"))
            v4 = _round(v4, int.from_bytes(data[pos + 24:pos + 32], "little"))
            pos += 32
        h = (_rotl(v1, 1) + _rotl(v2, 7) + _rotl(v3, 12) + _rotl(v4, 18)) & _MASK64
        for v in (v1, v2, v3, v4):
            h = _merge_round(h, v)
    else:
        h = (seed + _P5) & _MASK64

    h = (h + length) & _MASK64

    while pos + 8 <= length:
        h ^= _round(0, int.from_bytes(data[pos:pos + 8], "little"))
        h = (_rotl(h, 27) * _P1 + _P4) & _MASK64
        pos += 8
    if pos + 4 <= length:
        h ^= (int.from_bytes(data[pos:pos + 4], "little") * _P1) & _MASK64
        h = (_rotl(h, 23) * _P2 + _P3) & _MASK64
        pos += 4
    for byte in data[pos:]:
        h ^= (byte * _P5) & _MASK64
        h = (_rotl(h, 11) * _P1) & _MASK64

    h ^= h >> 33
    h = (h * _P2) & _MASK64
    h ^= h >> 29
    h = (h * _P3) & _MASK64
    h ^= h >> 32
    return h


def external_labels_hash(labels: Mapping[str, str]) -> int:
    """Return the 64-bit hash identifying a set of external labels; 0 when empty."""
    if not labels:
        return 0
    payload = "".join(key + labels[key] for key in sorted(labels))
    return _xxh64(payload.encode("utf-8"))


@dataclass
class StreamDescriptor:
    """Describes a stream of Parquet blocks sharing the same external labels."""

    external_labels: dict[str, str] = field(default_factory=dict)


@dataclass
class Meta:
    """Metadata of one converted day block."""

    version: int = 0
    date: Optional[dt.date] = None
    mint: int = 0
    maxt: int = 0
    shards: int = 0
    columns_for_name: dict[str, list[str]] = field(default_factory=dict)
    converted_from_blids: set[str] = field(default_factory=set)


@dataclass
class ParquetBlocksStream(StreamDescriptor):
    """A stream descriptor together with the Parquet block metas found for it."""

    metas: list[Meta] = field(default_factory=list)
    discovered_days: set[dt.date] = field(default_factory=set)


@dataclass
class TSDBBlocksStream(StreamDescriptor):
    """A stream descriptor together with the TSDB block metas found for it."""

    metas: list[Any] = field(default_factory=list)
    discovered_days: set[dt.date] = field(default_factory=set)


_BLOCK_PATH_RE = re.compile(
    r"((?P<hash>[0-9]{1,64})/)?(?P<year>[0-9]{4})-(?P<month>[0-9]{1,2})-(?P<day>[0-9]{1,2})/(?P<file>[^/]+)"
)
_STREAM_PATH_RE = re.compile(r"(?P<hash>[0-9]{1,64})/" + re.escape(STREAM_FILE))
_BLOCK_NAME_RE = re.compile(r"([0-9]{1,4})/([0-9]{1,2})/([0-9]{1,2})")


def _parse_hash(text: Optional[str]) -> int:
    if not text:
        return 0
    value = int(text)
    return value if value <= _MASK64 else 0


def split_stream_path(path: str) -> Optional[int]:
    """Return the external labels hash of a stream descriptor path, or None if it is not one."""
    match = _STREAM_PATH_RE.fullmatch(path)
    if match is None:
        return None
    return _parse_hash(match.group("hash"))


def split_block_path(path: str) -> Optional[tuple[dt.date, str, int]]:
    """Split a block file path into (date, file name, external labels hash), or None."""
    match = _BLOCK_PATH_RE.fullmatch(path)
    if match is None:
        return None
    month = int(match.group("month"))
    if month == 0:
        return None
    try:
        day = dt.date(int(match.group("year")), month, int(match.group("day")))
    except ValueError:
        return None
    return day, match.group("file"), _parse_hash(match.group("hash"))


def day_from_block_name(name: str) -> dt.datetime:
    """Parse a "YYYY/MM/DD" block name into midnight UTC of that day."""
    match = _BLOCK_NAME_RE.match(name)
    if match is None:
        raise ValueError(f"unable to read timestamp from block name: {name!r}")
    year, month, day = (int(part) for part in match.groups())
    try:
        return dt.datetime(year, month, day, tzinfo=dt.timezone.utc)
    except ValueError as exc:
        raise ValueError(f"unable to read timestamp from block name: {exc}") from exc


def block_name_for_day(day: dt.date) -> str:
    """Return the "YYYY/MM/DD" block name of a day."""
    return f"{day.year:04d}/{day.month:02d}/{day.day:02d}"


def labels_pfile_name_for_shard(ext_labels_hash: int, day: dt.date, shard: int) -> str:
    return f"{ext_labels_hash}/{day.isoformat()}/{shard}.labels.parquet"


def chunks_pfile_name_for_shard(ext_labels_hash: int, day: dt.date, shard: int) -> str:
    return f"{ext_labels_hash}/{day.isoformat()}/{shard}.chunks.parquet"


def meta_file_name_for_block(day: dt.date, ext_labels_hash: int) -> str:
    if ext_labels_hash == 0:
        return f"{day.isoformat()}/{META_FILE}"
    return f"{ext_labels_hash}/{day.isoformat()}/{META_FILE}"


def stream_descriptor_file_name_for_block(ext_labels_hash: int) -> str:
    return f"{ext_labels_hash}/{STREAM_FILE}"