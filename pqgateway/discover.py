"""Discovery of TSDB blocks in object storage that are candidates for conversion."""

from __future__ import annotations

import datetime as dt
import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from pqgateway.block import TSDBBlocksStream, external_labels_hash
from pqgateway.bucket import FilesystemBucket
from pqgateway.constraint import Matcher
from pqgateway.metrics import (
    WHAT_DISCOVERER,
    sync_last_successful_time,
    sync_max_time,
    sync_min_time,
)

META_FILENAME = "meta.json"
DELETION_MARK_FILENAME = "deletion-mark.json"
RES_LEVEL_0 = 0

_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)


class DiscoveryError(RuntimeError):
    """Blocks in the bucket could not be discovered."""


def _utc_day(millis: int) -> dt.date:
    return (_EPOCH + dt.timedelta(milliseconds=millis)).date()


def split_into_dates(mint: int, maxt: int) -> list[dt.date]:
    """Return every UTC day touched by the millisecond time range ``[mint, maxt]``."""
    if maxt < mint:
        return []
    first, last = _utc_day(mint), _utc_day(maxt)
    return [first + dt.timedelta(days=i) for i in range((last - first).days + 1)]


@dataclass
class TSDBMeta:
    """The parts of a TSDB block's meta.json that discovery relies on."""

    ulid: str = ""
    min_time: int = 0
    max_time: int = 0
    num_chunks: int = 0
    labels: dict[str, str] = field(default_factory=dict)
    resolution: int = RES_LEVEL_0

    @classmethod
    def from_json(cls, data: Union[str, bytes, bytearray]) -> TSDBMeta:
        """Parse a meta.json document; raises ValueError if it is malformed."""
        try:
            doc: Any = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid meta json: {exc}") from exc
        if not isinstance(doc, Mapping):
            raise ValueError("invalid meta json: expected an object")
        stats = doc.get("stats") or {}
        thanos = doc.get("thanos") or {}
        downsample = thanos.get("downsample") or {}
        labels = thanos.get("labels") or {}
        try:
            return cls(
                ulid=str(doc.get("ulid", "")),
                min_time=int(doc.get("minTime", 0)),
                max_time=int(doc.get("maxTime", 0)),
                num_chunks=int(stats.get("numChunks", 0)),
                labels={str(k): str(v) for k, v in labels.items()},
                resolution=int(downsample.get("resolution", RES_LEVEL_0)),
            )
        except (TypeError, ValueError, AttributeError) as exc:
            raise ValueError(f"invalid meta json: {exc}") from exc


class TSDBDiscoverer:
    """Keeps track of the complete, raw-resolution TSDB blocks in a bucket."""

    def __init__(
        self,
        bucket: FilesystemBucket,
        concurrency: int = 1,
        external_label_matchers: Sequence[Matcher] = (),
        min_block_age: dt.timedelta = dt.timedelta(0),
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self.bucket = bucket
        self.concurrency = concurrency
        self.external_label_matchers = list(external_label_matchers)
        self.min_block_age = min_block_age
        self._lock = threading.Lock()
        self._metas: dict[str, TSDBMeta] = {}

    def streams(self) -> dict[int, TSDBBlocksStream]:
        """Group the known blocks into streams keyed by their external labels hash."""
        out: dict[int, TSDBBlocksStream] = {}
        with self._lock:
            metas = list(self._metas.values())
        for meta in metas:
            key = external_labels_hash(meta.labels)
            stream = out.get(key)
            if stream is None:
                stream = TSDBBlocksStream(external_labels=dict(meta.labels))
                out[key] = stream
            stream.metas.append(meta)
            stream.discovered_days.update(split_into_dates(meta.min_time, meta.max_time))
        return out

    def _read_meta_file(self, block_id: str) -> TSDBMeta:
        name = f"{block_id}/{META_FILENAME}"
        try:
            self.bucket.attributes(name)
        except OSError as exc:
            raise DiscoveryError(f"unable to attr {name}: {exc}") from exc
        try:
            with self.bucket.get(name) as reader:
                data = reader.read()
        except OSError as exc:
            raise DiscoveryError(f"unable to get {name}: {exc}") from exc
        try:
            return TSDBMeta.from_json(data)
        except ValueError as exc:
            raise DiscoveryError(f"unable to decode {name}: {exc}") from exc

    def _matches_external_labels(self, meta: TSDBMeta) -> bool:
        return all(m.matches(meta.labels.get(m.name, "")) for m in self.external_label_matchers)

    def discover(self) -> None:
        """Scan the bucket and update the set of known blocks."""
        files: dict[str, list[str]] = {}
        for name in self.bucket.iter("", recursive=True):
            parts = name.split("/")
            if len(parts) != 2:
                continue
            block_id, file = parts
            files.setdefault(block_id, []).append(file)

        available = {
            block_id
            for block_id, names in files.items()
            if META_FILENAME in names and DELETION_MARK_FILENAME not in names
        }
        with self._lock:
            known = set(self._metas)
        to_read = sorted(available - known)

        with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
            futures = {block_id: pool.submit(self._read_meta_file, block_id) for block_id in to_read}
            new_metas: dict[str, TSDBMeta] = {}
            for block_id, future in futures.items():
                try:
                    meta = future.result()
                except DiscoveryError as exc:
                    for pending in futures.values():
                        pending.cancel()
                    raise DiscoveryError(
                        f"unable to read meta: unable to read meta file for {block_id!r}: {exc}"
                    ) from exc
                new_metas[meta.ulid] = meta

        new_metas = {
            k: v
            for k, v in new_metas.items()
            if self._matches_external_labels(v) and v.resolution == RES_LEVEL_0 and v.num_chunks != 0
        }

        with self._lock:
            self._metas.update(new_metas)
            cutoff_ms = int((time.time() - self.min_block_age.total_seconds()) * 1000)
            self._metas = {
                k: v for k, v in self._metas.items() if v.max_time <= cutoff_ms and k in available
            }
            if self._metas:
                sync_min_time.labels(WHAT_DISCOVERER).set(min(v.min_time for v in self._metas.values()))
                sync_max_time.labels(WHAT_DISCOVERER).set(max(v.max_time for v in self._metas.values()))
            sync_last_successful_time.labels(WHAT_DISCOVERER).set_to_current_time()