"""In-process counters and gauges for object storage access and query scans."""

from __future__ import annotations

import threading
import time
from typing import Iterator, Union

WHAT_SYNCER = "syncer"
WHAT_DISCOVERER = "discoverer"
WHAT_TSDB_DISCOVERER = "tsdb_discoverer"

SCAN_REGEX = "regex"
SCAN_EQUAL = "equal"

METHOD_SELECT = "select"
METHOD_LABEL_NAMES = "label_names"
METHOD_LABEL_VALUES = "label_values"


class AlreadyRegisteredError(ValueError):
    """A metric with the same name is already registered."""


class RegistrationError(Exception):
    """One or more metrics could not be registered."""

    def __init__(self, errors: list[Exception]):
        self.errors = errors
        super().__init__("; ".join(str(e) for e in errors))


class Counter:
    """A monotonically increasing value."""

    def __init__(self, name: str = "", help: str = ""):
        self.name = name
        self.help = help
        self._value = 0.0
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def add(self, amount: float) -> None:
        if amount < 0:
            raise ValueError("counter cannot decrease in value")
        with self._lock:
            self._value += amount

    def inc(self) -> None:
        self.add(1)


class Gauge:
    """A value that can go up and down."""

    def __init__(self, name: str = "", help: str = ""):
        self.name = name
        self.help = help
        self._value = 0.0
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def add(self, amount: float) -> None:
        with self._lock:
            self._value += amount

    def inc(self) -> None:
        self.add(1)

    def set_to_current_time(self) -> None:
        self.set(time.time())


class _MetricVec:
    _child_type: type

    def __init__(self, name: str, help: str, label_names: list[str]):
        self.name = name
        self.help = help
        self.label_names = tuple(label_names)
        self._children: dict[tuple[str, ...], object] = {}
        self._lock = threading.Lock()

    def _child(self, args: tuple[str, ...]):
        if len(args) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(args)}"
            )
        with self._lock:
            child = self._children.get(args)
            if child is None:
                child = self._child_type(self.name, self.help)
                self._children[args] = child
            return child


class CounterVec(_MetricVec):
    """Counters partitioned by label values."""

    _child_type = Counter

    def labels(self, *args: str) -> Counter:
        return self._child(args)


class GaugeVec(_MetricVec):
    """Gauges partitioned by label values."""

    _child_type = Gauge

    def labels(self, *args: str) -> Gauge:
        return self._child(args)


Metric = Union[Counter, Gauge, CounterVec, GaugeVec]


class Registry:
    """A collection of metrics with unique names."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def register(self, metric: Metric) -> None:
        with self._lock:
            if metric.name in self._metrics:
                raise AlreadyRegisteredError(f"metric {metric.name!r} is already registered")
            self._metrics[metric.name] = metric

    def get(self, name: str) -> Metric:
        with self._lock:
            return self._metrics[name]

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._metrics

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._metrics))


def _register_all(registry: Registry, metrics: list[Metric]) -> None:
    errors: list[Exception] = []
    for metric in metrics:
        try:
            registry.register(metric)
        except AlreadyRegisteredError as exc:
            errors.append(exc)
    if errors:
        raise RegistrationError(errors)


pages_scanned = CounterVec("pages_scanned_total", "Pages read during scans", ["column", "scan", "method"])
pages_read = CounterVec("pages_read_total", "Pages read during parquet operations", ["column", "method"])
pages_read_size = CounterVec(
    "pages_read_size_bytes_total",
    "Cumulative size of pages in bytes that were read during parquet operations",
    ["column", "method"],
)
column_materialized = CounterVec(
    "column_materialized_total", "How often we had to materialize a column during queries", ["column", "method"]
)
rows_materialized = CounterVec(
    "rows_materialized_total", "How many rows we had to materialize for queries", ["column", "method"]
)

bucket_requests = Counter("bucket_requests_total", "Total amount of requests to object storage")
sync_min_time = GaugeVec("sync_min_time_unix_seconds", "The minimum timestamp that syncer knows", ["what"])
sync_max_time = GaugeVec("sync_max_time_unix_seconds", "The maximum timestamp that syncer knows", ["what"])
sync_last_successful_time = GaugeVec(
    "sync_last_successful_update_time_unix_seconds", "The timestamp we last synced successfully", ["what"]
)
sync_corrupted_label_file = Counter(
    "sync_corrupted_label_parquet_files_total", "The amount of corrupted label parquet files we encountered"
)


def register_search_metrics(registry: Registry) -> None:
    """Register the query scan metrics; raises RegistrationError listing every failure."""
    _register_all(registry, [pages_scanned, pages_read, pages_read_size, column_materialized, rows_materialized])


def register_locate_metrics(registry: Registry) -> None:
    """Initialise and register the discovery and sync metrics."""
    bucket_requests.add(0)
    for what in (WHAT_SYNCER, WHAT_DISCOVERER, WHAT_TSDB_DISCOVERER):
        sync_min_time.labels(what).set(0)
        sync_max_time.labels(what).set(0)
        sync_last_successful_time.labels(what).set(0)
    _register_all(
        registry,
        [bucket_requests, sync_min_time, sync_max_time, sync_last_successful_time, sync_corrupted_label_file],
    )