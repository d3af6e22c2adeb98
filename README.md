# pqgateway

Building blocks for serving time series stored as Parquet blocks in object
storage: the object layout of blocks and streams, row-range arithmetic,
label-matcher constraints evaluated over in-memory row groups, a local
directory bucket and discovery of TSDB blocks. The package has no runtime
dependencies.

## Modules

- `pqgateway.block` – object layout.
  - `external_labels_hash(labels)` returns the 64-bit hash of a label mapping
    (0 for no labels).
  - `labels_pfile_name_for_shard`, `chunks_pfile_name_for_shard`,
    `meta_file_name_for_block` and `stream_descriptor_file_name_for_block`
    build object names; `block_name_for_day` gives `"YYYY/MM/DD"` and
    `day_from_block_name` parses it back to midnight UTC.
  - `split_stream_path(path)` returns the hash of a `<hash>/stream.pb` path or
    `None`; `split_block_path(path)` returns `(date, file, hash)` or `None`.
  - Dataclasses `StreamDescriptor`, `Meta`, `ParquetBlocksStream` and
    `TSDBBlocksStream`.
- `pqgateway.schema` – column names (`label_name_to_column`,
  `column_to_label_name`, `chunk_column_name`) and `chunk_column_index(meta,
  when)`, which maps a time to one of the three eight-hour chunk columns of a
  day.
- `pqgateway.rowrange` – `RowRange(start, count)` for half-open row ranges,
  with `intersect`, `intersection`, `simplify`, `intersect_row_ranges`,
  `complement_row_ranges`, `limit_row_ranges` and `total_rows`.
- `pqgateway.partitioner` – `GapBasedPartitioner(max_range_size,
  max_gap_size).partition(length, rng)` merges sorted byte ranges separated by
  small gaps into `Part`s.
- `pqgateway.pages` – in-memory row groups of optional, dictionary encoded
  string columns: `build_row_group(rows, columns, page_size,
  sorting_columns)`, `RowGroup`, `ColumnChunk`, `Page` and `SymbolTable`.
  Missing values, `None` and `""` are stored as null.
- `pqgateway.constraint` – `Matcher(MatchType, name, value)` with fully
  anchored regular expressions; `equal`, `regex` and `not_` constraints;
  `matchers_to_constraints`, `initialize` and `filter_row_group`, which
  returns the row ranges of a row group satisfying all constraints. Null
  values count as the empty string.
- `pqgateway.external` – `match_external_labels` consumes matchers that target
  external labels (returning `None` when nothing can match),
  `external_label_values`, `external_label_names` and `sort_unique`.
- `pqgateway.bucket` – `FilesystemBucket(root)` stores objects as files, with
  `iter`, `get`, `get_range`, `attributes`, `upload` and `delete`.
  `BucketReaderAt.read_at(size, offset)` reads exact ranges;
  `StreamingRangeReader` reads one range sequentially and raises
  `NonSequentialReadError` on any other offset.
- `pqgateway.discover` – `TSDBDiscoverer(bucket, concurrency,
  external_label_matchers, min_block_age)` scans `<id>/meta.json` objects,
  skipping blocks with a `deletion-mark.json`, downsampled blocks, blocks
  without chunks, blocks not matching the external label matchers and blocks
  newer than `min_block_age`. `streams()` groups the known blocks by external
  labels hash. `TSDBMeta.from_json` and `split_into_dates` are available too.
- `pqgateway.metrics` – thread-safe `Counter`, `Gauge`, `CounterVec`,
  `GaugeVec` and `Registry`; `register_search_metrics` and
  `register_locate_metrics` register the module's metrics and raise
  `RegistrationError` if names are already taken.
- `pqgateway.version` – `get_version`, `get_revision`, `get_branch`,
  `get_build_user`, `get_build_date`, `user_agent`, `info`, `build_context`
  and `print_version`.

## Install

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

```python
from pqgateway.block import external_labels_hash, split_block_path
from pqgateway.rowrange import RowRange, intersect_row_ranges

h = external_labels_hash({"foo": "bar"})
day, file, ext_hash = split_block_path(f"{h}/2024-11-23/meta.pb")
# day == datetime.date(2024, 11, 23), file == "meta.pb", ext_hash == h

intersect_row_ranges([RowRange(0, 4)], [RowRange(2, 6)])
# [RowRange(start=2, count=2)]
```

```python
from pqgateway.constraint import equal, filter_row_group, initialize
from pqgateway.pages import build_row_group

rg = build_row_group([{"A": "1"}, {"A": "7"}, {"A": "7"}], ["A"])
constraints = [equal("A", "7")]
initialize(rg, constraints)
filter_row_group(rg, constraints)
# [RowRange(start=1, count=2)]
```

```python
from pqgateway.bucket import FilesystemBucket
from pqgateway.constraint import Matcher, MatchType
from pqgateway.discover import TSDBDiscoverer

bucket = FilesystemBucket("/var/lib/blocks")
discoverer = TSDBDiscoverer(
    bucket, external_label_matchers=[Matcher(MatchType.NOT_EQUAL, "foo", "bar")]
)
discoverer.discover()
for ext_hash, stream in discoverer.streams().items():
    print(ext_hash, len(stream.metas), sorted(stream.discovered_days))
```

## What it does not do

- It does not read or write Parquet files. Constraints are evaluated over the
  in-memory row groups of `pqgateway.pages`.
- It does not materialise series, chunks, label names or label values, and
  has no query engine.
- It does not discover or load converted Parquet block streams, and does not
  convert TSDB blocks.
- The only storage backend is a local directory; there is no remote object
  storage client.
- It has no command-line program and no server; metrics are kept in process
  and not exported.