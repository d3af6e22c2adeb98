"""Object storage on a local directory and positional readers over its objects."""

from __future__ import annotations

import datetime as dt
import io
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from pqgateway.metrics import bucket_requests


class NonSequentialReadError(RuntimeError):
    """A streaming reader was asked for an offset other than the next one."""


@dataclass(frozen=True)
class ObjectAttributes:
    """Size and modification time of a stored object."""

    size: int
    last_modified: dt.datetime


class FilesystemBucket:
    """A bucket whose objects are files below a root directory."""

    def __init__(self, root: Union[str, os.PathLike]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, name: str) -> Path:
        parts = [p for p in name.split("/") if p]
        if name.startswith("/") or any(p in (".", "..") for p in parts):
            raise ValueError(f"invalid object name {name!r}")
        return self.root.joinpath(*parts)

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def iter(self, prefix: str = "", recursive: bool = False) -> Iterator[str]:
        """Yield object names below a directory prefix, in sorted order.

        Without ``recursive`` directories are yielded with a trailing slash.
        """
        base = self._resolve(prefix) if prefix.strip("/") else self.root
        if not base.is_dir():
            return
        if recursive:
            names = []
            for dirpath, _, filenames in os.walk(base):
                names.extend(self._relative(Path(dirpath) / f) for f in filenames)
            yield from sorted(names)
            return
        for entry in sorted(base.iterdir()):
            name = self._relative(entry)
            yield name + "/" if entry.is_dir() else name

    def get(self, name: str) -> BinaryIO:
        """Open an object for reading; raises FileNotFoundError if it does not exist."""
        path = self._resolve(name)
        if not path.is_file():
            raise FileNotFoundError(f"object {name!r} not found")
        return path.open("rb")

    def get_range(self, name: str, offset: int, length: int) -> BinaryIO:
        """Open ``length`` bytes of an object starting at ``offset``; a negative length reads to the end."""
        if offset < 0:
            raise ValueError(f"offset must not be negative, got {offset}")
        with self.get(name) as f:
            size = os.fstat(f.fileno()).st_size
            if offset > size:
                raise ValueError(f"offset {offset} is beyond object {name!r} of size {size}")
            f.seek(offset)
            data = f.read() if length < 0 else f.read(length)
        return io.BytesIO(data)

    def attributes(self, name: str) -> ObjectAttributes:
        path = self._resolve(name)
        if not path.is_file():
            raise FileNotFoundError(f"object {name!r} not found")
        stat = path.stat()
        return ObjectAttributes(
            size=stat.st_size,
            last_modified=dt.datetime.fromtimestamp(stat.st_mtime, tz=dt.timezone.utc),
        )

    def upload(self, name: str, data: Union[bytes, bytearray, BinaryIO]) -> None:
        """Store an object from bytes or a binary file object, replacing any previous one."""
        path = self._resolve(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as f:
            if isinstance(data, (bytes, bytearray)):
                f.write(data)
            else:
                shutil.copyfileobj(data, f)

    def delete(self, name: str) -> None:
        """Remove an object, or a whole directory of objects, and prune emptied directories."""
        path = self._resolve(name)
        if path.is_dir() and path != self.root:
            shutil.rmtree(path)
        elif path.is_file():
            path.unlink()
        else:
            raise FileNotFoundError(f"object {name!r} not found")
        parent = path.parent
        while parent != self.root and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
            parent = parent.parent


class BucketReaderAt:
    """Reads byte ranges of one object by position."""

    def __init__(self, bucket: FilesystemBucket, name: str):
        self.bucket = bucket
        self.name = name

    def read_at(self, size: int, offset: int) -> bytes:
        """Return exactly ``size`` bytes at ``offset``; raises EOFError if the object is shorter."""
        bucket_requests.inc()
        try:
            reader = self.bucket.get_range(self.name, offset, size)
        except (OSError, ValueError) as exc:
            raise OSError(f"unable to read range for {self.name}: {exc}") from exc
        with reader:
            data = reader.read(size)
        if len(data) < size:
            raise EOFError(f"short read of {self.name}: got {len(data)} of {size} bytes at offset {offset}")
        return data

    def streaming_range(self, min_offset: int, max_offset: int) -> StreamingRangeReader:
        return StreamingRangeReader(self.bucket, self.name, min_offset, max_offset)


class StreamingRangeReader:
    """Reads a byte range of an object in one stream; offsets must follow each other."""

    def __init__(self, bucket: FilesystemBucket, name: str, min_offset: int, max_offset: int):
        self.bucket = bucket
        self.name = name
        self.min_offset = min_offset
        self.max_offset = max_offset
        self._stream: Optional[BinaryIO] = None
        self._offset = min_offset

    def read_at(self, size: int, offset: int) -> bytes:
        """Return up to ``size`` bytes at ``offset``; an empty result means the range is exhausted."""
        if self._stream is None:
            try:
                self._stream = self.bucket.get_range(self.name, self.min_offset, self.max_offset - self.min_offset)
            except (OSError, ValueError) as exc:
                raise OSError(f"unable to open streaming range: {exc}") from exc
            self._offset = self.min_offset
        if offset != self._offset:
            raise NonSequentialReadError(
                f"offsets should only be increasing. non-sequential read at offset {offset}, expected {self._offset}"
            )
        data = self._stream.read(size)
        self._offset += len(data)
        return data

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()

    def __enter__(self) -> StreamingRangeReader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()