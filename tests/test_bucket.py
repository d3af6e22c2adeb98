import io

import pytest

from pqgateway.bucket import (
    BucketReaderAt,
    FilesystemBucket,
    NonSequentialReadError,
    StreamingRangeReader,
)
from pqgateway.metrics import bucket_requests

DATA = b"0123456789abcdefghij"


@pytest.fixture
def bucket(tmp_path):
    bkt = FilesystemBucket(tmp_path / "bkt")
    bkt.upload("a/b/obj", DATA)
    bkt.upload("a/other", b"x")
    bkt.upload("top", io.BytesIO(b"stream"))
    return bkt


def test_upload_and_get_round_trip(bucket):
    with bucket.get("a/b/obj") as f:
        assert f.read() == DATA
    with bucket.get("top") as f:
        assert f.read() == b"stream"


def test_get_missing_raises(bucket):
    with pytest.raises(FileNotFoundError):
        bucket.get("nope")
    with pytest.raises(FileNotFoundError):
        bucket.attributes("nope")


def test_invalid_name_rejected(bucket):
    with pytest.raises(ValueError):
        bucket.get("../escape")


def test_iter_recursive(bucket):
    assert list(bucket.iter("", recursive=True)) == ["a/b/obj", "a/other", "top"]
    assert list(bucket.iter("a", recursive=True)) == ["a/b/obj", "a/other"]


def test_iter_non_recursive_marks_directories(bucket):
    assert list(bucket.iter()) == ["a/", "top"]
    assert list(bucket.iter("a/")) == ["a/b/", "a/other"]
    assert list(bucket.iter("missing")) == []


def test_get_range(bucket):
    with bucket.get_range("a/b/obj", 3, 4) as f:
        assert f.read() == DATA[3:7]
    with bucket.get_range("a/b/obj", 5, -1) as f:
        assert f.read() == DATA[5:]
    with pytest.raises(ValueError):
        bucket.get_range("a/b/obj", -1, 2)


def test_attributes_size(bucket):
    assert bucket.attributes("a/b/obj").size == len(DATA)


def test_delete_prunes_empty_directories(bucket):
    bucket.delete("a/b/obj")
    assert list(bucket.iter("", recursive=True)) == ["a/other", "top"]
    assert list(bucket.iter("a/")) == ["a/other"]
    with pytest.raises(FileNotFoundError):
        bucket.delete("a/b/obj")


def test_delete_directory(bucket):
    bucket.delete("a")
    assert list(bucket.iter("", recursive=True)) == ["top"]


def test_read_at(bucket):
    reader = BucketReaderAt(bucket, "a/b/obj")
    before = bucket_requests.value
    assert reader.read_at(5, 2) == DATA[2:7]
    assert bucket_requests.value == before + 1


def test_read_at_short_read_raises(bucket):
    reader = BucketReaderAt(bucket, "a/b/obj")
    with pytest.raises(EOFError):
        reader.read_at(10, len(DATA) - 3)


def test_read_at_missing_object(bucket):
    with pytest.raises(OSError):
        BucketReaderAt(bucket, "nope").read_at(1, 0)


def test_streaming_range_sequential(bucket):
    reader = BucketReaderAt(bucket, "a/b/obj").streaming_range(4, 12)
    assert isinstance(reader, StreamingRangeReader)
    with reader:
        first = reader.read_at(3, 4)
        second = reader.read_at(10, 7)
        rest = reader.read_at(4, 12)
    assert first + second == DATA[4:12]
    assert rest == b""


def test_streaming_range_rejects_non_sequential(bucket):
    with BucketReaderAt(bucket, "a/b/obj").streaming_range(0, 10) as reader:
        assert reader.read_at(2, 0) == DATA[:2]
        with pytest.raises(NonSequentialReadError):
            reader.read_at(2, 5)


def test_streaming_range_must_start_at_min_offset(bucket):
    with BucketReaderAt(bucket, "a/b/obj").streaming_range(2, 6) as reader:
        with pytest.raises(NonSequentialReadError):
            reader.read_at(2, 0)