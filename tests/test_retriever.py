"""Tests for downloading and decompressing shipped logs (moto-backed)."""

import gzip
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest
from botocore.exceptions import IncompleteReadError

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from lognexus.config import S3Settings  # noqa: E402
from lognexus.errors import ConfigurationError, NotFoundError  # noqa: E402
from lognexus.retriever import LogRetriever, retrieve  # noqa: E402
from lognexus.retriever.downloader import local_name_for  # noqa: E402
from lognexus.shipper.storage import S3ObjectStore  # noqa: E402

BUCKET = "test-logs"


def _put_gzip(s3_client, key: str, text: str) -> None:
    s3_client.put_object(Bucket=BUCKET, Key=key, Body=gzip.compress(text.encode()))


@pytest.mark.unit
def test_local_name_for_uses_base_name():
    assert local_name_for("logs/app/2025-11-26-14-30-app.log.gz") == (
        "2025-11-26-14-30-app.log.gz.decompressed"
    )


@pytest.mark.asyncio
@pytest.mark.s3
async def test_retrieve_skips_existing_and_writes_new(s3_client_mock, s3_settings, tmp_path):
    _put_gzip(s3_client_mock, "logs/a.log.gz", "A")
    _put_gzip(s3_client_mock, "logs/b.log.gz", "B")
    existing = tmp_path / "a.log.gz.decompressed"
    existing.write_text("local copy")

    report = await retrieve("logs/", tmp_path, s3_settings, s3_client=s3_client_mock)

    assert report.listed == 2
    assert report.skipped == ["logs/a.log.gz"]
    assert report.downloaded == ["logs/b.log.gz"]
    assert existing.read_text() == "local copy"
    assert (tmp_path / "b.log.gz.decompressed").read_text() == "B"


@pytest.mark.asyncio
@pytest.mark.s3
async def test_second_run_downloads_nothing(s3_client_mock, tmp_path):
    _put_gzip(s3_client_mock, "logs/a.log.gz", "first\n")
    _put_gzip(s3_client_mock, "logs/b.log.gz", "second\n")
    counting_client = Mock(wraps=s3_client_mock)
    retriever = LogRetriever(S3ObjectStore(counting_client, BUCKET))

    first = await retriever.retrieve("logs/", tmp_path)
    assert counting_client.get_object.call_count == 2

    second = await retriever.retrieve("logs/", tmp_path)

    assert len(first.downloaded) == 2
    assert second.downloaded == []
    assert sorted(second.skipped) == ["logs/a.log.gz", "logs/b.log.gz"]
    assert counting_client.get_object.call_count == 2


@pytest.mark.asyncio
@pytest.mark.s3
async def test_empty_prefix_listing_raises_not_found(s3_client_mock, s3_settings, tmp_path):
    target = tmp_path / "out"

    with pytest.raises(NotFoundError) as excinfo:
        await retrieve("nothing/", target, s3_settings, s3_client=s3_client_mock)

    assert excinfo.value.prefix == "nothing/"
    assert list(target.iterdir()) == []


@pytest.mark.asyncio
@pytest.mark.s3
async def test_corrupt_object_is_skipped(s3_client_mock, s3_settings, tmp_path):
    _put_gzip(s3_client_mock, "logs/a.log.gz", "A")
    s3_client_mock.put_object(Bucket=BUCKET, Key="logs/bad.log.gz", Body=b"not gzip data")
    _put_gzip(s3_client_mock, "logs/c.log.gz", "C")

    report = await retrieve("logs/", tmp_path, s3_settings, s3_client=s3_client_mock)

    assert report.failed == ["logs/bad.log.gz"]
    assert sorted(report.downloaded) == ["logs/a.log.gz", "logs/c.log.gz"]
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        "a.log.gz.decompressed",
        "c.log.gz.decompressed",
    ]


@pytest.mark.asyncio
@pytest.mark.s3
async def test_empty_and_truncated_objects_fail(s3_client_mock, s3_settings, tmp_path):
    full = gzip.compress(b"x" * 4096)
    s3_client_mock.put_object(Bucket=BUCKET, Key="logs/empty.log.gz", Body=b"")
    s3_client_mock.put_object(Bucket=BUCKET, Key="logs/cut.log.gz", Body=full[: len(full) // 2])

    report = await retrieve("logs/", tmp_path, s3_settings, s3_client=s3_client_mock)

    assert sorted(report.failed) == ["logs/cut.log.gz", "logs/empty.log.gz"]
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
@pytest.mark.s3
async def test_concatenated_gzip_members_are_joined(s3_client_mock, s3_settings, tmp_path):
    body = gzip.compress(b"part one\n") + gzip.compress(b"part two\n")
    s3_client_mock.put_object(Bucket=BUCKET, Key="logs/joined.log.gz", Body=body)

    await retrieve("logs/", tmp_path, s3_settings, s3_client=s3_client_mock)

    assert (tmp_path / "joined.log.gz.decompressed").read_bytes() == b"part one\npart two\n"


@pytest.mark.asyncio
@pytest.mark.s3
async def test_large_object_streams_in_chunks(s3_client_mock, tmp_path):
    lines = "".join(f"line {i}\n" for i in range(20000))
    _put_gzip(s3_client_mock, "logs/big.log.gz", lines)
    retriever = LogRetriever(S3ObjectStore(s3_client_mock, BUCKET), chunk_size=1024)

    report = await retriever.retrieve("logs/", tmp_path)

    assert report.downloaded == ["logs/big.log.gz"]
    assert (tmp_path / "big.log.gz.decompressed").read_text() == lines


@pytest.mark.asyncio
@pytest.mark.s3
async def test_directory_markers_are_ignored(s3_client_mock, s3_settings, tmp_path):
    s3_client_mock.put_object(Bucket=BUCKET, Key="logs/", Body=b"")
    _put_gzip(s3_client_mock, "logs/a.log.gz", "A")

    report = await retrieve("logs/", tmp_path, s3_settings, s3_client=s3_client_mock)

    assert report.listed == 1
    assert report.downloaded == ["logs/a.log.gz"]


@pytest.mark.asyncio
@pytest.mark.s3
async def test_local_dir_is_created(s3_client_mock, s3_settings, tmp_path):
    _put_gzip(s3_client_mock, "logs/a.log.gz", "A")
    target = tmp_path / "nested" / "dir"

    await retrieve("logs/", target, s3_settings, s3_client=s3_client_mock)

    assert (target / "a.log.gz.decompressed").read_text() == "A"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_prefix_is_required(memory_store, tmp_path):
    with pytest.raises(ValueError):
        await LogRetriever(memory_store).retrieve("", tmp_path)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_configuration_fails_before_any_request(monkeypatch, tmp_path):
    for name in ("AWS_S3_BUCKET_NAME", "AWS_S3_ACCESS_KEY_ID", "AWS_S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(ConfigurationError, match="bucket"):
        await retrieve("logs/", tmp_path)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_region_is_rejected(tmp_path):
    settings = S3Settings(
        bucket=BUCKET, access_key_id="id", secret_access_key="secret", region=""
    )

    with pytest.raises(ConfigurationError, match="region"):
        await retrieve("logs/", tmp_path, settings)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_retriever_reads_what_the_shipper_wrote(memory_store, tmp_path):
    memory_store.objects["logs/app/x.log.gz"] = gzip.compress(b'{"event": "hi"}\n')

    report = await LogRetriever(memory_store).retrieve("logs/app/", tmp_path)

    assert report.downloaded == ["logs/app/x.log.gz"]
    assert (tmp_path / "x.log.gz.decompressed").read_bytes() == b'{"event": "hi"}\n'


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unexpected_object_error_does_not_stop_the_run(memory_store, tmp_path):
    memory_store.objects["p/a.log.gz"] = gzip.compress(b"A")
    memory_store.objects["p/b.log.gz"] = gzip.compress(b"B")
    stream_object = memory_store.iter_chunks

    def iter_chunks(key: str, chunk_size: int = 1024):
        if key == "p/a.log.gz":
            raise IncompleteReadError(actual_bytes=3, expected_bytes=10)
        return stream_object(key, chunk_size)

    memory_store.iter_chunks = iter_chunks

    report = await LogRetriever(memory_store).retrieve("p/", tmp_path)

    assert report.failed == ["p/a.log.gz"]
    assert report.downloaded == ["p/b.log.gz"]
    assert [p.name for p in tmp_path.iterdir()] == ["b.log.gz.decompressed"]
    assert (tmp_path / "b.log.gz.decompressed").read_bytes() == b"B"
