"""
Unit tests for the in-memory blob store client.

The mock follows the same contract as the S3 client, so these tests
double as a description of what every BlobStoreClient must do.
"""

import asyncio

import pytest

from blobstore.infrastructure.storage import (
    CloseError,
    DeadlineExceeded,
    InvalidArgumentError,
    LocalIOError,
    MockBlobStoreClient,
    StorageConfig,
    StorageError,
    create_blob_store_client,
)


@pytest.fixture
def download_dir(tmp_path):
    path = tmp_path / "downloads"
    path.mkdir()
    return path


@pytest.fixture
def client(download_dir):
    config = StorageConfig(
        bucket_name="B",
        timeout_seconds=600,
        download_dir=str(download_dir),
        chunk_size=4,
    )
    return MockBlobStoreClient(config)


@pytest.fixture
def report_file(tmp_path):
    local = tmp_path / "local"
    local.mkdir()
    path = local / "report.txt"
    path.write_bytes(b"quarterly numbers\n" * 10)
    return path


# ---------------------------------------------------------------------------
# Scenario
# ---------------------------------------------------------------------------

class TestReportScenario:
    """The end-to-end flow a caller of the client goes through."""

    @pytest.mark.asyncio
    async def test_exists_upload_download_missing(self, client, report_file):
        client.put_object("report.txt", b"old contents")

        assert await client.exists("report.txt") is True

        assert await client.upload(report_file, "report.txt") is None

        path = await client.download("report.txt", "report.txt")
        assert "report.txt" in path
        with open(path, "rb") as f:
            assert f.read() == report_file.read_bytes()

        assert await client.download("report.txt.missing", "x") == ""


# ---------------------------------------------------------------------------
# Operation Tests
# ---------------------------------------------------------------------------

class TestUpload:
    """Tests for upload()."""

    @pytest.mark.asyncio
    async def test_empty_path_is_invalid(self, client):
        with pytest.raises(InvalidArgumentError):
            await client.upload("", "report.txt")

        assert client.get_object("report.txt") is None

    @pytest.mark.asyncio
    async def test_empty_object_key_is_invalid(self, client, report_file):
        with pytest.raises(InvalidArgumentError):
            await client.upload(report_file, "")

    @pytest.mark.asyncio
    async def test_missing_local_file_is_local_io_error(self, client, tmp_path):
        with pytest.raises(LocalIOError):
            await client.upload(tmp_path / "nope.txt", "nope.txt")

    @pytest.mark.asyncio
    async def test_upload_overwrites_existing_object(self, client, report_file):
        client.put_object("report.txt", b"stale")

        await client.upload(report_file, "report.txt")

        assert client.get_object("report.txt") == report_file.read_bytes()

    @pytest.mark.asyncio
    async def test_empty_file_uploads_empty_object(self, client, tmp_path):
        empty = tmp_path / "empty.bin"
        empty.write_bytes(b"")

        await client.upload(empty, "empty.bin")

        assert await client.exists("empty.bin")
        assert client.get_object("empty.bin") == b""


class TestDownload:
    """Tests for download()."""

    @pytest.mark.asyncio
    async def test_round_trip_is_byte_identical(self, client, tmp_path):
        payload = bytes(range(256)) * 3
        source = tmp_path / "blob.bin"
        source.write_bytes(payload)

        await client.upload(source, "blobs/blob.bin")
        path = await client.download("blobs/blob.bin", "blob.bin")

        with open(path, "rb") as f:
            assert f.read() == payload

    @pytest.mark.asyncio
    async def test_missing_object_returns_empty_path_and_no_file(self, client, download_dir):
        path = await client.download("not-there.txt", "not-there.txt")

        assert path == ""
        assert list(download_dir.iterdir()) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("object_key,path", [("", "x"), ("report.txt", "")])
    async def test_empty_arguments_are_invalid(self, client, object_key, path):
        with pytest.raises(InvalidArgumentError):
            await client.download(object_key, path)

    @pytest.mark.asyncio
    async def test_uncreatable_destination_is_local_io_error(self, tmp_path):
        config = StorageConfig(bucket_name="B", download_dir=str(tmp_path / "missing"))
        client = MockBlobStoreClient(config)
        client.put_object("report.txt", b"data")

        with pytest.raises(LocalIOError):
            await client.download("report.txt", "report.txt")


class TestExists:
    """Tests for exists()."""

    @pytest.mark.asyncio
    async def test_missing_object_is_false(self, client):
        assert await client.exists("report.txt") is False

    @pytest.mark.asyncio
    async def test_present_object_is_true(self, client):
        client.put_object("report.txt", b"data")

        assert await client.exists("report.txt") is True

    @pytest.mark.asyncio
    async def test_empty_object_key_is_invalid(self, client):
        with pytest.raises(InvalidArgumentError):
            await client.exists("")


# ---------------------------------------------------------------------------
# Deadline and Concurrency Tests
# ---------------------------------------------------------------------------

class TestDeadlines:
    """Each call gets its own deadline."""

    @pytest.mark.asyncio
    async def test_slow_backend_raises_deadline_exceeded(self, download_dir):
        config = StorageConfig(
            bucket_name="B",
            timeout_seconds=0.05,
            download_dir=str(download_dir),
        )
        client = MockBlobStoreClient(config, latency_seconds=0.5)
        client.put_object("report.txt", b"data")

        with pytest.raises(DeadlineExceeded):
            await client.download("report.txt", "report.txt")

        await asyncio.sleep(0.1)
        assert list(download_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_cancelled_download_leaves_no_file(self, download_dir):
        config = StorageConfig(bucket_name="B", download_dir=str(download_dir))
        client = MockBlobStoreClient(config, latency_seconds=0.2)
        client.put_object("report.txt", b"data")

        task = asyncio.ensure_future(client.download("report.txt", "report.txt"))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        await asyncio.sleep(0.5)
        assert list(download_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_deadlines_are_not_shared_between_calls(self):
        """Two calls that together exceed the timeout still both succeed."""
        config = StorageConfig(bucket_name="B", timeout_seconds=0.3)
        client = MockBlobStoreClient(config, latency_seconds=0.2)

        assert await client.exists("a") is False
        assert await client.exists("b") is False

    @pytest.mark.asyncio
    async def test_concurrent_operations(self, client, tmp_path):
        sources = []
        for i in range(5):
            source = tmp_path / f"file-{i}.txt"
            source.write_bytes(f"contents {i}".encode())
            sources.append(source)

        await asyncio.gather(*(client.upload(s, s.name) for s in sources))
        paths = await asyncio.gather(*(client.download(s.name, s.name) for s in sources))

        for source, path in zip(sources, paths):
            with open(path, "rb") as f:
                assert f.read() == source.read_bytes()


# ---------------------------------------------------------------------------
# Lifecycle Tests
# ---------------------------------------------------------------------------

class TestLifecycle:
    """Open -> Closed, and nothing after that."""

    @pytest.mark.asyncio
    async def test_operations_after_close_fail(self, client):
        await client.close()

        assert client.closed
        with pytest.raises(StorageError, match="closed"):
            await client.exists("report.txt")

    @pytest.mark.asyncio
    async def test_second_close_raises_close_error(self, client):
        await client.close()

        with pytest.raises(CloseError):
            await client.close()

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, client):
        async with client as opened:
            assert not opened.closed

        assert client.closed


class TestFactory:
    """Tests for create_blob_store_client()."""

    def test_mock_mode_returns_mock(self):
        client = create_blob_store_client(mock_mode=True)

        assert isinstance(client, MockBlobStoreClient)
        assert client.bucket_name == "mock-bucket"

    def test_real_mode_requires_config(self):
        with pytest.raises(ValueError, match="config is required"):
            create_blob_store_client()


class TestStorageConfig:
    """Construction-time validation."""

    def test_empty_bucket_rejected(self):
        with pytest.raises(ValueError, match="bucket_name"):
            StorageConfig(bucket_name="")

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_non_positive_timeout_rejected(self, timeout):
        with pytest.raises(ValueError, match="timeout_seconds"):
            StorageConfig(bucket_name="B", timeout_seconds=timeout)

    def test_unknown_addressing_style_rejected(self):
        with pytest.raises(ValueError, match="addressing_style"):
            StorageConfig(bucket_name="B", addressing_style="sideways")
