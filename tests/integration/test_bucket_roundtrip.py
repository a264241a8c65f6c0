"""
Integration tests against a real S3-compatible bucket.

Skipped unless BLOBSTORE_INTEGRATION_BUCKET is set. Credentials come
from the usual AWS_* variables; STORAGE_ENDPOINT_URL points the client
at MinIO/LocalStack/R2 instead of AWS.

    BLOBSTORE_INTEGRATION_BUCKET=my-bucket pytest -m integration
"""

import os
import uuid

import pytest

from blobstore.infrastructure.storage import (
    EnvironmentCredentialSource,
    S3BlobStoreClient,
    StorageConfig,
)

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not os.getenv("BLOBSTORE_INTEGRATION_BUCKET"),
        reason="BLOBSTORE_INTEGRATION_BUCKET not set",
    ),
]


@pytest.fixture
def client(tmp_path):
    config = StorageConfig(
        bucket_name=os.environ["BLOBSTORE_INTEGRATION_BUCKET"],
        timeout_seconds=600,
        endpoint_url=os.getenv("STORAGE_ENDPOINT_URL"),
        region=os.getenv("STORAGE_REGION", "us-east-1"),
        download_dir=str(tmp_path),
    )
    return S3BlobStoreClient(config, EnvironmentCredentialSource())


@pytest.mark.asyncio
async def test_upload_exists_download_missing(client, tmp_path):
    object_key = f"blobstore-it/{uuid.uuid4()}/report.txt"
    source = tmp_path / "report.txt"
    source.write_bytes(b"integration test payload\n" * 1000)

    async with client:
        await client.upload(source, object_key)

        assert await client.exists(object_key) is True

        path = await client.download(object_key, "report.txt")
        assert "report.txt" in path
        with open(path, "rb") as f:
            assert f.read() == source.read_bytes()

        assert await client.download(f"{object_key}.missing", "x") == ""
        assert await client.exists(f"{object_key}.missing") is False
