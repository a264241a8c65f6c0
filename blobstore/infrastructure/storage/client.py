"""
Blob store client for a single bucket.

Supports S3-compatible services (AWS S3, Cloudflare R2, MinIO) with a
mock mode for local development and tests.

Every operation is bounded by a fresh deadline built from the configured
timeout at call time. A missing object is not an error: download()
returns an empty path and exists() returns False. Everything else is
raised as a StorageError subclass (see errors.py).

Lifecycle: a client is open from construction until close(). Calling any
operation after close() raises StorageError; calling close() twice
raises CloseError.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Iterator, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from .credentials import CredentialSource
from .errors import (
    CloseError,
    ConfigurationError,
    DeadlineExceeded,
    LocalIOError,
    StorageConnectionError,
    StorageError,
    TransferError,
)
from .transfer import (
    Deadline,
    DeadlineReader,
    PathLike,
    copy_to_temp_file,
    remove_quietly,
    require_non_empty,
    run_with_deadline,
)

logger = logging.getLogger(__name__)

ADDRESSING_STYLES = ("path", "virtual", "auto")

# botocore's timeout errors also subclass BotoCoreError and OSError,
# so they must be caught before either.
_TIMEOUT_ERRORS = (ConnectTimeoutError, ReadTimeoutError)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


@dataclass(frozen=True)
class StorageConfig:
    """
    Configuration for a bucket-scoped storage client.

    Frozen because the bucket and timeout must not change once a client
    is built. Validated at construction like the other client configs.
    """
    bucket_name: str
    timeout_seconds: float = 600.0
    endpoint_url: Optional[str] = None
    region: str = "us-east-1"
    addressing_style: str = "path"  # MinIO and R2 need path-style
    download_dir: Optional[str] = None
    chunk_size: int = 1024 * 1024

    def __post_init__(self) -> None:
        if not self.bucket_name:
            raise ConfigurationError("bucket_name is required")
        if self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be positive")
        if self.chunk_size < 1:
            raise ConfigurationError("chunk_size must be positive")
        if self.addressing_style not in ADDRESSING_STYLES:
            raise ConfigurationError(
                f"addressing_style must be one of {', '.join(ADDRESSING_STYLES)}"
            )


class BlobStoreClient(Protocol):
    """
    Protocol for bucket-scoped object storage.

    Callers depend on this rather than a concrete backend so tests can
    use MockBlobStoreClient and production can use S3BlobStoreClient.
    """

    @property
    def bucket_name(self) -> str:
        ...

    @property
    def closed(self) -> bool:
        ...

    async def upload(self, path: PathLike, object_key: str) -> None:
        """Stream a local file to object_key, creating or overwriting it."""
        ...

    async def download(self, object_key: str, path: PathLike) -> str:
        """
        Copy object_key into a new local temp file named after path.

        Returns the temp file's path, or "" if the object does not exist.
        """
        ...

    async def exists(self, object_key: str) -> bool:
        """Return whether object_key exists in the bucket."""
        ...

    async def close(self) -> None:
        """Release the backend handle. No operation is valid afterwards."""
        ...


def is_not_found(error: ClientError) -> bool:
    """
    Classify a botocore ClientError as "object does not exist".

    S3 reports a missing key as NoSuchKey on GET and a bare 404 on HEAD
    (HEAD responses have no body to carry a code). A missing bucket also
    returns 404 but is a configuration problem, not a missing object.

    The NoSuchBucket exclusion only works for GET. A HEAD against a
    missing bucket is the same bodiless 404 as a missing key, so
    exists() reports False rather than raising.
    """
    error_info = error.response.get("Error", {})
    code = str(error_info.get("Code", ""))
    if code == "NoSuchBucket":
        return False
    if code in _NOT_FOUND_CODES:
        return True
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return status == 404


class _ClientLifecycle:
    """Open/closed state shared by the client implementations."""

    _closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StorageError("Storage client is closed")

    def _mark_closed(self) -> None:
        if self._closed:
            raise CloseError("Storage client is already closed")
        self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class S3BlobStoreClient(_ClientLifecycle):
    """
    S3-compatible blob store client.

    Uses boto3, so it works with AWS S3, R2, MinIO or anything else
    speaking the S3 API. boto3 is synchronous; each call runs in a
    worker thread so the event loop is never blocked.

    The boto3 client is thread-safe and shared read-only between
    concurrent calls. Each call opens its own request, so no locking
    is needed.
    """

    def __init__(
        self,
        config: StorageConfig,
        credential_source: CredentialSource,
    ) -> None:
        credentials = credential_source.resolve()
        if credentials is None:
            raise ConfigurationError(
                f"No storage credentials found in {credential_source.description}"
            )

        self._config = config

        # No retries here: the caller owns retry policy. Socket timeouts
        # match the operation timeout so a stalled connection can't
        # outlive the call's deadline by much.
        boto_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": config.addressing_style},
            connect_timeout=config.timeout_seconds,
            read_timeout=config.timeout_seconds,
            retries={"max_attempts": 1, "mode": "standard"},
        )

        try:
            self._s3_client = boto3.client(
                "s3",
                endpoint_url=config.endpoint_url,
                aws_access_key_id=credentials.access_key_id,
                aws_secret_access_key=credentials.secret_access_key,
                aws_session_token=credentials.session_token,
                region_name=config.region,
                config=boto_config,
            )
        except (BotoCoreError, ValueError) as e:
            logger.error(
                "Failed to create storage client",
                extra={
                    "bucket": config.bucket_name,
                    "endpoint": config.endpoint_url,
                    "error": str(e),
                }
            )
            raise StorageConnectionError(f"Could not create storage client: {e}") from e

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
                "timeout_seconds": config.timeout_seconds,
            }
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    async def upload(self, path: PathLike, object_key: str) -> None:
        """
        Upload a local file.

        The remote write is all-or-nothing only as far as S3 PutObject
        guarantees it; after a failure the caller should not assume the
        old object (or no object) is still there.
        """
        require_non_empty(path=path, object_key=object_key)
        self._ensure_open()

        deadline = Deadline(self._config.timeout_seconds)
        try:
            await run_with_deadline(
                self._upload_blocking, path, object_key, deadline,
                deadline=deadline,
            )
        except StorageError as e:
            logger.error(
                "Failed to upload object",
                extra={
                    "bucket": self.bucket_name,
                    "object_key": object_key,
                    "path": os.fspath(path),
                    "error": str(e),
                }
            )
            raise

        logger.debug(
            "Uploaded object",
            extra={"bucket": self.bucket_name, "object_key": object_key}
        )

    async def download(self, object_key: str, path: PathLike) -> str:
        """
        Download an object into a new temp file.

        The temp file name starts with the basename of ``path``; the
        returned string is where the bytes actually are.
        """
        require_non_empty(object_key=object_key, path=path)
        self._ensure_open()

        deadline = Deadline(self._config.timeout_seconds)
        try:
            local_path = await run_with_deadline(
                self._download_blocking, object_key, path, deadline,
                deadline=deadline,
                on_abandoned=_discard_download,
            )
        except StorageError as e:
            logger.error(
                "Failed to download object",
                extra={
                    "bucket": self.bucket_name,
                    "object_key": object_key,
                    "error": str(e),
                }
            )
            raise

        if not local_path:
            logger.debug(
                "Object not found",
                extra={"bucket": self.bucket_name, "object_key": object_key}
            )
            return ""

        logger.debug(
            "Downloaded object",
            extra={
                "bucket": self.bucket_name,
                "object_key": object_key,
                "local_path": local_path,
            }
        )
        return local_path

    async def exists(self, object_key: str) -> bool:
        """Check existence with a HEAD request (no object data transferred)."""
        require_non_empty(object_key=object_key)
        self._ensure_open()

        deadline = Deadline(self._config.timeout_seconds)
        try:
            return await run_with_deadline(
                self._exists_blocking, object_key, deadline,
                deadline=deadline,
            )
        except StorageError as e:
            logger.error(
                "Failed to check object existence",
                extra={
                    "bucket": self.bucket_name,
                    "object_key": object_key,
                    "error": str(e),
                }
            )
            raise

    async def close(self) -> None:
        """Close the boto3 client and its connection pool."""
        self._mark_closed()
        try:
            self._s3_client.close()
        except Exception as e:
            logger.error(
                "Failed to close storage client",
                extra={"bucket": self.bucket_name, "error": str(e)}
            )
            raise CloseError(f"Failed to close storage client: {e}") from e

        logger.info("Closed S3 storage client", extra={"bucket": self.bucket_name})

    # -----------------------------------------------------------------------
    # Blocking helpers (run in worker threads)
    # -----------------------------------------------------------------------

    def _upload_blocking(
        self,
        path: PathLike,
        object_key: str,
        deadline: Deadline,
    ) -> None:
        try:
            handle = open(path, "rb")
        except OSError as e:
            raise LocalIOError(f"Could not open {os.fspath(path)} for upload: {e}") from e

        with handle:
            deadline.check()
            try:
                self._s3_client.put_object(
                    Bucket=self.bucket_name,
                    Key=object_key,
                    Body=DeadlineReader(handle, deadline),
                )
            except _TIMEOUT_ERRORS as e:
                raise DeadlineExceeded(f"Upload of {object_key} timed out: {e}") from e
            except (ClientError, BotoCoreError) as e:
                raise TransferError(f"Upload of {object_key} failed: {e}") from e
            except OSError as e:
                raise LocalIOError(f"Could not read {os.fspath(path)}: {e}") from e

    def _download_blocking(
        self,
        object_key: str,
        path: PathLike,
        deadline: Deadline,
    ) -> str:
        deadline.check()
        try:
            response = self._s3_client.get_object(
                Bucket=self.bucket_name,
                Key=object_key,
            )
        except ClientError as e:
            if is_not_found(e):
                return ""
            raise TransferError(f"Download of {object_key} failed: {e}") from e
        except _TIMEOUT_ERRORS as e:
            raise DeadlineExceeded(f"Download of {object_key} timed out: {e}") from e
        except BotoCoreError as e:
            raise TransferError(f"Download of {object_key} failed: {e}") from e

        body = response["Body"]
        try:
            return copy_to_temp_file(
                self._iter_body(body, object_key),
                path,
                deadline,
                directory=self._config.download_dir,
            )
        finally:
            body.close()

    def _iter_body(self, body, object_key: str) -> Iterator[bytes]:
        """Yield body chunks, translating streaming failures."""
        try:
            yield from body.iter_chunks(chunk_size=self._config.chunk_size)
        except _TIMEOUT_ERRORS as e:
            raise DeadlineExceeded(f"Download of {object_key} timed out: {e}") from e
        except BotoCoreError as e:
            raise TransferError(f"Download of {object_key} failed mid-stream: {e}") from e

    def _exists_blocking(self, object_key: str, deadline: Deadline) -> bool:
        deadline.check()
        try:
            self._s3_client.head_object(Bucket=self.bucket_name, Key=object_key)
        except ClientError as e:
            if is_not_found(e):
                return False
            raise TransferError(f"Existence check for {object_key} failed: {e}") from e
        except _TIMEOUT_ERRORS as e:
            raise DeadlineExceeded(f"Existence check for {object_key} timed out: {e}") from e
        except BotoCoreError as e:
            raise TransferError(f"Existence check for {object_key} failed: {e}") from e
        return True


def _discard_download(local_path: str) -> None:
    """Remove a download that finished after its caller gave up."""
    if local_path:
        remove_quietly(local_path)


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockBlobStoreClient(_ClientLifecycle):
    """
    In-memory blob store.

    Follows the same contract as S3BlobStoreClient (deadlines, not-found
    results, temp-file downloads, cleanup on failure) without any
    backend. ``latency_seconds`` delays every backend step so tests can
    exercise timeouts.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(
        self,
        config: Optional[StorageConfig] = None,
        latency_seconds: float = 0.0,
    ) -> None:
        self._config = config or StorageConfig(bucket_name="mock-bucket")
        self._latency_seconds = latency_seconds
        # store objects in memory: {object_key: bytes}
        self._objects: dict[str, bytes] = {}
        self._lock = threading.Lock()
        logger.info(
            "Initialized mock storage client (in-memory)",
            extra={"bucket": self._config.bucket_name}
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    def put_object(self, object_key: str, data: bytes) -> None:
        """Seed an object directly, bypassing the file-based upload path."""
        with self._lock:
            self._objects[object_key] = bytes(data)

    def get_object(self, object_key: str) -> Optional[bytes]:
        """Return stored bytes for object_key, or None."""
        with self._lock:
            return self._objects.get(object_key)

    async def upload(self, path: PathLike, object_key: str) -> None:
        """Read the local file into memory."""
        require_non_empty(path=path, object_key=object_key)
        self._ensure_open()

        deadline = Deadline(self._config.timeout_seconds)
        await run_with_deadline(
            self._upload_blocking, path, object_key, deadline,
            deadline=deadline,
        )
        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": self.bucket_name, "object_key": object_key}
        )

    async def download(self, object_key: str, path: PathLike) -> str:
        """Write the stored bytes into a new temp file."""
        require_non_empty(object_key=object_key, path=path)
        self._ensure_open()

        deadline = Deadline(self._config.timeout_seconds)
        return await run_with_deadline(
            self._download_blocking, object_key, path, deadline,
            deadline=deadline,
            on_abandoned=_discard_download,
        )

    async def exists(self, object_key: str) -> bool:
        require_non_empty(object_key=object_key)
        self._ensure_open()

        deadline = Deadline(self._config.timeout_seconds)
        return await run_with_deadline(
            self._exists_blocking, object_key, deadline,
            deadline=deadline,
        )

    async def close(self) -> None:
        self._mark_closed()
        with self._lock:
            self._objects.clear()
        logger.info("Closed mock storage client", extra={"bucket": self.bucket_name})

    def _simulate_latency(self, deadline: Deadline) -> None:
        # sleep in slices so an abandoned call stops promptly
        wake_at = time.monotonic() + self._latency_seconds
        while not deadline.expired and time.monotonic() < wake_at:
            time.sleep(min(0.01, max(0.0, wake_at - time.monotonic())))
        deadline.check()

    def _upload_blocking(
        self,
        path: PathLike,
        object_key: str,
        deadline: Deadline,
    ) -> None:
        try:
            with open(path, "rb") as handle:
                chunks = []
                while True:
                    chunk = handle.read(self._config.chunk_size)
                    if not chunk:
                        break
                    deadline.check()
                    chunks.append(chunk)
        except OSError as e:
            raise LocalIOError(f"Could not read {os.fspath(path)}: {e}") from e

        self._simulate_latency(deadline)
        self.put_object(object_key, b"".join(chunks))

    def _download_blocking(
        self,
        object_key: str,
        path: PathLike,
        deadline: Deadline,
    ) -> str:
        self._simulate_latency(deadline)
        data = self.get_object(object_key)
        if data is None:
            return ""

        size = self._config.chunk_size
        chunks = (data[i:i + size] for i in range(0, len(data), size))
        return copy_to_temp_file(
            chunks,
            path,
            deadline,
            directory=self._config.download_dir,
        )

    def _exists_blocking(self, object_key: str, deadline: Deadline) -> bool:
        self._simulate_latency(deadline)
        return self.get_object(object_key) is not None


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_blob_store_client(
    config: Optional[StorageConfig] = None,
    credential_source: Optional[CredentialSource] = None,
    mock_mode: bool = False,
) -> BlobStoreClient:
    """
    Create a blob store client.

    Args:
        config: Storage configuration (required if not mock_mode)
        credential_source: Where to find backend keys (required if not mock_mode)
        mock_mode: If True, return an in-memory client

    Returns:
        BlobStoreClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockBlobStoreClient(config)

    if config is None:
        raise ConfigurationError("config is required when not in mock mode")
    if credential_source is None:
        raise ConfigurationError("credential_source is required when not in mock mode")

    return S3BlobStoreClient(config, credential_source)
