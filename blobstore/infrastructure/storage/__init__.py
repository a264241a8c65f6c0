"""
Object storage integration for a single bucket.

Supports S3-compatible services (AWS S3, R2, MinIO) via boto3.
Includes mock mode for local development without credentials.
"""

from .client import (
    BlobStoreClient,
    MockBlobStoreClient,
    S3BlobStoreClient,
    StorageConfig,
    create_blob_store_client,
)
from .credentials import (
    CredentialSource,
    EnvironmentCredentialSource,
    StaticCredentialSource,
    StorageCredentials,
)
from .errors import (
    CloseError,
    ConfigurationError,
    DeadlineExceeded,
    InvalidArgumentError,
    LocalIOError,
    StorageConnectionError,
    StorageError,
    TransferError,
)

__all__ = [
    "BlobStoreClient",
    "CloseError",
    "ConfigurationError",
    "CredentialSource",
    "DeadlineExceeded",
    "EnvironmentCredentialSource",
    "InvalidArgumentError",
    "LocalIOError",
    "MockBlobStoreClient",
    "S3BlobStoreClient",
    "StaticCredentialSource",
    "StorageConfig",
    "StorageConnectionError",
    "StorageCredentials",
    "StorageError",
    "TransferError",
    "create_blob_store_client",
]
