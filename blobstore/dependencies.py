"""
Wiring from Settings to a ready blob store client.

Callers that just want "the configured bucket" use
get_blob_store_client(); anything needing a different setup builds a
StorageConfig and calls create_blob_store_client() directly.
"""

import logging
from typing import Optional

from .config.settings import Settings, get_settings
from .infrastructure.storage.client import (
    BlobStoreClient,
    StorageConfig,
    create_blob_store_client,
)
from .infrastructure.storage.credentials import (
    CredentialSource,
    EnvironmentCredentialSource,
    StaticCredentialSource,
)

logger = logging.getLogger(__name__)

# Global mock instance (shared so objects persist across calls in mock mode)
_mock_storage_client: Optional[BlobStoreClient] = None


def storage_config_from_settings(settings: Settings) -> StorageConfig:
    """Build the client-facing StorageConfig from application settings."""
    return StorageConfig(
        bucket_name=settings.storage_bucket_name,
        timeout_seconds=settings.storage_timeout_seconds,
        endpoint_url=settings.storage_endpoint_url,
        region=settings.storage_region,
        addressing_style=settings.storage_addressing_style,
        download_dir=settings.storage_download_dir,
        chunk_size=settings.storage_chunk_size_bytes,
    )


def credential_source_from_settings(settings: Settings) -> CredentialSource:
    """
    Pick where credentials come from.

    Explicit STORAGE_* keys win; otherwise the standard AWS_* variables
    are read from the process environment.
    """
    if settings.has_static_credentials:
        return StaticCredentialSource(
            access_key_id=settings.storage_access_key_id,
            secret_access_key=settings.storage_secret_access_key,
            session_token=settings.storage_session_token,
        )
    return EnvironmentCredentialSource()


def get_blob_store_client(settings: Optional[Settings] = None) -> BlobStoreClient:
    """
    Provide a blob store client for the configured bucket.

    In mock mode the same in-memory client is returned on every call so
    uploaded objects persist for the life of the process.
    """
    global _mock_storage_client

    settings = settings or get_settings()

    if settings.storage_mock_mode:
        if _mock_storage_client is None or _mock_storage_client.closed:
            config = None
            if settings.storage_bucket_name:
                config = storage_config_from_settings(settings)
            _mock_storage_client = create_blob_store_client(config=config, mock_mode=True)
            logger.info("Created shared mock storage client")
        return _mock_storage_client

    client = create_blob_store_client(
        config=storage_config_from_settings(settings),
        credential_source=credential_source_from_settings(settings),
    )
    logger.debug(
        "Created S3 storage client",
        extra={"bucket": settings.storage_bucket_name}
    )
    return client


def reset_mock_storage_client() -> None:
    """Forget the shared mock client. Intended for tests."""
    global _mock_storage_client
    _mock_storage_client = None
