"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (or a .env file) with
sensible defaults. Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a real bucket.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings loaded from environment variables.

    All settings can be overridden via environment variables, e.g.
    STORAGE_BUCKET_NAME or STORAGE_TIMEOUT_SECONDS.
    """

    # Bucket
    storage_bucket_name: str = Field(
        default="",
        description="Bucket every client operation is scoped to"
    )
    storage_timeout_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Timeout applied to each upload/download/exists call"
    )

    # Backend
    storage_endpoint_url: Optional[str] = Field(
        default=None,
        description="S3-compatible endpoint (R2, MinIO). Leave unset for AWS S3."
    )
    storage_region: str = Field(
        default="us-east-1",
        description="Region name passed to boto3"
    )
    storage_addressing_style: Literal["path", "virtual", "auto"] = Field(
        default="path",
        description="S3 addressing style. MinIO and R2 need path-style."
    )

    # Credentials
    storage_access_key_id: str = Field(
        default="",
        description="Access key ID. If unset, AWS_ACCESS_KEY_ID is used."
    )
    storage_secret_access_key: str = Field(
        default="",
        description="Secret access key. If unset, AWS_SECRET_ACCESS_KEY is used."
    )
    storage_session_token: Optional[str] = Field(
        default=None,
        description="Optional session token for temporary credentials"
    )

    # Transfers
    storage_download_dir: Optional[str] = Field(
        default=None,
        description="Directory for downloaded temp files. Defaults to the system temp dir."
    )
    storage_chunk_size_bytes: int = Field(
        default=1024 * 1024,
        gt=0,
        description="Chunk size used when streaming downloads to disk"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of a real bucket"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.storage_access_key_id and self.storage_secret_access_key)

    def validate_required_fields(self) -> list[str]:
        """
        Return names of required variables that are not set.

        Separate from Pydantic validation because requirements depend
        on mock mode. Credentials aren't listed here: when no static keys
        are configured, the client falls back to the AWS_* environment
        variables and reports missing ones itself.
        """
        missing = []

        if self.storage_mock_mode:
            return missing

        if not self.storage_bucket_name:
            missing.append("STORAGE_BUCKET_NAME")

        # half-configured static keys are a mistake, not a fallback
        if bool(self.storage_access_key_id) != bool(self.storage_secret_access_key):
            if not self.storage_access_key_id:
                missing.append("STORAGE_ACCESS_KEY_ID")
            if not self.storage_secret_access_key:
                missing.append("STORAGE_SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
