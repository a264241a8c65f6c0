"""
Credential sources for the storage backend.

Clients never read process state on their own: the caller passes a
CredentialSource into construction. Resolving to None means nothing was
found, which the client reports as a ConfigurationError before any
network call is attempted.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol


@dataclass(frozen=True)
class StorageCredentials:
    """Access key pair for an S3-compatible backend."""
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None

    def __repr__(self) -> str:
        # keep secrets out of logs and tracebacks
        return f"StorageCredentials(access_key_id={self.access_key_id!r})"


class CredentialSource(Protocol):
    """Something that can produce backend credentials, or None."""

    @property
    def description(self) -> str:
        """Human-readable origin, used in error messages."""
        ...

    def resolve(self) -> Optional[StorageCredentials]:
        ...


class EnvironmentCredentialSource:
    """
    Reads the standard AWS variables from an environment mapping.

    The mapping defaults to os.environ but tests can pass a plain dict.
    """

    ACCESS_KEY_VAR = "AWS_ACCESS_KEY_ID"
    SECRET_KEY_VAR = "AWS_SECRET_ACCESS_KEY"
    SESSION_TOKEN_VAR = "AWS_SESSION_TOKEN"

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ if environ is not None else os.environ

    @property
    def description(self) -> str:
        return f"environment variables {self.ACCESS_KEY_VAR}/{self.SECRET_KEY_VAR}"

    def resolve(self) -> Optional[StorageCredentials]:
        access_key = self._environ.get(self.ACCESS_KEY_VAR, "")
        secret_key = self._environ.get(self.SECRET_KEY_VAR, "")
        if not access_key or not secret_key:
            return None
        return StorageCredentials(
            access_key_id=access_key,
            secret_access_key=secret_key,
            session_token=self._environ.get(self.SESSION_TOKEN_VAR) or None,
        )


class StaticCredentialSource:
    """Wraps explicitly configured keys, e.g. from Settings."""

    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        session_token: Optional[str] = None,
    ) -> None:
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._session_token = session_token

    @property
    def description(self) -> str:
        return "static access key settings"

    def resolve(self) -> Optional[StorageCredentials]:
        if not self._access_key_id or not self._secret_access_key:
            return None
        return StorageCredentials(
            access_key_id=self._access_key_id,
            secret_access_key=self._secret_access_key,
            session_token=self._session_token or None,
        )
