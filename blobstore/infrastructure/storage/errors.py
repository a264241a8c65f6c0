"""
Storage error taxonomy.

Every failure surfaced by a blob store client is a StorageError subclass,
so callers can catch the whole family or a single kind. Backend and
filesystem exceptions are chained (``raise ... from exc``) rather than
leaked.

The one backend signal that is NOT an error is "object not found":
download() returns an empty path and exists() returns False instead.
"""


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


class ConfigurationError(StorageError, ValueError):
    """Client configuration is invalid or no credentials could be found."""
    pass


class StorageConnectionError(StorageError):
    """The backend handle could not be created."""
    pass


class InvalidArgumentError(StorageError, ValueError):
    """A required argument (path, object key) was empty."""
    pass


class LocalIOError(StorageError):
    """Opening, creating, writing or removing a local file failed."""
    pass


class TransferError(StorageError):
    """The backend failed for a reason other than not-found."""
    pass


class DeadlineExceeded(StorageError):
    """The operation did not finish within its timeout."""
    pass


class CloseError(StorageError):
    """Releasing the backend handle failed."""
    pass
