"""
Per-call deadlines and local file handling shared by storage clients.

Backend SDKs like boto3 are synchronous, so each operation runs its
blocking work in a worker thread. The coroutine awaiting that thread is
bounded by the call's Deadline; the thread itself checks the same
Deadline between chunks so it stops once the caller has given up.
"""

import asyncio
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Optional, TypeVar, Union

from .errors import DeadlineExceeded, InvalidArgumentError, LocalIOError

logger = logging.getLogger(__name__)

T = TypeVar("T")

PathLike = Union[str, os.PathLike]


class Deadline:
    """
    Absolute point in time after which an operation must abort.

    Built fresh at the start of every call from the client's timeout,
    never shared between calls. Thread-safe: the awaiting coroutine may
    cancel it while a worker thread is polling check().
    """

    def __init__(self, timeout_seconds: float) -> None:
        self._timeout_seconds = timeout_seconds
        self._expires_at = time.monotonic() + timeout_seconds
        self._cancelled = threading.Event()

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @property
    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self._cancelled.is_set() or time.monotonic() >= self._expires_at

    def cancel(self) -> None:
        """Mark the deadline as abandoned by the caller."""
        self._cancelled.set()

    def check(self) -> None:
        """Raise DeadlineExceeded if the deadline has passed or was cancelled."""
        if self.expired:
            raise DeadlineExceeded(
                f"Operation exceeded its {self._timeout_seconds:g}s timeout"
            )


async def run_with_deadline(
    func: Callable[..., T],
    *args,
    deadline: Deadline,
    on_abandoned: Optional[Callable[[T], None]] = None,
) -> T:
    """
    Run blocking ``func(*args)`` in a worker thread, bounded by ``deadline``.

    Threads can't be interrupted, so on timeout or caller cancellation the
    deadline is cancelled (the worker sees it at its next check) and
    ``on_abandoned`` is called with the worker's result if it still
    manages to return one. Download uses this to remove a temp file
    nobody will ever see.
    """
    task = asyncio.ensure_future(asyncio.to_thread(func, *args))

    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=deadline.remaining)
    except asyncio.TimeoutError:
        _abandon(task, deadline, on_abandoned)
        raise DeadlineExceeded(
            f"Operation exceeded its {deadline.timeout_seconds:g}s timeout"
        ) from None
    except asyncio.CancelledError:
        _abandon(task, deadline, on_abandoned)
        raise


def _abandon(task: asyncio.Future, deadline: Deadline, on_abandoned) -> None:
    deadline.cancel()
    task.add_done_callback(_abandoned_callback(on_abandoned))


def _abandoned_callback(on_abandoned):
    def callback(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        # retrieve the exception so asyncio doesn't report it as unhandled
        if task.exception() is not None:
            return
        if on_abandoned is not None:
            on_abandoned(task.result())

    return callback


def require_non_empty(**values: object) -> None:
    """
    Raise InvalidArgumentError naming every empty argument.

    Path-like values are compared by their filesystem form, not str().
    Note that pathlib already normalizes Path("") to ".", so that
    emptiness is gone before it gets here.
    """
    empty = [name for name, value in values.items() if _is_empty(value)]
    if empty:
        raise InvalidArgumentError(f"{' and '.join(empty)} cannot be empty")


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, os.PathLike)):
        return os.fspath(value) in ("", b"")
    return not value


class DeadlineReader:
    """
    File wrapper that checks a Deadline before every read.

    Handed to the backend SDK as an upload body so a transfer stops at
    the next read once its caller has given up, instead of running to
    completion in the background. Everything else (seek, tell, fileno)
    goes to the real handle so the SDK can size and rewind the body.
    """

    def __init__(self, handle, deadline: Deadline) -> None:
        self._handle = handle
        self._deadline = deadline

    def read(self, size: int = -1) -> bytes:
        self._deadline.check()
        return self._handle.read(size)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return self._handle.seek(offset, whence)

    def tell(self) -> int:
        return self._handle.tell()

    def __getattr__(self, name):
        return getattr(self._handle, name)


def download_prefix(path: PathLike) -> str:
    """
    Temp file prefix derived from the caller's requested path.

    Only the basename is used; directories in the hint are ignored so
    the file always lands in the configured download directory.
    """
    name = Path(os.fspath(path)).name
    return name or "download"


def copy_to_temp_file(
    chunks: Iterable[bytes],
    path: PathLike,
    deadline: Deadline,
    directory: Optional[PathLike] = None,
) -> str:
    """
    Write ``chunks`` into a new temp file named after ``path``.

    Returns the temp file's path. On any failure the file is removed
    before the exception propagates. OSErrors raised while writing are
    reported as LocalIOError; errors raised by the chunk iterator itself
    pass through untouched, so callers should translate backend errors
    inside the iterator.
    """
    try:
        fd, tmp_path = tempfile.mkstemp(
            prefix=download_prefix(path),
            dir=os.fspath(directory) if directory is not None else None,
        )
    except OSError as e:
        raise LocalIOError(f"Could not create download file: {e}") from e

    try:
        with os.fdopen(fd, "wb") as handle:
            for chunk in chunks:
                deadline.check()
                handle.write(chunk)
        deadline.check()
    except OSError as e:
        remove_quietly(tmp_path)
        raise LocalIOError(f"Could not write download file {tmp_path}: {e}") from e
    except BaseException:
        remove_quietly(tmp_path)
        raise

    return tmp_path


def remove_quietly(path: PathLike) -> None:
    """
    Best-effort removal of a local file.

    Cleanup runs while another error is already propagating, so a
    failure here is logged and never raised.
    """
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(
            "Failed to remove local file",
            extra={"path": os.fspath(path), "error": str(e)}
        )
