"""Scoped ownership of a directory lock."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from . import file_lock
from .file_lock import DirectoryHandle, DirectoryLockError
from .media import DeviceTree
from .models import BackoffPolicy, LockState
from .policy import should_lock

logger = logging.getLogger(__name__)


class DirectoryLock:
    """
    Owns at most one flock on a directory and releases it when discarded.

    With ``lock=True`` (the default) the constructor blocks until the lock is
    held. ``lock()`` is idempotent; ``unlock()`` returns False when nothing is
    held. Leaving a ``with`` block, or the guard being garbage collected,
    releases a held lock.
    """

    def __init__(
        self,
        path: Path | str,
        lock: bool = True,
        *,
        policy: Optional[BackoffPolicy] = None,
    ):
        self.path = Path(path)
        self._policy = policy
        self._handle: Optional[DirectoryHandle] = None
        if lock:
            self.lock()

    @property
    def state(self) -> LockState:
        return LockState.LOCKED if self._handle is not None else LockState.UNLOCKED

    @property
    def locked(self) -> bool:
        return self._handle is not None

    def lock(self) -> bool:
        if self._handle is not None:
            return True

        logger.info("Acquiring directory lock: %s", self.path)
        start = time.monotonic()
        self._handle = file_lock.acquire_directory(self.path, self._policy)
        if self._handle is None:
            return False
        logger.info("Lock acquired (took %d sec)", int(time.monotonic() - start))
        return True

    def unlock(self) -> bool:
        handle = self._handle
        if handle is None:
            return False
        logger.info("Releasing directory lock: %s", self.path)
        # The descriptor is gone whether or not release reports success.
        self._handle = None
        return file_lock.release_directory(handle)

    def __enter__(self) -> "DirectoryLock":
        self.lock()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._handle is not None:
            self.unlock()

    def __del__(self):
        if getattr(self, "_handle", None) is None:
            return
        try:
            self.unlock()
        except Exception:
            # Module globals may already be gone at interpreter shutdown; the
            # OS drops the flock when the process exits.
            pass

    def __copy__(self):
        raise TypeError("DirectoryLock owns an OS handle and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("DirectoryLock owns an OS handle and cannot be copied")

    def __reduce__(self):
        raise TypeError("DirectoryLock owns an OS handle and cannot be pickled")

    def __repr__(self) -> str:
        return f"DirectoryLock(path={str(self.path)!r}, state={self.state.value})"


@contextmanager
def locked_directory(
    path: Path | str,
    *,
    only_if_rotational: bool = False,
    policy: Optional[BackoffPolicy] = None,
    tree: Optional[DeviceTree] = None,
) -> Iterator[Optional[DirectoryLock]]:
    """
    Serialize access to ``path`` across processes for the ``with`` body.

    Yields the held guard, or None when ``only_if_rotational`` is set and the
    directory sits on solid-state media. Raises DirectoryLockError if the
    directory cannot be opened.
    """
    if only_if_rotational and not should_lock(path, tree=tree):
        logger.debug("Skipping directory lock on non-rotational media: %s", path)
        yield None
        return

    guard = DirectoryLock(path, lock=False, policy=policy)
    if not guard.lock():
        raise DirectoryLockError(f"Unable to open directory for locking: {path}")
    try:
        yield guard
    finally:
        guard.unlock()
