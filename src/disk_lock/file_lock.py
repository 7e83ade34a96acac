"""Advisory, cross-process directory locks built on flock(2)."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None

from .config import get_settings
from .models import BackoffPolicy

logger = logging.getLogger(__name__)


class LockingUnsupportedError(NotImplementedError):
    """Raised on platforms without flock(2)."""


class DirectoryLockError(OSError):
    """The directory to lock could not be opened."""


@dataclass(frozen=True)
class DirectoryHandle:
    """An open directory descriptor holding an exclusive flock."""

    fd: int
    path: Path


def _require_flock() -> None:
    if fcntl is None:
        raise LockingUnsupportedError("Directory locking requires flock(2) support.")


def acquire_directory(
    path: Path | str, policy: Optional[BackoffPolicy] = None
) -> Optional[DirectoryHandle]:
    """
    Open ``path`` read-only and block until an exclusive flock is granted.

    Returns None straight away if the directory cannot be opened. Otherwise
    retries forever: every refusal from another holder waits
    ``policy.contended_interval`` seconds, any other flock error is logged
    and waits ``policy.error_interval`` seconds. There is no timeout.
    """
    _require_flock()
    policy = policy or get_settings().backoff_policy()

    try:
        fd = os.open(path, os.O_RDONLY | os.O_NOCTTY)
    except OSError as exc:
        logger.error("Unable to open directory for locking: %s. Error: %s", path, exc)
        return None

    try:
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                time.sleep(policy.contended_interval)
                continue
            except OSError as exc:
                logger.warning(
                    "Unable to lock directory %s (retrying in %.0f sec). Error: %s",
                    path,
                    policy.error_interval,
                    exc,
                )
                time.sleep(policy.error_interval)
                continue
            return DirectoryHandle(fd=fd, path=Path(path))
    except BaseException:
        os.close(fd)
        raise


def release_directory(handle: DirectoryHandle) -> bool:
    """
    Drop the flock and close the descriptor.

    The handle is spent afterwards even when this returns False.
    """
    _require_flock()
    released = True
    try:
        fcntl.flock(handle.fd, fcntl.LOCK_UN)
    except OSError as exc:
        logger.error("Failed to unlock the directory: %s. Error: %s", handle.path, exc)
        released = False
    try:
        os.close(handle.fd)
    except OSError as exc:
        logger.error(
            "Failed to close the directory during unlocking: %s. Error: %s",
            handle.path,
            exc,
        )
        released = False
    return released
