"""Cross-process directory locking for batch writers sharing a storage directory."""

from .directory_lock import DirectoryLock, locked_directory
from .file_lock import (
    DirectoryHandle,
    DirectoryLockError,
    LockingUnsupportedError,
    acquire_directory,
    release_directory,
)
from .media import is_rotational
from .models import BackoffPolicy, LockState
from .policy import should_lock

__all__ = [
    "BackoffPolicy",
    "DirectoryHandle",
    "DirectoryLock",
    "DirectoryLockError",
    "LockState",
    "LockingUnsupportedError",
    "acquire_directory",
    "is_rotational",
    "locked_directory",
    "release_directory",
    "should_lock",
]
