"""Decide whether a directory is worth serializing access to."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .media import DeviceTree, is_rotational


def should_lock(path: Path | str, tree: Optional[DeviceTree] = None) -> bool:
    """
    Return True when writers sharing ``path`` should take the directory lock.

    Only spinning disks pay for concurrent seeks, so solid-state storage
    skips the lock. Locking is always safe; this is a performance hint.
    """
    return is_rotational(path, tree=tree)
