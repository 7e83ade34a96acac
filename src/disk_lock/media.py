"""Detect whether a path lives on rotational (spinning-disk) storage.

Linux exposes each block device under ``/sys/dev/block/<major>:<minor>``
as a symlink into the device hierarchy. Partitions do not carry a
``queue/rotational`` attribute of their own, so the lookup walks up from
the resolved device node until one of its ancestors does.

Detection fails open: any error along the way yields ``False`` so an
unsupported environment only disables the heuristic.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Protocol, Tuple

from .config import get_settings

logger = logging.getLogger(__name__)

_UNSUPPORTED_PLATFORMS = {"darwin", "win32"}


class DeviceTree(Protocol):
    """Read-only view of the kernel device hierarchy."""

    def device_number(self, path: Path) -> Tuple[int, int]:
        ...

    def resolve_device(self, major: int, minor: int) -> Path:
        ...

    def exists(self, path: Path) -> bool:
        ...

    def read_first_line(self, path: Path) -> str:
        ...


class SysfsDeviceTree:
    """DeviceTree backed by a mounted sysfs."""

    def __init__(self, root: Path | str = "/sys"):
        self.root = Path(root)

    def device_number(self, path: Path) -> Tuple[int, int]:
        st_dev = os.stat(path).st_dev
        return os.major(st_dev), os.minor(st_dev)

    def resolve_device(self, major: int, minor: int) -> Path:
        link = self.root / "dev" / "block" / f"{major}:{minor}"
        return link.resolve(strict=True)

    def exists(self, path: Path) -> bool:
        return path.exists()

    def read_first_line(self, path: Path) -> str:
        with path.open(encoding="utf-8") as handle:
            return handle.readline().rstrip("\n")


def find_rotational_attribute(device: Path, tree: DeviceTree) -> Optional[Path]:
    """Return the nearest ``queue/rotational`` file at or above ``device``."""
    current = device
    while True:
        candidate = current / "queue" / "rotational"
        if tree.exists(candidate):
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def is_rotational(path: Path | str, tree: Optional[DeviceTree] = None) -> bool:
    """Return True iff ``path`` is backed by a device reporting rotational media."""
    if tree is None:
        if sys.platform in _UNSUPPORTED_PLATFORMS:
            return False
        tree = SysfsDeviceTree(get_settings().sysfs_root)

    # ValueError covers embedded NUL bytes in paths and undecodable attributes.
    try:
        major, minor = tree.device_number(Path(path))
    except (OSError, ValueError) as exc:
        logger.warning("Unable to find device name for dir %s: %s", path, exc)
        return False

    try:
        device = tree.resolve_device(major, minor)
    except (OSError, ValueError) as exc:
        logger.warning("Unable to find full device path for %d:%d: %s", major, minor, exc)
        return False

    try:
        attribute = find_rotational_attribute(device, tree)
    except (OSError, ValueError) as exc:
        logger.warning("Unable to search %s for a media type: %s", device, exc)
        return False
    if attribute is None:
        logger.warning("Unable to determine device media type for %s", device)
        return False

    try:
        value = tree.read_first_line(attribute)
    except (OSError, ValueError) as exc:
        logger.warning("Unable to open %s for reading: %s", attribute, exc)
        return False

    return value.strip() == "1"
