import copy
import gc
import os
import pickle

import pytest

from disk_lock import directory_lock, file_lock
from disk_lock.directory_lock import DirectoryLock, locked_directory
from disk_lock.file_lock import DirectoryLockError
from disk_lock.models import BackoffPolicy, LockState

fcntl = pytest.importorskip("fcntl")

FAST = BackoffPolicy(contended_interval=0.01, error_interval=0.05)


def _lock_is_free(path) -> bool:
    fd = os.open(path, os.O_RDONLY)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    else:
        fcntl.flock(fd, fcntl.LOCK_UN)
        return True
    finally:
        os.close(fd)


class CountingDriver:
    """Wraps the real driver and counts calls."""

    def __init__(self, monkeypatch):
        self.acquired = 0
        self.released = 0
        self._acquire = file_lock.acquire_directory
        self._release = file_lock.release_directory
        monkeypatch.setattr(file_lock, "acquire_directory", self.acquire)
        monkeypatch.setattr(file_lock, "release_directory", self.release)

    def acquire(self, path, policy=None):
        self.acquired += 1
        return self._acquire(path, policy)

    def release(self, handle):
        self.released += 1
        return self._release(handle)


def test_constructor_locks_by_default(tmp_path):
    guard = DirectoryLock(tmp_path, policy=FAST)

    assert guard.locked
    assert guard.state is LockState.LOCKED
    assert not _lock_is_free(tmp_path)
    assert guard.unlock() is True
    assert guard.state is LockState.UNLOCKED
    assert _lock_is_free(tmp_path)


def test_lock_twice_acquires_once(tmp_path, monkeypatch):
    driver = CountingDriver(monkeypatch)
    guard = DirectoryLock(tmp_path, lock=False, policy=FAST)

    assert guard.lock() is True
    assert guard.lock() is True
    assert driver.acquired == 1

    guard.unlock()


def test_unlock_without_lock_makes_no_os_call(tmp_path, monkeypatch):
    driver = CountingDriver(monkeypatch)
    guard = DirectoryLock(tmp_path, lock=False)

    assert guard.unlock() is False
    assert driver.released == 0


def test_unlock_after_failed_lock_returns_false(tmp_path, monkeypatch):
    driver = CountingDriver(monkeypatch)
    guard = DirectoryLock(tmp_path / "missing", policy=FAST)

    assert not guard.locked
    assert guard.lock() is False
    assert guard.unlock() is False
    assert driver.acquired == 2
    assert driver.released == 0


def test_failed_release_still_leaves_guard_unlocked(tmp_path, monkeypatch):
    guard = DirectoryLock(tmp_path, policy=FAST)
    real_release = file_lock.release_directory
    monkeypatch.setattr(
        file_lock, "release_directory", lambda handle: real_release(handle) and False
    )

    assert guard.unlock() is False
    assert guard.state is LockState.UNLOCKED


def test_destroying_locked_guard_releases(tmp_path):
    guard = DirectoryLock(tmp_path, policy=FAST)
    assert not _lock_is_free(tmp_path)

    del guard
    gc.collect()

    assert _lock_is_free(tmp_path)


def test_with_block_releases_on_exception(tmp_path):
    with pytest.raises(RuntimeError):
        with DirectoryLock(tmp_path, lock=False, policy=FAST) as guard:
            assert guard.locked
            raise RuntimeError("boom")

    assert not guard.locked
    assert _lock_is_free(tmp_path)


def test_guard_cannot_be_duplicated(tmp_path):
    guard = DirectoryLock(tmp_path, lock=False)

    with pytest.raises(TypeError):
        copy.copy(guard)
    with pytest.raises(TypeError):
        copy.deepcopy(guard)
    with pytest.raises(TypeError):
        pickle.dumps(guard)


def test_locked_directory_holds_for_the_block(tmp_path):
    with locked_directory(tmp_path, policy=FAST) as guard:
        assert guard is not None
        assert not _lock_is_free(tmp_path)

    assert _lock_is_free(tmp_path)


def test_locked_directory_raises_when_directory_cannot_be_opened(tmp_path):
    with pytest.raises(DirectoryLockError):
        with locked_directory(tmp_path / "missing", policy=FAST):
            pass


def test_locked_directory_skips_solid_state_media(tmp_path, monkeypatch):
    monkeypatch.setattr(directory_lock, "should_lock", lambda path, tree=None: False)

    with locked_directory(tmp_path, only_if_rotational=True, policy=FAST) as guard:
        assert guard is None
        assert _lock_is_free(tmp_path)


def test_locked_directory_locks_rotational_media(tmp_path, monkeypatch):
    monkeypatch.setattr(directory_lock, "should_lock", lambda path, tree=None: True)

    with locked_directory(tmp_path, only_if_rotational=True, policy=FAST) as guard:
        assert guard.locked
        assert not _lock_is_free(tmp_path)

    assert _lock_is_free(tmp_path)


def test_lock_progress_is_logged(tmp_path, caplog):
    with caplog.at_level("INFO", logger="disk_lock.directory_lock"):
        guard = DirectoryLock(tmp_path, policy=FAST)
        guard.unlock()

    assert "Acquiring directory lock" in caplog.text
    assert "Lock acquired (took 0 sec)" in caplog.text
    assert "Releasing directory lock" in caplog.text


def test_finalizer_never_raises(tmp_path, monkeypatch):
    guard = DirectoryLock(tmp_path, policy=FAST)
    real_release = file_lock.release_directory

    def broken_release(handle):
        real_release(handle)
        raise RuntimeError("module torn down")

    monkeypatch.setattr(file_lock, "release_directory", broken_release)

    guard.__del__()

    assert not guard.locked
    assert _lock_is_free(tmp_path)
