"""Tests for RunLock."""

import pytest

from mailmirror.domain.errors import RunLockedError
from mailmirror.infrastructure.locking import RunLock


def test_lock_acquire_release(tmp_path):
    """Test basic lock acquisition and release."""
    lock = RunLock(tmp_path / "run.lock")

    assert lock.acquire()
    assert lock.lock_fd is not None
    assert (tmp_path / "run.lock").read_text().strip().isdigit()

    lock.release()
    assert lock.lock_fd is None


def test_second_lock_fails(tmp_path):
    """Test that a held lock cannot be taken twice."""
    lock1 = RunLock(tmp_path / "run.lock")
    lock2 = RunLock(tmp_path / "run.lock")

    assert lock1.acquire()
    assert not lock2.acquire()

    lock1.release()
    assert lock2.acquire()
    lock2.release()


def test_context_manager_raises_when_held(tmp_path):
    """Test the context manager refuses a held lock."""
    holder = RunLock(tmp_path / "run.lock")
    holder.acquire()

    with pytest.raises(RunLockedError):
        with RunLock(tmp_path / "run.lock"):
            pass

    holder.release()
    with RunLock(tmp_path / "run.lock") as lock:
        assert lock.lock_fd is not None
    assert lock.lock_fd is None
