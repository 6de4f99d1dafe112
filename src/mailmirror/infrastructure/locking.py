"""File-based lock so only one run owns the checkpoint file and archive."""

import fcntl
import os
from pathlib import Path

from loguru import logger

from mailmirror.domain.errors import RunLockedError


class RunLock:
    """Exclusive, non-blocking POSIX file lock.

    The lock file holds the PID of the owning process while the lock is held.
    """

    def __init__(self, lock_file: Path):
        self.lock_file = Path(lock_file)
        self.lock_fd: int | None = None

    def acquire(self) -> bool:
        """Try once to take the lock. Returns False if another process holds it."""
        if self.lock_fd is not None:
            return True

        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_file, os.O_CREAT | os.O_RDWR, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            return False

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        os.fsync(fd)
        self.lock_fd = fd
        logger.debug(f"Acquired run lock {self.lock_file}")
        return True

    def release(self) -> None:
        if self.lock_fd is None:
            return
        try:
            fcntl.flock(self.lock_fd, fcntl.LOCK_UN)
            os.close(self.lock_fd)
        finally:
            self.lock_fd = None
        logger.debug(f"Released run lock {self.lock_file}")

    def __enter__(self) -> "RunLock":
        if not self.acquire():
            raise RunLockedError(f"Another run holds {self.lock_file}")
        return self

    def __exit__(self, *args) -> None:
        self.release()
