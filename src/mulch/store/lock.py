"""Advisory, file-based mutual exclusion for one domain file.

The lock is a zero-byte marker at ``<domain file>.lock`` created with
``O_CREAT | O_EXCL``; that exclusive create is the only point of real
mutual exclusion.  A marker older than the staleness threshold is taken
to belong to a crashed process and is removed, after which acquisition
is attempted again from scratch.

Only writers that go through this module are serialized.  A process
that rewrites the domain file without taking the lock can still lose
another writer's update.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from mulch.config import LockConfig
from mulch.errors import MulchError

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"

T = TypeVar("T")


class LockTimeoutError(MulchError):
    """Raised when the lock could not be acquired within the timeout."""

    error_code = "lock_timeout"

    def __init__(self, lock_path: Path) -> None:
        self.lock_path = lock_path
        super().__init__(
            f"Timed out waiting for lock on {lock_path}. If no other mulch "
            "process is running, delete the lock file manually."
        )


def lock_path_for(file_path: str | Path) -> Path:
    """Return the marker path guarding *file_path*."""
    return Path(f"{file_path}{LOCK_SUFFIX}")


def _is_stale(lock_path: Path, stale_after: float) -> bool:
    try:
        mtime = lock_path.stat().st_mtime
    except FileNotFoundError:
        # Released between our create attempt and this check.
        return False
    return time.time() - mtime > stale_after


def _try_create(lock_path: Path) -> bool:
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        return False
    os.close(fd)
    return True


def _acquire(lock_path: Path, config: LockConfig) -> None:
    deadline = time.monotonic() + config.timeout_seconds
    while True:
        if _try_create(lock_path):
            logger.debug("Acquired %s", lock_path)
            return

        if _is_stale(lock_path, config.stale_after_seconds):
            logger.warning("Removing stale lock %s", lock_path)
            try:
                lock_path.unlink()
            except FileNotFoundError:
                pass
            continue

        if time.monotonic() >= deadline:
            raise LockTimeoutError(lock_path)

        time.sleep(config.retry_interval_seconds)


def _release(lock_path: Path) -> None:
    try:
        lock_path.unlink()
    except FileNotFoundError:
        logger.debug("Lock %s already removed", lock_path)


@contextmanager
def file_lock(file_path: str | Path, *, config: LockConfig | None = None) -> Iterator[Path]:
    """Hold the advisory lock on *file_path* for the duration of the block.

    Yields the lock path.  The marker is removed on every exit path; if
    acquisition times out the block is never entered.
    """
    lock_path = lock_path_for(file_path)
    _acquire(lock_path, config or LockConfig())
    try:
        yield lock_path
    finally:
        _release(lock_path)


def with_file_lock(
    file_path: str | Path,
    fn: Callable[[], T],
    *,
    config: LockConfig | None = None,
) -> T:
    """Call *fn* while holding the lock on *file_path* and return its result."""
    with file_lock(file_path, config=config):
        return fn()
