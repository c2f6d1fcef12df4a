"""Unit tests for the advisory domain-file lock."""

from __future__ import annotations

import os
import time

import pytest

from mulch.config import LockConfig
from mulch.store import file_lock
from mulch.store import lock_path_for
from mulch.store import LockTimeoutError
from mulch.store import with_file_lock


def _age(path, seconds: float) -> None:
    past = time.time() - seconds
    os.utime(path, (past, past))


class TestFileLock:
    def test_lock_path_suffix(self, tmp_path):
        target = tmp_path / "cli.jsonl"
        assert lock_path_for(target) == tmp_path / "cli.jsonl.lock"

    def test_marker_exists_only_while_held(self, tmp_path):
        target = tmp_path / "cli.jsonl"
        with file_lock(target) as lock_path:
            assert lock_path.exists()
            assert lock_path.stat().st_size == 0
        assert not lock_path.exists()

    def test_released_when_block_raises(self, tmp_path):
        target = tmp_path / "cli.jsonl"
        with pytest.raises(RuntimeError):
            with file_lock(target):
                raise RuntimeError("boom")
        assert not lock_path_for(target).exists()

    def test_with_file_lock_returns_result(self, tmp_path):
        assert with_file_lock(tmp_path / "cli.jsonl", lambda: 42) == 42

    def test_timeout_names_lock_path(self, tmp_path, fast_lock):
        target = tmp_path / "cli.jsonl"
        lock_path = lock_path_for(target)
        lock_path.touch()

        with pytest.raises(LockTimeoutError) as exc_info:
            with file_lock(target, config=fast_lock):
                pytest.fail("entered the block without the lock")

        assert exc_info.value.lock_path == lock_path
        assert str(lock_path) in str(exc_info.value)
        assert "delete the lock file manually" in str(exc_info.value)
        # A held lock belonging to someone else is never removed.
        assert lock_path.exists()

    def test_stale_lock_is_taken_over(self, tmp_path):
        target = tmp_path / "cli.jsonl"
        lock_path = lock_path_for(target)
        lock_path.touch()
        _age(lock_path, 31)

        config = LockConfig(timeout_seconds=0.2, retry_interval_seconds=0.01)
        with file_lock(target, config=config):
            assert lock_path.exists()
        assert not lock_path.exists()

    def test_recent_lock_is_not_stale(self, tmp_path, fast_lock):
        target = tmp_path / "cli.jsonl"
        lock_path = lock_path_for(target)
        lock_path.touch()
        _age(lock_path, 10)

        with pytest.raises(LockTimeoutError):
            with file_lock(target, config=fast_lock):
                pass

    def test_defaults(self):
        cfg = LockConfig()
        assert cfg.stale_after_seconds == 30.0
        assert cfg.retry_interval_seconds == 0.05
        assert cfg.timeout_seconds == 5.0
