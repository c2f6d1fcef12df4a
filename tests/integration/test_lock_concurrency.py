"""Integration tests for concurrent writers against one domain file.

Threads stand in for independent processes: the lock is a marker file
on disk, so exclusion holds between threads exactly as between
processes.
"""

from __future__ import annotations

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from mulch.config import get_expertise_path
from mulch.config import LockConfig
from mulch.models import ConventionRecord
from mulch.operations import query_expertise
from mulch.operations import record_expertise
from mulch.store import file_lock
from mulch.store import lock_path_for
from mulch.store import LockTimeoutError
from mulch.store import read_expertise_file
from mulch.store import write_expertise_file

_PATIENT = LockConfig(retry_interval_seconds=0.005, timeout_seconds=10.0)


def _convention(content: str) -> ConventionRecord:
    return ConventionRecord(content=content, classification="tactical")


class TestMutualExclusion:
    def test_critical_sections_never_overlap(self, tmp_path):
        target = tmp_path / "cli.jsonl"
        active = 0
        max_active = 0
        guard = threading.Lock()

        def critical(_: int) -> None:
            nonlocal active, max_active
            with file_lock(target, config=_PATIENT):
                with guard:
                    active += 1
                    max_active = max(max_active, active)
                time.sleep(0.005)
                with guard:
                    active -= 1

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(critical, range(40)))

        assert max_active == 1
        assert not lock_path_for(target).exists()

    def test_no_lost_updates_between_cooperating_writers(self, cli_project):
        def write(i: int) -> None:
            record_expertise(
                cli_project, "cli", _convention(f"convention {i}"), lock_config=_PATIENT
            )

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(write, range(30)))

        records = read_expertise_file(get_expertise_path("cli", cli_project))
        assert sorted(r.content for r in records) == sorted(f"convention {i}" for i in range(30))

    def test_readers_never_see_partial_files(self, cli_project):
        stop = threading.Event()
        errors: list[Exception] = []

        def read_loop() -> None:
            while not stop.is_set():
                try:
                    query_expertise(cli_project, budget=None)
                except Exception as exc:
                    errors.append(exc)

        reader = threading.Thread(target=read_loop)
        reader.start()
        try:
            for i in range(30):
                record_expertise(
                    cli_project, "cli", _convention(f"c{i} " + "x" * 500), lock_config=_PATIENT
                )
        finally:
            stop.set()
            reader.join()

        assert errors == []


class TestRecovery:
    def test_stale_lock_recovered_without_intervention(self, cli_project):
        path = get_expertise_path("cli", cli_project)
        lock_path = lock_path_for(path)
        lock_path.touch()
        past = time.time() - 60
        os.utime(lock_path, (past, past))

        outcome = record_expertise(cli_project, "cli", _convention("after crash"))
        assert outcome.record.content == "after crash"
        assert not lock_path.exists()

    def test_live_lock_times_out_with_actionable_message(self, cli_project, fast_lock):
        path = get_expertise_path("cli", cli_project)
        lock_path = lock_path_for(path)
        lock_path.touch()

        with pytest.raises(LockTimeoutError) as exc_info:
            record_expertise(cli_project, "cli", _convention("blocked"), lock_config=fast_lock)

        assert str(lock_path) in str(exc_info.value)
        assert read_expertise_file(path) == []
        assert lock_path.exists()

    def test_waiting_writer_proceeds_once_lock_released(self, cli_project):
        path = get_expertise_path("cli", cli_project)
        acquired = threading.Event()
        release = threading.Event()

        def holder() -> None:
            with file_lock(path):
                acquired.set()
                release.wait(timeout=5)

        thread = threading.Thread(target=holder)
        thread.start()
        acquired.wait(timeout=5)
        threading.Timer(0.1, release.set).start()

        record_expertise(cli_project, "cli", _convention("waited"), lock_config=_PATIENT)
        thread.join()

        assert [r.content for r in read_expertise_file(path)] == ["waited"]


class TestNonCooperatingWriter:
    def test_writer_bypassing_the_lock_can_lose_an_update(self, cli_project):
        """The lock is advisory: a direct read/modify/write ignores it."""
        path = get_expertise_path("cli", cli_project)
        in_critical_section = threading.Event()
        rogue_done = threading.Event()

        def cooperating() -> None:
            with file_lock(path):
                records = read_expertise_file(path)
                in_critical_section.set()
                rogue_done.wait(timeout=5)
                write_expertise_file(path, [*records, _convention("cooperating")])

        thread = threading.Thread(target=cooperating)
        thread.start()
        in_critical_section.wait(timeout=5)

        # No lock taken here.
        rogue_records = read_expertise_file(path)
        write_expertise_file(path, [*rogue_records, _convention("rogue")])
        rogue_done.set()
        thread.join()

        contents = [r.content for r in read_expertise_file(path)]
        assert contents == ["cooperating"]
        assert "rogue" not in contents
