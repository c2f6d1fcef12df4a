"""Root conftest — suite markers and a fresh project root per test."""

from __future__ import annotations

from pathlib import Path

import pytest

from mulch.config import init_mulch_dir
from mulch.config import LockConfig
from mulch.observability import reset_timings
from mulch.operations import add_domain


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Attach suite markers from test path.

    - `tests/unit/*` -> `unit`
    - `tests/integration/*` -> `integration`
    """
    root = Path(__file__).resolve().parents[1]
    for item in items:
        item_path = Path(str(item.fspath)).resolve()
        try:
            rel = item_path.relative_to(root)
        except ValueError:
            continue

        parts = rel.parts
        if len(parts) < 2 or parts[0] != "tests":
            continue
        if parts[1] == "unit":
            item.add_marker(pytest.mark.unit)
        elif parts[1] == "integration":
            item.add_marker(pytest.mark.integration)


# ---------------------------------------------------------------------------
# Project fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fast_lock() -> LockConfig:
    """Lock timings short enough for tests that wait on a held lock."""
    return LockConfig(stale_after_seconds=30.0, retry_interval_seconds=0.01, timeout_seconds=0.5)


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """An initialized project root with no domains."""
    init_mulch_dir(tmp_path)
    return tmp_path


@pytest.fixture()
def cli_project(project: Path) -> Path:
    """An initialized project root with an empty ``cli`` domain."""
    add_domain(project, "cli")
    return project


@pytest.fixture(autouse=True)
def clean_timings():
    """Reset operation timings between tests."""
    reset_timings()
    yield
    reset_timings()
