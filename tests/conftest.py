"""
Pytest configuration and shared fixtures.
"""

import logging
import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from teamwork.claims import ClaimProtocol
from teamwork.config import LockSettings
from teamwork.config import config_manager as config_manager_module
from teamwork.locking import LockManager
from teamwork.models.task_store import TaskStore
from teamwork.waves import WavePlanStore


@pytest.fixture  # type: ignore[misc]
def test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Clear TEAMWORK_* variables so tests only see what they set."""
    for key in list(os.environ):
        if key.startswith("TEAMWORK_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("TEAMWORK_LOGGING__LEVEL", "WARNING")
    yield


@pytest.fixture(autouse=True)  # type: ignore[misc]
def reset_logging() -> Generator[None, None, None]:
    """Undo handlers installed by setup_logging so caplog keeps working."""
    yield
    logger = logging.getLogger("teamwork")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)  # type: ignore[misc]
def reset_config_manager(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without a cached global configuration manager."""
    monkeypatch.setattr(config_manager_module, "_config_manager", None)


@pytest.fixture  # type: ignore[misc]
def project_dir(tmp_path: Path) -> Path:
    """Temporary project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture  # type: ignore[misc]
def lock_settings() -> LockSettings:
    """Fast polling and short timeouts for tests."""
    return LockSettings(
        stale_after_seconds=60.0, poll_interval_seconds=0.01, timeout_seconds=2.0
    )


@pytest.fixture  # type: ignore[misc]
def lock_manager(lock_settings: LockSettings) -> LockManager:
    return LockManager(lock_settings)


@pytest.fixture  # type: ignore[misc]
def task_store(project_dir: Path, lock_manager: LockManager) -> TaskStore:
    return TaskStore(project_dir / "tasks", lock_manager)


@pytest.fixture  # type: ignore[misc]
def claims(task_store: TaskStore) -> ClaimProtocol:
    return ClaimProtocol(task_store)


@pytest.fixture  # type: ignore[misc]
def plan_store(project_dir: Path, lock_manager: LockManager) -> WavePlanStore:
    return WavePlanStore(project_dir, lock_manager)


@pytest.fixture  # type: ignore[misc]
def sample_tasks() -> list[dict[str, Any]]:
    """Diamond-shaped task set: A before B and C, both before D."""
    return [
        {"id": "A", "subject": "Set up schema", "role": "backend"},
        {"id": "B", "subject": "Build API", "role": "backend", "blocked_by": ["A"]},
        {"id": "C", "subject": "Build UI", "role": "frontend", "blocked_by": ["A"]},
        {"id": "D", "subject": "End-to-end tests", "role": "test", "blocked_by": ["B", "C"]},
    ]


@pytest.fixture  # type: ignore[misc]
def populated_store(task_store: TaskStore, sample_tasks: list[dict[str, Any]]) -> TaskStore:
    for task in sample_tasks:
        task_store.create(task)
    return task_store


# Pytest configuration
def pytest_configure(config: Any) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "cli: mark test as CLI test")
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (takes more than 5 seconds)"
    )


def pytest_collection_modifyitems(config: Any, items: list[Any]) -> None:
    """Modify test collection to add markers based on file location."""
    for item in items:
        # Add markers based on file path
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "cli" in path:
            item.add_marker(pytest.mark.cli)

        if "concurrent" in item.name or "stress" in item.name:
            item.add_marker(pytest.mark.slow)
