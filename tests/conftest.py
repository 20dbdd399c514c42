"""Pytest configuration and fixtures for activity-tracker tests."""

import logging
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path

import pytest

from activity_tracker.capture.detector import detect_changes
from activity_tracker.capture.models import ActivityRecord
from activity_tracker.constants import (
    ENV_DEBUG,
    ENV_GITHUB_TOKEN,
    ENV_LOG_LEVEL,
    ENV_TOKEN,
    PACKAGE_LOGGER_NAME,
)
from activity_tracker.remote.local import LocalSyncClient
from tests.unit.fixtures import (
    TEST_FILE,
    TEST_NEW_CONTENT,
    TEST_PROJECT,
    TEST_REPOSITORY,
    TEST_TIMESTAMP,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep credentials and log overrides from the host environment out of tests."""
    for name in (ENV_TOKEN, ENV_GITHUB_TOKEN, ENV_DEBUG, ENV_LOG_LEVEL):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    """Undo handlers installed by configure_logging (CLI commands call it)."""
    yield
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def make_record() -> Callable[..., ActivityRecord]:
    """Factory for activity records with a fixed timestamp."""

    def _make(
        file: str = TEST_FILE,
        project: str = TEST_PROJECT,
        content: str = TEST_NEW_CONTENT,
    ) -> ActivityRecord:
        return ActivityRecord(
            file=file,
            project=project,
            timestamp=datetime.fromisoformat(TEST_TIMESTAMP),
            changes=detect_changes("", content),
        )

    return _make


@pytest.fixture
def local_client(tmp_path: Path) -> LocalSyncClient:
    """Local directory remote with the test repository already created.

    Returns:
        LocalSyncClient rooted at tmp_path/remote
    """
    client = LocalSyncClient(tmp_path / "remote")
    client.create_repository(TEST_REPOSITORY)
    return client
