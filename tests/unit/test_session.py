"""Tests for ActivitySession activation, capture wiring and supervised sync."""

import dataclasses
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from activity_tracker.config import (
    CaptureConfig,
    QueueConfig,
    RemoteConfig,
    SupervisorConfig,
    TrackerConfig,
)
from activity_tracker.constants import MAX_FLUSH_INTERVAL_MS
from activity_tracker.exceptions import (
    ConfigurationError,
    RemoteAuthError,
    RemoteError,
    RemoteNotFoundError,
    SupervisorExhaustedError,
)
from activity_tracker.notifications import Notifier
from activity_tracker.remote.base import RemoteSyncClient
from activity_tracker.session import ActivitySession

from .fixtures import (
    TEST_ERROR_NETWORK,
    TEST_FILE,
    TEST_LOG_PATH,
    TEST_NEW_CONTENT,
    TEST_OLD_CONTENT,
    TEST_PROJECT,
    TEST_REPOSITORY,
)


@pytest.fixture
def anyio_backend():
    """Restrict anyio tests to asyncio backend."""
    return "asyncio"


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock(spec=Notifier)


@pytest.fixture
def local_config() -> TrackerConfig:
    """Config using the local backend with timers that never fire in a test."""
    return TrackerConfig(
        queue=QueueConfig(flush_interval_ms=MAX_FLUSH_INTERVAL_MS, write_delay_ms=0),
        supervisor=SupervisorConfig(enabled=False),
        remote=RemoteConfig(backend="local"),
    )


@pytest.fixture
def mock_client() -> AsyncMock:
    client = AsyncMock(spec=RemoteSyncClient)
    client.verify.return_value = "tester"
    client.exists.return_value = True
    client.read.return_value = None
    return client


def _log_file(project_root: Path) -> Path:
    return project_root / ".activity-tracker" / "remote" / TEST_REPOSITORY / TEST_LOG_PATH


class TestActivation:
    """Tests for activate/start gating."""

    @pytest.mark.anyio
    async def test_activate_local_backend(
        self, tmp_path: Path, local_config: TrackerConfig, notifier: MagicMock
    ) -> None:
        session = ActivitySession.from_project(tmp_path, notifier, local_config)

        await session.activate()

        assert session.is_activated is True
        assert session.identity == str(tmp_path / ".activity-tracker" / "remote")
        await session.aclose()

    def test_github_without_token_is_configuration_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            ActivitySession.from_project(tmp_path, config=TrackerConfig())

    @pytest.mark.anyio
    async def test_rejected_credential_leaves_session_inert(
        self, mock_client: AsyncMock, notifier: MagicMock
    ) -> None:
        mock_client.verify.side_effect = RemoteAuthError("Bad credentials")
        session = ActivitySession(TrackerConfig(), mock_client, notifier)

        with pytest.raises(ConfigurationError):
            await session.activate()

        assert session.is_activated is False
        assert session.supervisor.is_running is False
        notifier.error.assert_called_once()
        with pytest.raises(ConfigurationError):
            session.start()

    @pytest.mark.anyio
    async def test_missing_repository_fails_activation(
        self, mock_client: AsyncMock, notifier: MagicMock
    ) -> None:
        mock_client.exists.return_value = False
        session = ActivitySession(TrackerConfig(), mock_client, notifier)

        with pytest.raises(ConfigurationError) as exc_info:
            await session.activate()

        assert isinstance(exc_info.value.__cause__, RemoteNotFoundError)

    @pytest.mark.anyio
    async def test_activate_starts_supervisor_when_enabled(
        self, mock_client: AsyncMock, notifier: MagicMock
    ) -> None:
        session = ActivitySession(TrackerConfig(), mock_client, notifier)

        await session.activate()
        assert session.supervisor.is_running is True

        await session.aclose()
        assert session.supervisor.is_running is False
        mock_client.aclose.assert_awaited_once()


class TestSaveEvents:
    """Tests for on_save_event wiring into the queue."""

    @pytest.mark.anyio
    async def test_ignored_until_started(
        self, mock_client: AsyncMock, local_config: TrackerConfig, notifier: MagicMock
    ) -> None:
        session = ActivitySession(local_config, mock_client, notifier)
        await session.activate()

        assert await session.on_save_event(TEST_FILE, TEST_NEW_CONTENT, TEST_PROJECT) is None
        assert session.queue.pending_count() == 0
        await session.aclose()

    @pytest.mark.anyio
    async def test_save_is_queued_per_project(
        self, mock_client: AsyncMock, local_config: TrackerConfig, notifier: MagicMock
    ) -> None:
        session = ActivitySession(local_config, mock_client, notifier)
        await session.activate()
        session.start()

        record = await session.on_save_event(TEST_FILE, TEST_NEW_CONTENT, TEST_PROJECT)

        assert record is not None
        assert session.queue.pending(TEST_PROJECT) == [record]
        await session.aclose()

    @pytest.mark.anyio
    async def test_aclose_flushes_to_remote(
        self, tmp_path: Path, local_config: TrackerConfig, notifier: MagicMock
    ) -> None:
        async with ActivitySession.from_project(tmp_path, notifier, local_config) as session:
            session.start()
            await session.on_save_event(TEST_FILE, TEST_OLD_CONTENT, TEST_PROJECT)
            await session.on_save_event(TEST_FILE, TEST_NEW_CONTENT, TEST_PROJECT)

        entries = json.loads(_log_file(tmp_path).read_text())
        assert [entry["changes"]["functions"]["added"] for entry in entries] == [["a"], ["b"]]
        assert session.is_tracking is False


class TestCaptureExhaustion:
    """Tests for save events whose submission never succeeds."""

    @pytest.fixture
    def no_delay_config(self, local_config: TrackerConfig) -> TrackerConfig:
        return dataclasses.replace(local_config, capture=CaptureConfig(retry_delay_ms=0))

    @pytest.mark.anyio
    async def test_exhausted_capture_persists_nothing(
        self, tmp_path: Path, no_delay_config: TrackerConfig, notifier: MagicMock
    ) -> None:
        session = ActivitySession.from_project(tmp_path, notifier, no_delay_config)
        await session.activate()
        session.start()

        with patch.object(
            session.queue, "enqueue", side_effect=RuntimeError(TEST_ERROR_NETWORK)
        ) as enqueue:
            record = await session.on_save_event(TEST_FILE, TEST_NEW_CONTENT, TEST_PROJECT)

        assert record is None
        assert enqueue.call_count == 3
        notifier.error.assert_called_once()
        assert "after 3 attempts" in notifier.error.call_args.args[0]
        assert session.queue.pending_count() == 0

        result = await session.aclose()

        assert result.records_written == 0
        assert not _log_file(tmp_path).exists()

    @pytest.mark.anyio
    async def test_exhausted_capture_leaves_remote_log_unchanged(
        self, tmp_path: Path, no_delay_config: TrackerConfig, notifier: MagicMock
    ) -> None:
        session = ActivitySession.from_project(tmp_path, notifier, no_delay_config)
        await session.activate()
        session.start()
        await session.on_save_event(TEST_FILE, TEST_OLD_CONTENT, TEST_PROJECT)
        await session.sync_state()
        before = _log_file(tmp_path).read_text()

        with patch.object(session.queue, "enqueue", side_effect=RuntimeError(TEST_ERROR_NETWORK)):
            assert await session.on_save_event(TEST_FILE, TEST_NEW_CONTENT, TEST_PROJECT) is None
        await session.aclose()

        assert _log_file(tmp_path).read_text() == before
        assert len(json.loads(before)) == 1


class TestSyncState:
    """Tests for the supervised full-state sync."""

    @pytest.mark.anyio
    async def test_flushes_buffers(
        self, mock_client: AsyncMock, local_config: TrackerConfig, notifier: MagicMock
    ) -> None:
        session = ActivitySession(local_config, mock_client, notifier)
        await session.activate()
        session.start()
        await session.on_save_event(TEST_FILE, TEST_NEW_CONTENT, TEST_PROJECT)

        result = await session.sync_state()

        assert result.records_written == 1
        mock_client.write.assert_awaited_once()
        await session.aclose()

    @pytest.mark.anyio
    async def test_missing_repository_raises(
        self, mock_client: AsyncMock, local_config: TrackerConfig, notifier: MagicMock
    ) -> None:
        session = ActivitySession(local_config, mock_client, notifier)
        mock_client.exists.return_value = False

        with pytest.raises(RemoteNotFoundError):
            await session.sync_state()

    @pytest.mark.anyio
    async def test_failed_project_raises(
        self, mock_client: AsyncMock, local_config: TrackerConfig, notifier: MagicMock
    ) -> None:
        mock_client.write.side_effect = RemoteError(TEST_ERROR_NETWORK)
        session = ActivitySession(local_config, mock_client, notifier)
        await session.activate()
        session.start()
        await session.on_save_event(TEST_FILE, TEST_NEW_CONTENT, TEST_PROJECT)

        with pytest.raises(RemoteError, match=TEST_PROJECT):
            await session.sync_state()
        await session.aclose()

    @pytest.mark.anyio
    async def test_supervisor_exhaustion_reaches_notifier(
        self, mock_client: AsyncMock, notifier: MagicMock
    ) -> None:
        session = ActivitySession(TrackerConfig(), mock_client, notifier)
        session.supervisor._on_exhausted(
            SupervisorExhaustedError("Periodic sync stopped", failures=3)
        )
        notifier.error.assert_called_once()
