"""Tests for ActivityQueue buffering and batch flushes."""

import asyncio
import json
from pathlib import Path
from unittest.mock import ANY, AsyncMock, patch

import pytest

from activity_tracker.config import QueueConfig
from activity_tracker.constants import MAX_FLUSH_INTERVAL_MS, MIN_FLUSH_INTERVAL_MS
from activity_tracker.exceptions import ConcurrencyConflictError, TransientRemoteError
from activity_tracker.remote.base import RemoteFile, RemoteSyncClient
from activity_tracker.remote.local import LocalSyncClient
from activity_tracker.sync.queue import ActivityQueue

from ..fixtures import (
    TEST_ERROR_NETWORK,
    TEST_EXISTING_ENTRY,
    TEST_FILE,
    TEST_LOG_PATH,
    TEST_OTHER_FILE,
    TEST_OTHER_PROJECT,
    TEST_PROJECT,
    TEST_REPOSITORY,
    TEST_SHA,
)


@pytest.fixture
def anyio_backend():
    """Restrict anyio tests to asyncio backend (trio doesn't support asyncio.sleep patching)."""
    return "asyncio"


@pytest.fixture
def manual_config() -> QueueConfig:
    """Queue config whose timer never fires during a test."""
    return QueueConfig(flush_interval_ms=MAX_FLUSH_INTERVAL_MS, write_delay_ms=0)


@pytest.fixture
def mock_client() -> AsyncMock:
    client = AsyncMock(spec=RemoteSyncClient)
    client.read.return_value = None
    return client


def _log_file(client: LocalSyncClient) -> Path:
    return client.root / TEST_REPOSITORY / TEST_LOG_PATH


class TestBuffering:
    """Tests for enqueue and the lazy flush task."""

    @pytest.mark.anyio
    async def test_enqueue_starts_flush_task(
        self, mock_client: AsyncMock, manual_config: QueueConfig, make_record
    ) -> None:
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, manual_config)
        assert queue.is_running is False

        queue.enqueue(TEST_PROJECT, make_record())

        assert queue.is_running is True
        assert queue.pending_count() == 1
        assert queue.pending_count(TEST_PROJECT) == 1
        await queue.stop()
        assert queue.is_running is False

    @pytest.mark.anyio
    async def test_submit_uses_record_project(
        self, mock_client: AsyncMock, manual_config: QueueConfig, make_record
    ) -> None:
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, manual_config)

        await queue.submit(make_record(project=TEST_OTHER_PROJECT))

        assert queue.pending_count(TEST_OTHER_PROJECT) == 1
        assert queue.pending_count(TEST_PROJECT) == 0
        await queue.stop()


class TestFlush:
    """Tests for the read-append-write flush."""

    @pytest.mark.anyio
    async def test_appends_to_existing_log(
        self, local_client: LocalSyncClient, manual_config: QueueConfig, make_record
    ) -> None:
        log_file = _log_file(local_client)
        log_file.parent.mkdir(parents=True)
        log_file.write_text(json.dumps([TEST_EXISTING_ENTRY]))

        queue = ActivityQueue(local_client, TEST_REPOSITORY, manual_config)
        first = make_record(file=TEST_FILE)
        second = make_record(file=TEST_OTHER_FILE)
        queue.enqueue(TEST_PROJECT, first)
        queue.enqueue(TEST_PROJECT, second)

        result = await queue.flush()
        await queue.stop()

        assert result.success
        assert result.records_written == 2
        assert result.projects_written == [TEST_PROJECT]
        assert json.loads(log_file.read_text()) == [
            TEST_EXISTING_ENTRY,
            first.to_log_entry(),
            second.to_log_entry(),
        ]
        assert queue.pending_count() == 0

    @pytest.mark.anyio
    async def test_creates_missing_log(
        self, local_client: LocalSyncClient, manual_config: QueueConfig, make_record
    ) -> None:
        queue = ActivityQueue(local_client, TEST_REPOSITORY, manual_config)
        record = make_record()
        queue.enqueue(TEST_PROJECT, record)

        await queue.flush()
        await queue.stop()

        text = _log_file(local_client).read_text()
        assert json.loads(text) == [record.to_log_entry()]
        assert text.startswith('[\n  {')

    @pytest.mark.anyio
    async def test_write_uses_read_token_and_commit_message(
        self, mock_client: AsyncMock, manual_config: QueueConfig, make_record
    ) -> None:
        mock_client.read.return_value = RemoteFile(content="[]", token=TEST_SHA)
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, manual_config)
        queue.enqueue(TEST_PROJECT, make_record())
        queue.enqueue(TEST_PROJECT, make_record())

        await queue.flush()
        await queue.stop()

        mock_client.read.assert_awaited_once_with(TEST_REPOSITORY, TEST_LOG_PATH)
        mock_client.write.assert_awaited_once_with(
            TEST_REPOSITORY,
            TEST_LOG_PATH,
            ANY,
            "Update activity log with 2 entries",
            TEST_SHA,
        )

    @pytest.mark.anyio
    async def test_empty_queue_writes_nothing(
        self, mock_client: AsyncMock, manual_config: QueueConfig
    ) -> None:
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, manual_config)

        result = await queue.flush()

        assert result.records_written == 0
        mock_client.read.assert_not_awaited()
        mock_client.write.assert_not_awaited()

    @pytest.mark.anyio
    async def test_projects_written_separately_with_delay(
        self, mock_client: AsyncMock, make_record
    ) -> None:
        config = QueueConfig(flush_interval_ms=MAX_FLUSH_INTERVAL_MS, write_delay_ms=1000)
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, config)

        with patch.object(queue, "_ensure_flush_task"):
            queue.enqueue(TEST_PROJECT, make_record(project=TEST_PROJECT))
            queue.enqueue(TEST_OTHER_PROJECT, make_record(project=TEST_OTHER_PROJECT))

        with patch(
            "activity_tracker.sync.queue.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            result = await queue.flush()

        assert sorted(result.projects_written) == sorted([TEST_PROJECT, TEST_OTHER_PROJECT])
        assert mock_client.write.await_count == 2
        mock_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.anyio
    async def test_concurrent_flush_is_skipped(
        self, mock_client: AsyncMock, manual_config: QueueConfig, make_record
    ) -> None:
        release = asyncio.Event()

        async def slow_read(repository: str, path: str) -> None:
            await release.wait()
            return None

        mock_client.read.side_effect = slow_read
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, manual_config)
        queue.enqueue(TEST_PROJECT, make_record())

        first = asyncio.create_task(queue.flush())
        while not queue.is_flushing:
            await asyncio.sleep(0)

        second = await queue.flush()
        release.set()
        first_result = await first
        await queue.stop()

        assert second.skipped is True
        assert first_result.records_written == 1
        assert queue.is_flushing is False
        mock_client.write.assert_awaited_once()

    @pytest.mark.anyio
    async def test_records_enqueued_during_flush_wait_for_next_one(
        self, mock_client: AsyncMock, manual_config: QueueConfig, make_record
    ) -> None:
        release = asyncio.Event()

        async def slow_read(repository: str, path: str) -> None:
            await release.wait()
            return None

        mock_client.read.side_effect = slow_read
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, manual_config)
        queue.enqueue(TEST_PROJECT, make_record(file=TEST_FILE))

        flush = asyncio.create_task(queue.flush())
        while not queue.is_flushing:
            await asyncio.sleep(0)
        late = make_record(file=TEST_OTHER_FILE)
        queue.enqueue(TEST_PROJECT, late)
        release.set()
        await flush
        await queue.stop()

        assert queue.pending(TEST_PROJECT) == [late]


class TestFlushFailures:
    """Tests for per-project failure handling."""

    @pytest.mark.anyio
    async def test_failed_batch_is_dropped_by_default(
        self, mock_client: AsyncMock, manual_config: QueueConfig, make_record
    ) -> None:
        mock_client.write.side_effect = TransientRemoteError(TEST_ERROR_NETWORK)
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, manual_config)
        queue.enqueue(TEST_PROJECT, make_record())
        queue.enqueue(TEST_PROJECT, make_record())

        result = await queue.flush()
        await queue.stop()

        assert result.success is False
        assert TEST_ERROR_NETWORK in result.errors[TEST_PROJECT]
        assert result.records_dropped == 2
        assert queue.pending_count() == 0

    @pytest.mark.anyio
    async def test_failed_batch_requeued_in_order(
        self, mock_client: AsyncMock, make_record
    ) -> None:
        config = QueueConfig(
            flush_interval_ms=MAX_FLUSH_INTERVAL_MS, write_delay_ms=0, requeue_on_failure=True
        )
        mock_client.write.side_effect = ConcurrencyConflictError("stale sha")
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, config)
        first = make_record(file=TEST_FILE)
        second = make_record(file=TEST_OTHER_FILE)
        queue.enqueue(TEST_PROJECT, first)
        queue.enqueue(TEST_PROJECT, second)

        result = await queue.flush()
        third = make_record(file="src/late.js")
        queue.enqueue(TEST_PROJECT, third)
        await queue.stop()

        assert result.records_requeued == 2
        assert result.records_dropped == 0
        assert queue.pending(TEST_PROJECT) == [first, second, third]

    @pytest.mark.anyio
    async def test_failure_does_not_block_other_projects(
        self, mock_client: AsyncMock, manual_config: QueueConfig, make_record
    ) -> None:
        async def write(repository, path, content, message, token=None) -> None:
            if TEST_OTHER_PROJECT in path:
                raise TransientRemoteError(TEST_ERROR_NETWORK)

        mock_client.write.side_effect = write
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, manual_config)
        queue.enqueue(TEST_OTHER_PROJECT, make_record(project=TEST_OTHER_PROJECT))
        queue.enqueue(TEST_PROJECT, make_record())

        result = await queue.flush()
        await queue.stop()

        assert result.projects_written == [TEST_PROJECT]
        assert list(result.errors) == [TEST_OTHER_PROJECT]

    @pytest.mark.anyio
    @pytest.mark.parametrize("content", ["not json", '{"entries": []}'])
    async def test_unreadable_remote_log_is_not_overwritten(
        self, mock_client: AsyncMock, manual_config: QueueConfig, make_record, content: str
    ) -> None:
        mock_client.read.return_value = RemoteFile(content=content, token=TEST_SHA)
        queue = ActivityQueue(mock_client, TEST_REPOSITORY, manual_config)
        queue.enqueue(TEST_PROJECT, make_record())

        result = await queue.flush()
        await queue.stop()

        assert TEST_PROJECT in result.errors
        mock_client.write.assert_not_awaited()


class TestLifecycle:
    """Tests for the periodic task and shutdown."""

    @pytest.mark.anyio
    async def test_timer_flushes_buffer(
        self, local_client: LocalSyncClient, make_record
    ) -> None:
        config = QueueConfig(flush_interval_ms=MIN_FLUSH_INTERVAL_MS, write_delay_ms=0)
        queue = ActivityQueue(local_client, TEST_REPOSITORY, config)
        queue.enqueue(TEST_PROJECT, make_record())

        for _ in range(50):
            if _log_file(local_client).exists():
                break
            await asyncio.sleep(0.05)
        await queue.stop()

        assert len(json.loads(_log_file(local_client).read_text())) == 1
        assert queue.pending_count() == 0

    @pytest.mark.anyio
    async def test_aclose_flushes_remaining_records(
        self, local_client: LocalSyncClient, manual_config: QueueConfig, make_record
    ) -> None:
        queue = ActivityQueue(local_client, TEST_REPOSITORY, manual_config)
        queue.enqueue(TEST_PROJECT, make_record())

        result = await queue.aclose()

        assert result.records_written == 1
        assert queue.is_running is False
        assert _log_file(local_client).exists()
