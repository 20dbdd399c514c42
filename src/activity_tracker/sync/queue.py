"""Per-project activity queue with a periodic batch flush.

Records are buffered per project and shipped in batches: each flush reads
the project's remote log, appends the buffered records and rewrites the
whole file with the concurrency token from the read.

A project's buffer is cleared *before* its remote write is confirmed.
If the write fails the batch is dropped, unless ``requeue_on_failure`` is
enabled, in which case it is put back at the front of the buffer.
"""

import asyncio
import json
import logging

from activity_tracker.capture.models import ActivityRecord
from activity_tracker.config import QueueConfig
from activity_tracker.constants import (
    ACTIVITY_LOG_COMMIT_MESSAGE,
    ACTIVITY_LOG_JSON_INDENT,
    DEFAULT_REPOSITORY_NAME,
)
from activity_tracker.exceptions import RemoteError
from activity_tracker.remote.base import RemoteSyncClient, activity_log_path
from activity_tracker.sync.models import FlushResult

logger = logging.getLogger(__name__)


class ActivityQueue:
    """Buffer activity records per project and flush them periodically.

    The flush task starts lazily on the first enqueue. Only one flush runs
    at a time: a flush requested while another is in flight returns a
    skipped result immediately instead of waiting. Within a project,
    records reach the remote log in enqueue order.
    """

    def __init__(
        self,
        client: RemoteSyncClient,
        repository: str = DEFAULT_REPOSITORY_NAME,
        config: QueueConfig | None = None,
    ):
        self.client = client
        self.repository = repository
        self.config = config or QueueConfig()

        self._buffers: dict[str, list[ActivityRecord]] = {}
        self._flush_task: asyncio.Task[None] | None = None
        self._current_flush: asyncio.Future[FlushResult] | None = None
        self._is_flushing = False

    # ------------------------------------------------------------------
    # Buffering
    # ------------------------------------------------------------------

    def enqueue(self, project: str, record: ActivityRecord) -> None:
        """Append a record to the project's buffer and ensure the flush task runs.

        Must be called from within a running event loop.
        """
        self._buffers.setdefault(project, []).append(record)
        logger.debug(f"Queued activity for {project} ({len(self._buffers[project])} pending)")
        self._ensure_flush_task()

    async def submit(self, record: ActivityRecord) -> None:
        """Enqueue a record under its own project (ActivityLogger submit hook)."""
        self.enqueue(record.project, record)

    def pending_count(self, project: str | None = None) -> int:
        """Number of buffered records, for one project or overall."""
        if project is not None:
            return len(self._buffers.get(project, []))
        return sum(len(records) for records in self._buffers.values())

    def pending(self, project: str) -> list[ActivityRecord]:
        """Copy of the records buffered for a project."""
        return list(self._buffers.get(project, []))

    @property
    def is_flushing(self) -> bool:
        return self._is_flushing

    @property
    def is_running(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    # ------------------------------------------------------------------
    # Periodic task
    # ------------------------------------------------------------------

    def _ensure_flush_task(self) -> None:
        if self.is_running:
            return
        self._flush_task = asyncio.create_task(self._flush_loop(), name="activity_flush")
        logger.debug(f"Started activity flush task (every {self.config.flush_interval_seconds}s)")

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.flush_interval_seconds)
            self._current_flush = asyncio.ensure_future(self.flush())
            try:
                # Stopping the loop must not abort a write that already started
                await asyncio.shield(self._current_flush)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.error("Activity flush failed unexpectedly", exc_info=True)

    async def stop(self) -> None:
        """Stop the periodic flush task, letting an in-flight flush finish."""
        task, self._flush_task = self._flush_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        current, self._current_flush = self._current_flush, None
        if current and not current.done():
            try:
                await current
            except Exception:
                logger.error("Activity flush failed during shutdown", exc_info=True)

    async def aclose(self) -> FlushResult:
        """Stop the periodic task and flush whatever is still buffered."""
        await self.stop()
        return await self.flush()

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    async def flush(self) -> FlushResult:
        """Ship every non-empty project buffer to the remote store.

        Writes are sequential with ``write_delay`` between projects to
        respect remote rate limits. Per-project failures are logged and
        recorded in the result; they never raise.
        """
        if self._is_flushing:
            logger.debug("Flush already in progress, skipping")
            return FlushResult(skipped=True)

        self._is_flushing = True
        result = FlushResult()
        try:
            projects = [p for p, records in self._buffers.items() if records]
            for index, project in enumerate(projects):
                if index > 0 and self.config.write_delay_seconds > 0:
                    await asyncio.sleep(self.config.write_delay_seconds)

                records = self._buffers[project]
                self._buffers[project] = []

                try:
                    await self._append_to_remote_log(project, records)
                except Exception as e:
                    logger.error(f"Failed to flush {len(records)} activities for {project}: {e}")
                    result.errors[project] = str(e)
                    if self.config.requeue_on_failure:
                        self._buffers[project][:0] = records
                        result.records_requeued += len(records)
                    else:
                        result.records_dropped += len(records)
                    continue

                result.projects_written.append(project)
                result.records_written += len(records)

            if result.projects_written:
                logger.info(
                    f"Flushed {result.records_written} activities "
                    f"for {len(result.projects_written)} project(s)"
                )
            return result
        finally:
            self._is_flushing = False

    async def _append_to_remote_log(self, project: str, records: list[ActivityRecord]) -> None:
        """Read, append to and rewrite one project's remote log."""
        path = activity_log_path(project)
        remote = await self.client.read(self.repository, path)

        entries: list = []
        if remote is not None:
            try:
                entries = json.loads(remote.content)
            except json.JSONDecodeError as e:
                raise RemoteError(
                    f"Remote activity log is not valid JSON: {e}",
                    repository=self.repository,
                    path=path,
                ) from e
            if not isinstance(entries, list):
                raise RemoteError(
                    "Remote activity log is not a JSON array",
                    repository=self.repository,
                    path=path,
                )

        entries.extend(record.to_log_entry() for record in records)
        await self.client.write(
            self.repository,
            path,
            json.dumps(entries, indent=ACTIVITY_LOG_JSON_INDENT),
            ACTIVITY_LOG_COMMIT_MESSAGE.format(count=len(records)),
            remote.token if remote is not None else None,
        )
