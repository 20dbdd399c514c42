"""Activity logger: turns one edit event into a submitted activity record."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from activity_tracker.capture.cache import ContentCache
from activity_tracker.capture.detector import detect_changes
from activity_tracker.capture.models import ActivityRecord, ChangeSummary
from activity_tracker.config import CaptureConfig
from activity_tracker.constants import (
    MSG_CAPTURE_FAILED,
    MSG_TRACKING_STARTED,
    MSG_TRACKING_STOPPED,
)
from activity_tracker.exceptions import CaptureError
from activity_tracker.notifications import LoggingNotifier, Notifier

logger = logging.getLogger(__name__)

SubmitFn = Callable[[ActivityRecord], Awaitable[None]]


class ActivityLogger:
    """Capture edits while tracking is enabled and submit them with retries.

    Each capture computes the change summary once against the cached
    snapshot, updates the cache, then hands the record to ``submit``. A
    failing submission is retried up to ``retry_attempts`` times in total,
    waiting ``retry_delay * attempt`` between tries. When every attempt
    fails the operator is notified once and the record is dropped.
    """

    def __init__(
        self,
        submit: SubmitFn,
        config: CaptureConfig | None = None,
        notifier: Notifier | None = None,
        cache: ContentCache | None = None,
    ):
        self.config = config or CaptureConfig()
        self._submit = submit
        self.notifier = notifier or LoggingNotifier()
        self.cache = cache or ContentCache(self.config.max_cached_files)
        self._tracking = False

    @property
    def is_tracking(self) -> bool:
        return self._tracking

    def start(self) -> None:
        """Enable tracking."""
        self._tracking = True
        self.notifier.info(MSG_TRACKING_STARTED)

    def stop(self) -> None:
        """Disable tracking and forget every diff baseline.

        Submissions already in their retry loop are not interrupted.
        """
        self._tracking = False
        self.cache.clear()
        self.notifier.info(MSG_TRACKING_STOPPED)

    def track_changes(self, file: str, content: str) -> ChangeSummary:
        """Diff ``content`` against the cached snapshot and update the cache.

        Raises:
            CaptureError: If ``content`` is not text.
        """
        if not isinstance(content, str):
            raise CaptureError(f"Expected text content, got {type(content).__name__}", file=file)
        previous = self.cache.get(file)
        summary = detect_changes(previous, content)
        self.cache.put(file, content)
        return summary

    async def capture(self, file: str, content: str, project: str) -> ActivityRecord | None:
        """Record one edit event.

        Args:
            file: File identity (usually its path).
            content: Full text of the file after the edit.
            project: Project the file belongs to.

        Returns:
            The submitted record, or None when tracking is disabled or every
            submission attempt failed.
        """
        if not self._tracking:
            return None

        record = ActivityRecord(
            file=file,
            project=project,
            changes=self.track_changes(file, content),
        )

        attempts = self.config.retry_attempts
        for attempt in range(1, attempts + 1):
            try:
                await self._submit(record)
                return record
            except Exception as e:
                if attempt == attempts:
                    logger.error(f"Failed to log activity for {file}: {e}", exc_info=True)
                    self.notifier.error(MSG_CAPTURE_FAILED.format(attempts=attempts, error=e))
                    return None

                delay = self.config.retry_delay_seconds * attempt
                logger.warning(
                    f"Activity submission failed for {file} "
                    f"(attempt {attempt}/{attempts}), retrying in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)

        return None
