"""Periodic supervisor with a circuit breaker.

Runs a full-state sync operation on a fixed schedule, independent of the
activity queue's own flush timer. Consecutive failures are counted; once
they reach ``max_retries`` the supervisor stops itself and reports a
SupervisorExhaustedError. It never restarts on its own.

State machine:
    STOPPED --start()--> RUNNING
    RUNNING --tick ok--> RUNNING (failure count reset)
    RUNNING --tick failed, count < max--> RUNNING
    RUNNING --tick failed, count == max--> STOPPED (+ exhausted event)
    RUNNING --stop()--> STOPPED
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from activity_tracker.config import SupervisorConfig
from activity_tracker.constants import MSG_SUPERVISOR_EXHAUSTED
from activity_tracker.exceptions import SupervisorExhaustedError
from activity_tracker.sync.models import SupervisorState

logger = logging.getLogger(__name__)

SyncOperation = Callable[[], Awaitable[object]]
ExhaustedCallback = Callable[[SupervisorExhaustedError], None]


class PeriodicSupervisor:
    """Timer-driven sync attempts that trip after repeated failure.

    Args:
        operation: Async callable performing one full-state sync; any
            exception counts as a failed tick.
        config: Interval and retry limit.
        on_exhausted: Called with the SupervisorExhaustedError when the
            breaker trips, so the condition always reaches someone.
    """

    def __init__(
        self,
        operation: SyncOperation,
        config: SupervisorConfig | None = None,
        on_exhausted: ExhaustedCallback | None = None,
    ):
        self._operation = operation
        self.config = config or SupervisorConfig()
        self._on_exhausted = on_exhausted

        self._state = SupervisorState.STOPPED
        self._failures = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SupervisorState.RUNNING

    @property
    def failure_count(self) -> int:
        """Consecutive failed ticks; kept after the breaker trips for inspection."""
        return self._failures

    def start(self) -> None:
        """Start the periodic timer. No-op if already running.

        Must be called from within a running event loop.
        """
        if self._state is SupervisorState.RUNNING:
            return
        self._state = SupervisorState.RUNNING
        self._failures = 0
        self._task = asyncio.create_task(self._run(), name="activity_supervisor")
        logger.info(f"Periodic sync supervisor started (every {self.config.interval_seconds:.0f}s)")

    async def stop(self) -> None:
        """Stop the timer and reset the failure counter."""
        self._state = SupervisorState.STOPPED
        self._failures = 0
        task, self._task = self._task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.debug("Periodic sync supervisor stopped")

    async def _run(self) -> None:
        while self._state is SupervisorState.RUNNING:
            await asyncio.sleep(self.config.interval_seconds)
            try:
                await self.tick()
            except SupervisorExhaustedError as e:
                logger.error(str(e))
                if self._on_exhausted is not None:
                    self._on_exhausted(e)
                return

    async def tick(self) -> bool:
        """Run one sync attempt.

        Returns:
            True on success, False on a failure that did not trip the breaker.

        Raises:
            SupervisorExhaustedError: When this failure reaches ``max_retries``.
        """
        if self._state is not SupervisorState.RUNNING:
            logger.debug("Supervisor tick ignored while stopped")
            return False

        try:
            await self._operation()
        except Exception as e:
            self._failures += 1
            logger.error(
                f"Periodic sync failed ({self._failures}/{self.config.max_retries}): {e}",
                exc_info=True,
            )
            if self._failures >= self.config.max_retries:
                self._trip()
                raise SupervisorExhaustedError(
                    MSG_SUPERVISOR_EXHAUSTED.format(failures=self._failures),
                    failures=self._failures,
                    last_error=e,
                ) from e
            return False

        self._failures = 0
        return True

    def _trip(self) -> None:
        """Open the breaker: stop and clear the timer without resetting the count."""
        self._state = SupervisorState.STOPPED
        task, self._task = self._task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
