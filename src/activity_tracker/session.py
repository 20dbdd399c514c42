"""Activity session: the explicit context object owning the whole pipeline.

One ActivitySession is built per tracked workspace. It wires the content
cache, activity logger, queue, remote client and supervisor together and
exposes the operations an editor integration needs:

    session = ActivitySession.from_project(project_root, notifier=ConsoleNotifier())
    await session.activate()          # verify credential + destination
    session.start()
    await session.on_save_event(path, text, project)
    ...
    await session.aclose()            # stop timers, final flush
"""

import logging
from pathlib import Path
from types import TracebackType

from activity_tracker.capture.logger import ActivityLogger
from activity_tracker.capture.models import ActivityRecord
from activity_tracker.config import TrackerConfig, load_tracker_config
from activity_tracker.constants import MSG_ACTIVATION_FAILED
from activity_tracker.exceptions import (
    ConfigurationError,
    RemoteError,
    RemoteNotFoundError,
    SupervisorExhaustedError,
)
from activity_tracker.notifications import LoggingNotifier, Notifier
from activity_tracker.remote import RemoteSyncClient, create_sync_client
from activity_tracker.sync.models import FlushResult
from activity_tracker.sync.queue import ActivityQueue
from activity_tracker.sync.supervisor import PeriodicSupervisor

logger = logging.getLogger(__name__)


class ActivitySession:
    """Owns the capture → queue → remote pipeline for one workspace.

    A session is inert until ``activate`` succeeds: ``start`` refuses to
    enable tracking before that, so setup failures never lead to silently
    dropped records.
    """

    def __init__(
        self,
        config: TrackerConfig,
        client: RemoteSyncClient,
        notifier: Notifier | None = None,
    ):
        self.config = config
        self.client = client
        self.notifier = notifier or LoggingNotifier()

        self.queue = ActivityQueue(client, config.remote.repository, config.queue)
        self.activity_logger = ActivityLogger(self.queue.submit, config.capture, self.notifier)
        self.supervisor = PeriodicSupervisor(
            self.sync_state,
            config.supervisor,
            on_exhausted=self._on_supervisor_exhausted,
        )
        self._activated = False
        self.identity: str | None = None

    @classmethod
    def from_project(
        cls,
        project_root: Path,
        notifier: Notifier | None = None,
        config: TrackerConfig | None = None,
    ) -> "ActivitySession":
        """Build a session from a project's configuration.

        Raises:
            ConfigurationError: If the remote client cannot be created
                (e.g. no credential).
        """
        config = config or load_tracker_config(project_root)
        try:
            client = create_sync_client(config.remote, project_root)
        except RemoteError as e:
            raise ConfigurationError(str(e), key="remote") from e
        return cls(config, client, notifier)

    @property
    def is_activated(self) -> bool:
        return self._activated

    @property
    def is_tracking(self) -> bool:
        return self.activity_logger.is_tracking

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def activate(self) -> None:
        """Verify the credential and destination, then start the supervisor.

        Raises:
            ConfigurationError: If the remote is unusable; the session stays inert.
        """
        repository = self.config.remote.repository
        try:
            self.identity = await self.client.verify()
            if not await self.client.exists(repository):
                raise RemoteNotFoundError(
                    f"Destination repository '{repository}' does not exist",
                    repository=repository,
                )
        except RemoteError as e:
            self.notifier.error(MSG_ACTIVATION_FAILED.format(error=e))
            raise ConfigurationError(f"Cannot activate activity tracking: {e}", key="remote") from e

        self._activated = True
        logger.info(f"Activity session activated ({self.client.name}: {self.identity})")

        if self.config.supervisor.enabled:
            self.supervisor.start()

    def start(self) -> None:
        """Enable tracking.

        Raises:
            ConfigurationError: If the session was never activated.
        """
        if not self._activated:
            raise ConfigurationError("Activity session is not activated")
        self.activity_logger.start()

    def stop(self) -> None:
        """Disable tracking and clear the diff baselines."""
        self.activity_logger.stop()

    async def aclose(self) -> FlushResult:
        """Stop timers, flush remaining records and release the client."""
        await self.supervisor.stop()
        if self.activity_logger.is_tracking:
            self.activity_logger.stop()
        try:
            result = await self.queue.aclose()
        finally:
            await self.client.aclose()
        self._activated = False
        return result

    async def __aenter__(self) -> "ActivitySession":
        await self.activate()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Editor integration
    # ------------------------------------------------------------------

    async def on_save_event(
        self, document: str, text: str, project: str
    ) -> ActivityRecord | None:
        """Handle a "file saved" event from the editor integration."""
        return await self.activity_logger.capture(document, text, project)

    # ------------------------------------------------------------------
    # Supervised sync
    # ------------------------------------------------------------------

    async def sync_state(self) -> FlushResult:
        """Full-state sync: check the destination, then flush every buffer.

        Raises:
            RemoteNotFoundError: If the destination repository disappeared.
            RemoteError: If any project failed to flush.
        """
        repository = self.config.remote.repository
        if not await self.client.exists(repository):
            raise RemoteNotFoundError(
                f"Destination repository '{repository}' does not exist",
                repository=repository,
            )

        result = await self.queue.flush()
        if not result.success:
            failed = ", ".join(sorted(result.errors))
            raise RemoteError(f"Sync failed for project(s): {failed}", repository=repository)
        return result

    def _on_supervisor_exhausted(self, error: SupervisorExhaustedError) -> None:
        self.notifier.error(str(error))
