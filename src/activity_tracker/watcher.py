"""Save-event source backed by file system notifications.

Stands in for an editor's "document saved" hook: watches a workspace
with watchdog and forwards each settled file write to
``ActivitySession.on_save_event``. The watchdog observer runs in its own
thread; events are handed to the event loop with ``call_soon_threadsafe``
so every session call happens on the loop.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from activity_tracker.constants import WATCHER_DEBOUNCE_SECONDS, WATCHER_IGNORED_DIRECTORIES
from activity_tracker.session import ActivitySession

logger = logging.getLogger(__name__)


def project_name_for(workspace_root: Path) -> str:
    """Project name of a workspace: its folder name."""
    return workspace_root.resolve().name


class _SaveEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: "SaveWatcher") -> None:
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.notify(Path(str(event.src_path)))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.notify(Path(str(event.src_path)))

    def on_moved(self, event: FileSystemEvent) -> None:
        # Editors often save by writing a temp file and renaming it over the target
        if not event.is_directory:
            self.watcher.notify(Path(str(event.dest_path)))


class SaveWatcher:
    """Watch a workspace and report saved files to an activity session.

    Bursts of events for the same file within ``debounce_seconds`` are
    coalesced into one save event.
    """

    def __init__(
        self,
        workspace_root: Path,
        session: ActivitySession,
        loop: asyncio.AbstractEventLoop,
        project: str | None = None,
        debounce_seconds: float = WATCHER_DEBOUNCE_SECONDS,
    ):
        self.workspace_root = workspace_root.resolve()
        self.session = session
        self.loop = loop
        self.project = project or project_name_for(self.workspace_root)
        self.debounce_seconds = debounce_seconds

        self._observer: Any = None
        self._pending: dict[Path, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def should_watch(self, path: Path) -> bool:
        """Ignore files outside the workspace and inside tool directories."""
        try:
            relative = path.resolve().relative_to(self.workspace_root)
        except ValueError:
            return False
        return not any(part in WATCHER_IGNORED_DIRECTORIES for part in relative.parts[:-1])

    def notify(self, path: Path) -> None:
        """Thread-safe entry point for file system events."""
        if self.should_watch(path):
            self.loop.call_soon_threadsafe(self._schedule, path)

    def _schedule(self, path: Path) -> None:
        handle = self._pending.pop(path, None)
        if handle is not None:
            handle.cancel()
        self._pending[path] = self.loop.call_later(self.debounce_seconds, self._dispatch, path)

    def _dispatch(self, path: Path) -> None:
        self._pending.pop(path, None)
        task = self.loop.create_task(self._emit(path))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _emit(self, path: Path) -> None:
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping unreadable file {path}: {e}")
            return

        logger.debug(f"Save event: {path}")
        await self.session.on_save_event(str(path), text, self.project)

    def start(self) -> None:
        """Start the watchdog observer."""
        if self._observer is not None:
            logger.info("Save watcher already running")
            return

        observer = Observer()
        observer.schedule(_SaveEventHandler(self), str(self.workspace_root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info(f"Watching {self.workspace_root} for saves (project: {self.project})")

    async def stop(self) -> None:
        """Stop the observer and wait for save events already dispatched."""
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            await asyncio.to_thread(observer.join, 5.0)

        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Save watcher stopped")
