"""Local directory remote store.

Mirrors the remote repository layout under a directory on disk
(``<root>/<repository>/<path>``). Useful offline and for trying the
pipeline without a GitHub credential. The concurrency token is the
SHA-256 of the file content, so stale writes are rejected just like on
the real remote.
"""

import asyncio
import hashlib
import logging
import threading
from pathlib import Path

from activity_tracker.exceptions import ConcurrencyConflictError, RemoteError
from activity_tracker.remote.base import RemoteFile, RemoteSyncClient

logger = logging.getLogger(__name__)


def content_token(content: str) -> str:
    """Concurrency token for a file's content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class LocalSyncClient(RemoteSyncClient):
    """Remote store backed by a local directory.

    Repositories are subdirectories of ``root``. ``create_repository``
    stands in for the out-of-band repository setup a real remote needs.
    """

    def __init__(self, root: Path):
        self.root = root
        self._write_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "local"

    def _resolve(self, repository: str, path: str) -> Path:
        repo_dir = (self.root / repository).resolve()
        target = (repo_dir / path).resolve()
        if not target.is_relative_to(repo_dir):
            raise RemoteError("Path escapes the repository", repository=repository, path=path)
        return target

    def create_repository(self, repository: str) -> Path:
        """Create the directory standing in for a remote repository."""
        repo_dir = self.root / repository
        repo_dir.mkdir(parents=True, exist_ok=True)
        return repo_dir

    async def verify(self) -> str:
        return str(self.root)

    async def exists(self, repository: str) -> bool:
        return (self.root / repository).is_dir()

    async def read(self, repository: str, path: str) -> RemoteFile | None:
        target = self._resolve(repository, path)
        try:
            content = await asyncio.to_thread(target.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise RemoteError(f"Failed to read file: {e}", repository=repository, path=path) from e
        return RemoteFile(content=content, token=content_token(content))

    async def write(
        self,
        repository: str,
        path: str,
        content: str,
        message: str,
        token: str | None = None,
    ) -> None:
        target = self._resolve(repository, path)
        await asyncio.to_thread(self._write_sync, target, repository, path, content, token)
        logger.debug(f"{message}: {repository}/{path}")

    def _write_sync(
        self, target: Path, repository: str, path: str, content: str, token: str | None
    ) -> None:
        """Check the token and replace the file as one step."""
        with self._write_lock:
            try:
                current = target.read_text(encoding="utf-8")
            except FileNotFoundError:
                current = None
            except OSError as e:
                raise RemoteError(
                    f"Failed to read file: {e}", repository=repository, path=path
                ) from e

            if current is None and token is not None:
                raise ConcurrencyConflictError(
                    "File was deleted on the remote", repository=repository, path=path
                )
            if current is not None and token != content_token(current):
                raise ConcurrencyConflictError(
                    "File changed on the remote", repository=repository, path=path
                )

            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
            except OSError as e:
                raise RemoteError(
                    f"Failed to write file: {e}", repository=repository, path=path
                ) from e
