"""Base classes for remote stores.

Defines the abstract interface the sync pipeline depends on and the
shared data structures returned by it. Authentication and endpoint
binding are supplied to implementations from outside.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from activity_tracker.constants import ACTIVITY_LOG_PATH_TEMPLATE


def activity_log_path(project: str) -> str:
    """Path of a project's activity log inside the destination repository."""
    return ACTIVITY_LOG_PATH_TEMPLATE.format(project=project)


@dataclass(frozen=True)
class RemoteFile:
    """A file read from the remote store.

    Attributes:
        content: Decoded UTF-8 text of the file.
        token: Opaque concurrency token; pass it back to ``write`` to update.
    """

    content: str
    token: str


class RemoteSyncClient(ABC):
    """Abstract base class for remote store clients.

    A missing file is not an error: ``read`` returns None. Every other
    failure is raised as a RemoteError subclass and is never retried here;
    retry policy belongs to the caller.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable client name."""
        ...

    @abstractmethod
    async def verify(self) -> str:
        """Check that the credential works.

        Returns:
            Identity the client acts as (e.g. the authenticated login).

        Raises:
            RemoteAuthError: If the credential is missing or rejected.
            TransientRemoteError: If the remote cannot be reached.
        """
        ...

    @abstractmethod
    async def exists(self, repository: str) -> bool:
        """Return True if the destination repository exists."""
        ...

    @abstractmethod
    async def read(self, repository: str, path: str) -> RemoteFile | None:
        """Read a file, or return None if it does not exist."""
        ...

    @abstractmethod
    async def write(
        self,
        repository: str,
        path: str,
        content: str,
        message: str,
        token: str | None = None,
    ) -> None:
        """Create or replace a file.

        Args:
            repository: Destination repository name.
            path: File path inside the repository.
            content: Full new file content.
            message: Commit message describing the write.
            token: Token from the preceding read when updating an existing
                file; None when creating.

        Raises:
            ConcurrencyConflictError: If ``token`` is stale, or is None
                while the file already exists.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources. No-op by default."""
        return None
