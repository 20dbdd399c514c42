"""Remote stores for activity logs.

Provides the abstract RemoteSyncClient and its GitHub and local-directory
implementations, plus a factory that picks one from configuration.
"""

from pathlib import Path

from activity_tracker.config import RemoteConfig
from activity_tracker.constants import REMOTE_BACKEND_LOCAL
from activity_tracker.remote.base import RemoteFile, RemoteSyncClient, activity_log_path
from activity_tracker.remote.github import GitHubSyncClient
from activity_tracker.remote.local import LocalSyncClient


def create_sync_client(config: RemoteConfig, project_root: Path) -> RemoteSyncClient:
    """Create the remote client selected by ``config.backend``.

    Raises:
        RemoteAuthError: If the GitHub backend has no token.
    """
    if config.backend == REMOTE_BACKEND_LOCAL:
        client = LocalSyncClient(config.get_local_path(project_root))
        client.create_repository(config.repository)
        return client
    return GitHubSyncClient.from_config(config)


__all__ = [
    "GitHubSyncClient",
    "LocalSyncClient",
    "RemoteFile",
    "RemoteSyncClient",
    "activity_log_path",
    "create_sync_client",
]
