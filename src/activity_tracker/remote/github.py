"""GitHub remote store client.

Reads and writes files in a GitHub repository through the REST "contents"
API. The blob sha returned by a read is the concurrency token: passing it
back on write makes the update conditional, and GitHub rejects the write
if the file changed in between.
"""

import base64
import logging
from typing import Any
from urllib.parse import quote

import httpx

from activity_tracker.config import RemoteConfig
from activity_tracker.constants import (
    DEFAULT_GITHUB_API_URL,
    DEFAULT_REMOTE_TIMEOUT_SECONDS,
    GITHUB_ACCEPT_HEADER,
    GITHUB_API_VERSION,
    GITHUB_API_VERSION_HEADER,
    GITHUB_CONTENT_ENCODING_NONE,
    GITHUB_CONTENT_TYPE_FILE,
    GITHUB_RATE_LIMIT_REMAINING_HEADER,
    GITHUB_RAW_ACCEPT_HEADER,
    GITHUB_USER_AGENT,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    HTTP_STATUS_UNAUTHORIZED,
    HTTP_STATUS_UNPROCESSABLE,
)
from activity_tracker.exceptions import (
    ConcurrencyConflictError,
    RemoteAuthError,
    RemoteError,
    TransientRemoteError,
)
from activity_tracker.remote.base import RemoteFile, RemoteSyncClient

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Extract GitHub's error message from a response body."""
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase


def raise_for_remote_status(
    response: httpx.Response,
    repository: str | None = None,
    path: str | None = None,
) -> None:
    """Translate an unsuccessful GitHub response into a RemoteError.

    Raises:
        RemoteAuthError: 401, or 403 that is not a rate limit.
        TransientRemoteError: 429, rate-limited 403, or any 5xx.
        ConcurrencyConflictError: 409 or 422 on a contents write.
        RemoteError: Any other non-2xx status.
    """
    if response.is_success:
        return

    status = response.status_code
    message = _error_message(response)
    kwargs: dict[str, Any] = {"repository": repository, "path": path, "status_code": status}

    if status == HTTP_STATUS_UNAUTHORIZED:
        raise RemoteAuthError(f"GitHub rejected the credential: {message}", **kwargs)
    if status == HTTP_STATUS_FORBIDDEN:
        if response.headers.get(GITHUB_RATE_LIMIT_REMAINING_HEADER) == "0":
            raise TransientRemoteError(f"GitHub rate limit exceeded: {message}", **kwargs)
        raise RemoteAuthError(f"GitHub denied access: {message}", **kwargs)
    if status == HTTP_STATUS_TOO_MANY_REQUESTS:
        raise TransientRemoteError(f"GitHub rate limit exceeded: {message}", **kwargs)
    if status >= HTTP_STATUS_SERVER_ERROR_MIN:
        raise TransientRemoteError(f"GitHub server error: {message}", **kwargs)
    if status in (HTTP_STATUS_CONFLICT, HTTP_STATUS_UNPROCESSABLE) and path:
        raise ConcurrencyConflictError(f"File changed on the remote: {message}", **kwargs)
    raise RemoteError(f"GitHub request failed: {message}", **kwargs)


class GitHubSyncClient(RemoteSyncClient):
    """Remote store backed by GitHub repositories of one owner.

    Args:
        token: Pre-authenticated access token.
        api_url: Base URL of the REST API.
        owner: Repository owner; resolved from the token when None.
        branch: Branch to read from and commit to; repository default when None.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_GITHUB_API_URL,
        owner: str | None = None,
        branch: str | None = None,
        timeout: float = DEFAULT_REMOTE_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            raise RemoteAuthError("A GitHub token is required")
        self._owner = owner
        self._branch = branch
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": GITHUB_ACCEPT_HEADER,
                GITHUB_API_VERSION_HEADER: GITHUB_API_VERSION,
                "User-Agent": GITHUB_USER_AGENT,
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: RemoteConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GitHubSyncClient":
        """Build a client from remote configuration.

        Raises:
            RemoteAuthError: If no token can be resolved.
        """
        token = config.get_token()
        if not token:
            raise RemoteAuthError("No GitHub token configured")
        return cls(
            token=token,
            api_url=config.api_url,
            owner=config.owner,
            branch=config.branch,
            timeout=config.timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "github"

    @property
    def owner(self) -> str | None:
        return self._owner

    async def _request(
        self,
        method: str,
        url: str,
        repository: str | None = None,
        path: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, mapping transport failures to TransientRemoteError."""
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientRemoteError(
                f"GitHub request timed out: {e}", repository=repository, path=path
            ) from e
        except httpx.TransportError as e:
            raise TransientRemoteError(
                f"Could not reach GitHub: {e}", repository=repository, path=path
            ) from e

    async def verify(self) -> str:
        """Resolve the authenticated login and fill in the owner if unset."""
        response = await self._request("GET", "/user")
        raise_for_remote_status(response)
        login = str(response.json()["login"])
        if self._owner is None:
            self._owner = login
        logger.info(f"Authenticated to GitHub as {login}")
        return login

    async def _get_owner(self) -> str:
        if self._owner is None:
            await self.verify()
        assert self._owner is not None
        return self._owner

    async def _contents_url(self, repository: str, path: str) -> str:
        owner = await self._get_owner()
        return f"/repos/{owner}/{repository}/contents/{quote(path, safe='/')}"

    async def exists(self, repository: str) -> bool:
        owner = await self._get_owner()
        response = await self._request("GET", f"/repos/{owner}/{repository}", repository)
        if response.status_code == HTTP_STATUS_NOT_FOUND:
            return False
        raise_for_remote_status(response, repository)
        return True

    async def read(self, repository: str, path: str) -> RemoteFile | None:
        url = await self._contents_url(repository, path)
        params = {"ref": self._branch} if self._branch else None
        response = await self._request("GET", url, repository, path, params=params)

        if response.status_code == HTTP_STATUS_NOT_FOUND:
            logger.debug(f"No remote file at {repository}/{path}")
            return None
        raise_for_remote_status(response, repository, path)

        data = response.json()
        if isinstance(data, list) or data.get("type") != GITHUB_CONTENT_TYPE_FILE:
            raise RemoteError(
                "Path points to a directory, not a file", repository=repository, path=path
            )

        sha = str(data["sha"])
        encoded = data.get("content") or ""
        if data.get("encoding") == GITHUB_CONTENT_ENCODING_NONE or (
            not encoded and data.get("size", 0) > 0
        ):
            content = await self._read_blob(repository, path, sha)
        else:
            content = base64.b64decode(encoded).decode("utf-8")
        return RemoteFile(content=content, token=sha)

    async def _read_blob(self, repository: str, path: str, sha: str) -> str:
        """Fetch the raw bytes of the blob a contents read pointed at."""
        owner = await self._get_owner()
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repository}/git/blobs/{sha}",
            repository,
            path,
            headers={"Accept": GITHUB_RAW_ACCEPT_HEADER},
        )
        raise_for_remote_status(response, repository, path)
        logger.debug(f"Read {repository}/{path} as raw blob ({len(response.content)} bytes)")
        return response.content.decode("utf-8")

    async def write(
        self,
        repository: str,
        path: str,
        content: str,
        message: str,
        token: str | None = None,
    ) -> None:
        url = await self._contents_url(repository, path)
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if token is not None:
            body["sha"] = token
        if self._branch:
            body["branch"] = self._branch

        response = await self._request("PUT", url, repository, path, json=body)
        raise_for_remote_status(response, repository, path)
        logger.debug(f"Wrote {repository}/{path} ({len(content)} bytes)")

    async def aclose(self) -> None:
        await self._client.aclose()
