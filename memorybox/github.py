"""
Memory Box Uploader - GitHub Contents Client

Async read-one-file / write-one-file primitives against the GitHub REST
"contents" API, used as the remote content store.

Uses httpx for async HTTP with a bearer token.  The git blob ``sha`` of a
file is its revision marker: a write that updates a file must present the
sha it last saw, and GitHub rejects it if the file has moved on since.

The client never retries and never guesses.  A 404 is the only answer that
means "absent"; every other failure is raised with the destination path and
phase attached so the caller can tell which write broke.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from memorybox.config import APP_VERSION, StoreConfig
from memorybox.errors import (
    AuthError,
    Conflict,
    NetworkError,
    NotFound,
    RateLimited,
    RemoteStoreError,
)

GITHUB_API_VERSION = "2022-11-28"


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------
@dataclass
class RemoteFile:
    """A file read back from the repository."""

    path: str
    sha: str
    content: bytes
    size: int = 0


@dataclass
class CommitResult:
    """Outcome of a single successful write."""

    path: str
    sha: str  # new blob sha of the destination
    commit_sha: str
    created: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "sha": self.sha,
            "commit_sha": self.commit_sha,
            "created": self.created,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _encode_path(path: str) -> str:
    """Encode path segments individually to preserve slashes."""
    clean = path.strip("/")
    return "/".join(quote(seg, safe="") for seg in clean.split("/"))


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text[:200]


def _json_body(response: httpx.Response, path: str, phase: str) -> Any:
    """Decode a success body, raising RemoteStoreError if it is not JSON."""
    try:
        return response.json()
    except ValueError as e:
        raise RemoteStoreError(
            f"GitHub returned a non-JSON body (HTTP {response.status_code}): {response.text[:200]}",
            path=path,
            phase=phase,
            status=response.status_code,
        ) from e


def _raise_for_status(response: httpx.Response, path: str, phase: str) -> None:
    """Translate a non-success API response into the error taxonomy."""
    status = response.status_code
    message = _error_message(response)
    context = {"path": path, "phase": phase, "status": status}

    if status == 401:
        raise AuthError(f"GitHub rejected the token: {message}", **context)
    if status == 403 or status == 429:
        remaining = response.headers.get("x-ratelimit-remaining")
        retry_after = response.headers.get("retry-after")
        if status == 429 or remaining == "0" or "rate limit" in message.lower():
            raise RateLimited(
                f"GitHub rate limit exceeded: {message}",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                **context,
            )
        raise AuthError(f"GitHub denied access: {message}", **context)
    if status >= 500:
        raise NetworkError(f"GitHub unavailable (HTTP {status}): {message}", **context)
    raise RemoteStoreError(f"Unexpected GitHub response (HTTP {status}): {message}", **context)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------
class GitHubContentStore:
    """Read and write single files of one repository branch.

    Pass *client* to reuse a shared :class:`httpx.AsyncClient`; otherwise one
    is created from the config (and closed by :meth:`aclose`).  *transport*
    is forwarded to the created client, which is how tests plug in a fake API.
    """

    def __init__(
        self,
        config: StoreConfig,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.api_url.rstrip("/"),
            headers=self._default_headers(),
            timeout=config.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubContentStore":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _default_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": f"memorybox-uploader/{APP_VERSION}",
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _contents_url(self, path: str) -> str:
        return f"/repos/{self.config.owner}/{self.config.repo}/contents/{_encode_path(path)}"

    async def _request(self, method: str, url: str, path: str, phase: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"GitHub request failed: {e}", path=path, phase=phase) from e

    async def _get_contents(self, path: str) -> dict[str, Any] | None:
        response = await self._request(
            "GET",
            self._contents_url(path),
            path,
            "read",
            params={"ref": self.config.branch},
        )
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            _raise_for_status(response, path, "read")

        data = _json_body(response, path, "read")
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise Conflict(
                "Destination exists but is not a file",
                path=path,
                phase="read",
                status=response.status_code,
            )
        return data

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------
    async def resolve_revision(self, path: str) -> str | None:
        """
        Return the current blob sha of *path*, or None if it does not exist.

        Only a 404 yields None.  Auth, rate-limit and network failures raise,
        because "could not determine" is not the same as "absent".
        """
        data = await self._get_contents(path)
        if data is None:
            logger.debug("🔎 {} does not exist on {}", path, self.config.branch)
            return None
        sha = data.get("sha")
        logger.debug("🔎 {} is at {}", path, sha)
        return sha

    async def read_file(self, path: str) -> RemoteFile:
        """Download *path* and return its bytes with the current sha."""
        data = await self._get_contents(path)
        if data is None:
            raise NotFound(f"{path} does not exist", path=path, phase="read", status=404)

        if data.get("encoding") == "base64":
            content = base64.b64decode(data.get("content") or "")
        else:
            # Files above 1 MB come back without inline content
            response = await self._request(
                "GET",
                self._contents_url(path),
                path,
                "read",
                params={"ref": self.config.branch},
                headers={"Accept": "application/vnd.github.raw+json"},
            )
            if response.status_code != 200:
                _raise_for_status(response, path, "read")
            content = response.content

        return RemoteFile(
            path=path,
            sha=data["sha"],
            content=content,
            size=int(data.get("size") or len(content)),
        )

    async def write(
        self,
        path: str,
        content: bytes,
        message: str,
        revision: str | None,
    ) -> CommitResult:
        """
        Create *path* (revision None) or update it in place (revision given).

        Raises Conflict when GitHub's optimistic-concurrency check fails:
        409 for a stale sha, 422 for a create that lost a race.
        """
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.config.branch,
        }
        if revision is not None:
            body["sha"] = revision
        if self.config.committer_name and self.config.committer_email:
            body["committer"] = {
                "name": self.config.committer_name,
                "email": self.config.committer_email,
            }

        response = await self._request("PUT", self._contents_url(path), path, "write", json=body)

        if response.status_code == 409:
            raise Conflict(
                f"{path} was modified concurrently: {_error_message(response)}",
                path=path,
                phase="write",
                status=409,
            )
        if response.status_code == 422 and revision is None:
            raise Conflict(
                f"{path} was created concurrently: {_error_message(response)}",
                path=path,
                phase="write",
                status=422,
            )
        if response.status_code not in (200, 201):
            _raise_for_status(response, path, "write")

        data = _json_body(response, path, "write")
        result = CommitResult(
            path=path,
            sha=data.get("content", {}).get("sha", ""),
            commit_sha=data.get("commit", {}).get("sha", ""),
            created=response.status_code == 201,
        )
        logger.info(
            "⬆️ {} {} ({} bytes)",
            "Created" if result.created else "Updated",
            path,
            len(content),
        )
        return result

    async def check_connection(self) -> dict[str, Any]:
        """
        Test access to the configured repository.
        Returns a status dict with 'connected' bool and optional error info.
        """
        if not self.config.is_configured:
            return {
                "connected": False,
                "error": "GitHub is not configured. Set GITHUB_OWNER, GITHUB_REPO, and GITHUB_TOKEN.",
            }

        url = f"/repos/{self.config.owner}/{self.config.repo}"
        try:
            response = await self._request("GET", url, self.config.repository, "read")
            if response.status_code != 200:
                _raise_for_status(response, self.config.repository, "read")
            data = _json_body(response, self.config.repository, "read")
        except RemoteStoreError as e:
            logger.warning("⚠️ GitHub connection issue: {}", e)
            return {"connected": False, "error": str(e)}

        permissions = data.get("permissions") or {}
        logger.info("✅ GitHub connection successful ({})", self.config.repository)
        return {
            "connected": True,
            "repository": self.config.repository,
            "branch": self.config.branch,
            "can_push": bool(permissions.get("push")),
        }
