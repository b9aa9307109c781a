"""
Memory Box Uploader - Pytest Configuration & Shared Fixtures

Provides reusable fixtures for:
- An in-memory fake of the GitHub contents API (httpx.MockTransport)
- A store config and client wired to that fake
- The default destination catalog
- Helpers for running coroutines from plain (sync) tests
"""

import asyncio
import base64
import hashlib
import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from memorybox.config import StoreConfig
from memorybox.github import GitHubContentStore
from memorybox.services.slots import DestinationCatalog

OWNER = "octo"
REPO = "memories"
CONTENT_ROOT = "public/files/database"


def git_blob_sha(content: bytes) -> str:
    """Compute the sha GitHub reports for a file with *content*."""
    header = f"blob {len(content)}\0".encode("ascii")
    return hashlib.sha1(header + content).hexdigest()


def run(coro):
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Fake GitHub contents API
# ---------------------------------------------------------------------------


class FakeGitHub:
    """
    Minimal stand-in for the contents endpoints of one repository.

    Files live in ``self.files``.  PUT enforces the same optimistic
    concurrency rules as GitHub: updating requires the current sha (422
    when missing, 409 when stale).  ``self.failures`` forces a status for a
    given (method, path) pair, optionally with response headers.
    """

    def __init__(self, owner: str = OWNER, repo: str = REPO) -> None:
        self.owner = owner
        self.repo = repo
        self.files: Dict[str, bytes] = {}
        self.failures: Dict[Tuple[str, str], Tuple[int, Dict[str, str]]] = {}
        self.requests: List[httpx.Request] = []
        self.put_bodies: List[Dict[str, Any]] = []
        self.commits = 0

    # -- helpers ----------------------------------------------------------

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def sha(self, path: str) -> str:
        return git_blob_sha(self.files[path])

    def fail(self, method: str, path: str, status: int, headers: Optional[Dict[str, str]] = None) -> None:
        self.failures[(method, path)] = (status, headers or {})

    @property
    def written_paths(self) -> List[str]:
        return [
            request.url.path.split("/contents/", 1)[1]
            for request in self.requests
            if request.method == "PUT"
        ]

    # -- request handling -------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        repo_path = f"/repos/{self.owner}/{self.repo}"
        url_path = request.url.path

        if url_path == repo_path:
            return httpx.Response(
                200,
                json={"full_name": f"{self.owner}/{self.repo}", "permissions": {"push": True}},
            )

        prefix = f"{repo_path}/contents/"
        if not url_path.startswith(prefix):
            return httpx.Response(404, json={"message": "Not Found"})

        path = url_path[len(prefix):]
        forced = self.failures.get((request.method, path))
        if forced is not None:
            status, headers = forced
            return httpx.Response(status, json={"message": f"forced {status}"}, headers=headers)

        if request.method == "GET":
            return self._get(path)
        if request.method == "PUT":
            return self._put(path, json.loads(request.content))
        return httpx.Response(405, json={"message": "Method Not Allowed"})

    def _get(self, path: str) -> httpx.Response:
        if path in self.files:
            content = self.files[path]
            return httpx.Response(
                200,
                json={
                    "type": "file",
                    "path": path,
                    "sha": git_blob_sha(content),
                    "size": len(content),
                    "encoding": "base64",
                    "content": base64.encodebytes(content).decode("ascii"),
                },
            )
        children = [p for p in self.files if p.startswith(path.rstrip("/") + "/")]
        if children:
            return httpx.Response(
                200,
                json=[{"type": "file", "path": p, "sha": self.sha(p)} for p in children],
            )
        return httpx.Response(404, json={"message": "Not Found"})

    def _put(self, path: str, body: Dict[str, Any]) -> httpx.Response:
        self.put_bodies.append(body)
        supplied = body.get("sha")
        exists = path in self.files

        if exists and supplied is None:
            return httpx.Response(
                422, json={"message": 'Invalid request.\n\n"sha" wasn\'t supplied.'}
            )
        if (exists and supplied != self.sha(path)) or (not exists and supplied is not None):
            return httpx.Response(409, json={"message": f"{path} does not match {supplied}"})

        self.files[path] = base64.b64decode(body["content"])
        self.commits += 1
        return httpx.Response(
            200 if exists else 201,
            json={
                "content": {"path": path, "sha": self.sha(path)},
                "commit": {"sha": f"commit{self.commits:04d}"},
            },
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Provide an empty fake repository for each test."""
    return FakeGitHub()


@pytest.fixture
def store_config() -> StoreConfig:
    """A fully configured store pointing at the fake API host."""
    return StoreConfig(
        owner=OWNER,
        repo=REPO,
        token="ghp_test_token",
        branch="main",
        api_url="https://api.github.test",
        timeout=5.0,
    )


@pytest.fixture
def make_store(fake_github: FakeGitHub, store_config: StoreConfig):
    """Factory for clients talking to ``fake_github``."""

    def _make(config: Optional[StoreConfig] = None) -> GitHubContentStore:
        return GitHubContentStore(config or store_config, transport=fake_github.transport)

    return _make


@pytest.fixture
def catalog() -> DestinationCatalog:
    """The default catalog: 7 images, 6 songs, one metadata document."""
    return DestinationCatalog.build(root=CONTENT_ROOT, metadata_filename="data.json")
