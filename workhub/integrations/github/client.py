"""
GitHub REST API client.

Only the endpoints the reconciler needs are wrapped. Path segments are
validated before any URL is built so user-controlled owner/repo/sha values
cannot redirect the request.
"""

import re
from typing import Any, Dict, Optional

import httpx

from workhub.core.config import settings

SAFE_PATH_SEGMENT = re.compile(r"^[A-Za-z0-9_.-]+$")
COMMIT_SHA = re.compile(r"^[0-9a-fA-F]{40}$")


def is_safe_path_segment(value: Optional[str]) -> bool:
    """True for GitHub owner/repo names; rejects '/', whitespace, ';' and friends."""
    return bool(value) and SAFE_PATH_SEGMENT.match(value) is not None and value not in (".", "..")


def is_commit_sha(value: Optional[str]) -> bool:
    """True for a full 40-character hex commit sha."""
    return bool(value) and COMMIT_SHA.match(value) is not None


class GitHubClient:
    """Client for interacting with GitHub REST API."""

    def __init__(
        self,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: OAuth or installation access token
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.token = token
        self.transport = transport
        self.base_url = settings.GITHUB_API_URL.rstrip("/")
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": settings.GITHUB_API_VERSION,
            "User-Agent": "Workhub-Sync/1.0",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.transport, timeout=settings.GITHUB_REQUEST_TIMEOUT
        )

    async def get_commit(self, owner: str, repo: str, sha: str) -> Dict[str, Any]:
        """
        Get a single commit, including its ``stats`` block.

        Args:
            owner: Repository owner (e.g., "octocat")
            repo: Repository name (e.g., "Hello-World")
            sha: Full commit sha

        Raises:
            ValueError: If owner, repo or sha fail validation.
            httpx.HTTPError: On transport errors or non-2xx responses.
        """
        if not (is_safe_path_segment(owner) and is_safe_path_segment(repo)):
            raise ValueError("Invalid repository owner or name")
        if not is_commit_sha(sha):
            raise ValueError("Invalid commit sha")

        url = f"{self.base_url}/repos/{owner}/{repo}/commits/{sha}"

        async with self._client() as client:
            response = await client.get(url, headers=self.headers)
            response.raise_for_status()
            return response.json()
