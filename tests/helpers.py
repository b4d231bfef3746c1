"""Test helpers shared across modules."""

import json
from typing import Any, Dict, List, Optional

import httpx

from workhub.services.github.security import compute_signature

WEBHOOK_SECRET = "topsecret"
APP_TOKEN = "whk_live_3f9a0c1d2e4b5a6978c0d1e2f3a4b5c6"


def make_sha(seed: str) -> str:
    """Deterministic 40-char hex sha for a readable seed."""
    return seed.encode().hex().ljust(40, "0")[:40]


class FakeGitHub:
    """httpx.MockTransport handler that serves commit stats and records requests."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.stats: Dict[str, Dict[str, int]] = {}
        self.failures: Dict[str, int] = {}
        self.bodies: Dict[str, Any] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        sha = request.url.path.rsplit("/", 1)[-1]
        if sha in self.bodies:
            return httpx.Response(200, json=self.bodies[sha])
        if sha in self.failures:
            return httpx.Response(self.failures[sha], json={"message": "Not Found"})
        stats = self.stats.get(sha, {"additions": 10, "deletions": 2, "total": 12})
        return httpx.Response(200, json={"sha": sha, "stats": stats})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def signed_headers(
    event: str, body: bytes, secret: Optional[str] = WEBHOOK_SECRET, delivery: str = "d-1"
) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": delivery,
    }
    if secret is not None:
        headers["X-Hub-Signature-256"] = compute_signature(body, secret)
    return headers


def dump(payload: dict) -> bytes:
    return json.dumps(payload).encode()
