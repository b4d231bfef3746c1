"""
GitHub API Dependencies
"""

from typing import Optional

import httpx


def get_github_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for outbound GitHub calls; None means httpx's default network transport."""
    return None
