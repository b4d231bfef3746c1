"""
GitHub integration package.
"""

from workhub.integrations.github.client import (
    GitHubClient,
    is_commit_sha,
    is_safe_path_segment,
)

__all__ = [
    "GitHubClient",
    "is_commit_sha",
    "is_safe_path_segment",
]
