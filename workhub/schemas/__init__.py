"""
Schema and DTO package.
"""

from workhub.schemas.apps import AppAuthContext
from workhub.schemas.github import (
    BranchData,
    CommitData,
    CommitProcessingResult,
    CommitStats,
    PRCheckData,
    PullRequestData,
    PullRequestUpdate,
    RepositoryContext,
    StatsBackfillResult,
)

__all__ = [
    "AppAuthContext",
    "BranchData",
    "CommitData",
    "CommitProcessingResult",
    "CommitStats",
    "PRCheckData",
    "PullRequestData",
    "PullRequestUpdate",
    "RepositoryContext",
    "StatsBackfillResult",
]
