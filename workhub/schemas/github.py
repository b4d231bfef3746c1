"""
DTOs for the GitHub webhook reconciler.

Inputs are SQLModel (non-table) models; results that carry ORM rows are
dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlmodel import SQLModel, Field

from workhub.db.models.github import (
    CheckStatus,
    Commit,
    PullRequestState,
    UNKNOWN_HEAD_SHA,
)


class CommitData(SQLModel):
    """A single commit as delivered by a push webhook."""

    repository_id: int
    sha: str
    message: str
    author_name: str
    author_email: str
    commit_date: datetime
    branch_name: str
    additions: Optional[int] = None
    deletions: Optional[int] = None


class PullRequestData(SQLModel):
    """Pull request fields captured on the opened event."""

    repository_id: int
    github_pr_id: int
    title: str
    description: Optional[str] = None
    state: PullRequestState = PullRequestState.OPEN
    base_branch: str
    head_branch: str
    head_sha: Optional[str] = None
    created_by_id: Optional[int] = None
    github_created_at: Optional[datetime] = None
    github_updated_at: Optional[datetime] = None


class PullRequestUpdate(SQLModel):
    """
    Partial pull request update.

    Only fields explicitly set are written (``model_dump(exclude_unset=True)``),
    so ``merged_at=None`` clears the column while omitting it leaves it alone.
    """

    state: Optional[PullRequestState] = None
    merged_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    merged_by_id: Optional[int] = None


class BranchData(SQLModel):
    repository_id: int
    name: str
    head_sha: str = UNKNOWN_HEAD_SHA
    issue_id: Optional[int] = None


class PRCheckData(SQLModel):
    """A CI check result for a pull request."""

    pull_request_id: int
    name: str
    status: CheckStatus = CheckStatus.PENDING
    conclusion: Optional[str] = None
    details_url: Optional[str] = None
    github_check_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class CommitStats(SQLModel):
    sha: str
    additions: Optional[int] = Field(default=None, ge=0)
    deletions: Optional[int] = Field(default=None, ge=0)


@dataclass
class CommitProcessingResult:
    """
    Outcome of process_commit.

    ``warnings`` collects failures of best-effort steps (pull request
    linking) that did not stop the commit from being stored.
    """

    commit: Commit
    warnings: List[str] = field(default_factory=list)


@dataclass
class StatsBackfillResult:
    """Outcome of a commit stats batch; one warning per sha that was not updated."""

    updated: List[Commit] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RepositoryContext:
    """
    Repository and project fields the reconciler needs, detached from the session.

    Built once per webhook delivery and reused for every commit in a push, so
    a rollback inside one best-effort step cannot expire it.
    """

    id: int
    project_id: int
    issue_prefix: Optional[str]
    full_name: str
    owner: str
    name: str
    access_token: Optional[str] = None
