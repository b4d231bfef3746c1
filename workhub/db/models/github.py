"""
Source-control models maintained by the GitHub webhook reconciler.

Natural keys:
- repository: github_repo_id (and project_id, 1:1)
- branch: (repository_id, name)
- git_commit: sha
- pull_request: (repository_id, github_pr_id)
- pr_check: (pull_request_id, name)
"""

from datetime import datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING

from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint

from workhub.db.models._base import created_at_field, timestamp_field

if TYPE_CHECKING:
    from workhub.db.models.workspace import Project

DEFAULT_BRANCH_NAMES = frozenset({"main", "master"})
UNKNOWN_HEAD_SHA = "unknown"


class PullRequestState(str, Enum):
    """Pull request lifecycle state."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    MERGED = "MERGED"
    DRAFT = "DRAFT"


class CheckStatus(str, Enum):
    """CI check status."""

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"
    NEUTRAL = "NEUTRAL"
    SKIPPED = "SKIPPED"


# -----------------------------------------------------------------------------
# Repository
# -----------------------------------------------------------------------------
class Repository(SQLModel, table=True):
    """
    Repository table.

    Bound 1:1 to a Project. Issue keys are matched with the project's prefix.
    ``access_token`` is an encrypted GitHub token (see workhub.core.crypto).
    """

    __tablename__ = "repository"

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="project.id", unique=True, index=True)
    github_repo_id: str = Field(unique=True, index=True)
    full_name: str = Field(description="Repository full name, e.g., 'owner/repo'")
    owner: str
    name: str
    default_branch: str = Field(default="main")
    webhook_secret: Optional[str] = None
    access_token: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    created_at: datetime = created_at_field()

    project: Optional["Project"] = Relationship(back_populates="repository")

    @property
    def issue_prefix(self) -> Optional[str]:
        """Issue key prefix inherited from the project (requires project loaded)."""
        return self.project.issue_prefix if self.project else None


# -----------------------------------------------------------------------------
# Branch
# -----------------------------------------------------------------------------
class Branch(SQLModel, table=True):
    __tablename__ = "branch"

    id: Optional[int] = Field(default=None, primary_key=True)
    repository_id: int = Field(foreign_key="repository.id", index=True)
    name: str
    head_sha: str = Field(default=UNKNOWN_HEAD_SHA)
    issue_id: Optional[int] = Field(default=None, foreign_key="issue.id", index=True)
    is_default: bool = Field(default=False)
    created_at: datetime = created_at_field()
    updated_at: Optional[datetime] = timestamp_field()

    __table_args__ = (
        UniqueConstraint("repository_id", "name", name="uq_branch_repository_name"),
    )


# -----------------------------------------------------------------------------
# Commit
# -----------------------------------------------------------------------------
class Commit(SQLModel, table=True):
    """
    Commit table.

    Author identity and commit_date are written once; message, branch link,
    issue link and stats are refreshed on every upsert.
    """

    __tablename__ = "git_commit"

    id: Optional[int] = Field(default=None, primary_key=True)
    sha: str = Field(unique=True, index=True)
    repository_id: int = Field(foreign_key="repository.id", index=True)
    branch_id: Optional[int] = Field(
        default=None, foreign_key="branch.id", index=True, ondelete="SET NULL"
    )
    issue_id: Optional[int] = Field(default=None, foreign_key="issue.id", index=True)
    pull_request_id: Optional[int] = Field(
        default=None, foreign_key="pull_request.id", index=True
    )
    message: str = Field(sa_column=Column(Text, nullable=False))
    author_name: str
    author_email: str
    commit_date: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    additions: Optional[int] = None
    deletions: Optional[int] = None
    created_at: datetime = created_at_field()
    updated_at: Optional[datetime] = timestamp_field()


# -----------------------------------------------------------------------------
# Pull Request
# -----------------------------------------------------------------------------
class PullRequest(SQLModel, table=True):
    """
    Pull Request table.

    Composite unique key: (repository_id, github_pr_id)
    """

    __tablename__ = "pull_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    repository_id: int = Field(foreign_key="repository.id", index=True)
    github_pr_id: int = Field(index=True, description="GitHub PR number")
    title: str
    description: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    state: str = Field(
        default=PullRequestState.OPEN,
        sa_column=Column(String, nullable=False, default=PullRequestState.OPEN),
    )
    base_branch_id: Optional[int] = Field(
        default=None, foreign_key="branch.id", ondelete="SET NULL"
    )
    head_branch_id: Optional[int] = Field(
        default=None, foreign_key="branch.id", index=True, ondelete="SET NULL"
    )
    issue_id: Optional[int] = Field(default=None, foreign_key="issue.id", index=True)
    created_by_id: Optional[int] = None
    merged_by_id: Optional[int] = None
    merged_at: Optional[datetime] = timestamp_field()
    closed_at: Optional[datetime] = timestamp_field()
    github_created_at: Optional[datetime] = timestamp_field()
    github_updated_at: Optional[datetime] = timestamp_field()
    created_at: datetime = created_at_field()
    updated_at: Optional[datetime] = timestamp_field()

    __table_args__ = (
        UniqueConstraint(
            "repository_id", "github_pr_id", name="uq_pull_request_identity"
        ),
    )


# -----------------------------------------------------------------------------
# PR Check
# -----------------------------------------------------------------------------
class PRCheck(SQLModel, table=True):
    __tablename__ = "pr_check"

    id: Optional[int] = Field(default=None, primary_key=True)
    pull_request_id: int = Field(foreign_key="pull_request.id", index=True)
    name: str
    status: str = Field(
        default=CheckStatus.PENDING,
        sa_column=Column(String, nullable=False, default=CheckStatus.PENDING),
    )
    conclusion: Optional[str] = None
    details_url: Optional[str] = None
    github_check_id: Optional[str] = None
    started_at: Optional[datetime] = timestamp_field()
    completed_at: Optional[datetime] = timestamp_field()
    created_at: datetime = created_at_field()
    updated_at: Optional[datetime] = timestamp_field()

    __table_args__ = (
        UniqueConstraint("pull_request_id", "name", name="uq_pr_check_name"),
    )
