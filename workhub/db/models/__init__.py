"""
Database models package.

Import all models here so Alembic and ``SQLModel.metadata.create_all`` see them.
"""

from workhub.db.models.workspace import Workspace, User, Project, Issue
from workhub.db.models.github import (
    Repository,
    Branch,
    Commit,
    PullRequest,
    PullRequestState,
    PRCheck,
    CheckStatus,
)
from workhub.db.models.apps import App, AppStatus, AppInstallation, InstallationStatus

__all__ = [
    "Workspace",
    "User",
    "Project",
    "Issue",
    "Repository",
    "Branch",
    "Commit",
    "PullRequest",
    "PullRequestState",
    "PRCheck",
    "CheckStatus",
    "App",
    "AppStatus",
    "AppInstallation",
    "InstallationStatus",
]
