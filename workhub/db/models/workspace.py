"""
Workspace-side models referenced by the reconciler and the app auth gate.

These tables are owned by the issue-tracking domain; only the columns this
service reads or joins on are modelled here.
"""

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import UniqueConstraint

from workhub.db.models._base import created_at_field

if TYPE_CHECKING:
    from workhub.db.models.github import Repository


class Workspace(SQLModel, table=True):
    __tablename__ = "workspace"

    id: Optional[int] = Field(default=None, primary_key=True)
    slug: str = Field(unique=True, index=True)
    name: str
    created_at: datetime = created_at_field()


class User(SQLModel, table=True):
    __tablename__ = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: Optional[str] = Field(default=None, unique=True, index=True)
    name: Optional[str] = None
    github_id: Optional[int] = Field(default=None, index=True)
    created_at: datetime = created_at_field()


class Project(SQLModel, table=True):
    """
    Project table.

    ``issue_prefix`` is the literal prefix of issue keys, e.g. "ABC" for ABC-42.
    """

    __tablename__ = "project"

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: int = Field(foreign_key="workspace.id", index=True)
    name: str
    slug: str
    issue_prefix: str = Field(description="Issue key prefix, e.g. 'ABC'")
    created_at: datetime = created_at_field()

    repository: Optional["Repository"] = Relationship(
        back_populates="project", sa_relationship_kwargs={"uselist": False}
    )

    __table_args__ = (
        UniqueConstraint("workspace_id", "slug", name="uq_project_workspace_slug"),
    )


class Issue(SQLModel, table=True):
    """
    Issue table.

    ``issue_key`` is stored uppercase and is unique within a project.
    """

    __tablename__ = "issue"

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="project.id", index=True)
    workspace_id: int = Field(foreign_key="workspace.id", index=True)
    issue_key: str = Field(index=True, description="Human key, e.g. 'ABC-42'")
    title: str
    status: str = Field(default="todo")
    created_at: datetime = created_at_field()

    __table_args__ = (
        UniqueConstraint("project_id", "issue_key", name="uq_issue_project_key"),
    )
