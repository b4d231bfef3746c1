"""
Third-party app marketplace models.

An AppInstallation binds an App to a Workspace and the User who authorized
it. It is the unit of authorization for the app API.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import JSON, Column, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB

from workhub.db.models._base import created_at_field, timestamp_field

if TYPE_CHECKING:
    from workhub.db.models.workspace import Workspace


class AppStatus(str, Enum):
    """Marketplace status of an app."""

    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    PUBLISHED = "PUBLISHED"
    SUSPENDED = "SUSPENDED"


class InstallationStatus(str, Enum):
    """Status of an app installation."""

    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    REVOKED = "REVOKED"


class App(SQLModel, table=True):
    __tablename__ = "app"

    id: Optional[int] = Field(default=None, primary_key=True)
    slug: str = Field(unique=True, index=True)
    name: str
    status: str = Field(
        default=AppStatus.DRAFT,
        sa_column=Column(String, nullable=False, default=AppStatus.DRAFT),
    )
    created_at: datetime = created_at_field()

    installations: List["AppInstallation"] = Relationship(back_populates="app")


class AppInstallation(SQLModel, table=True):
    """
    App Installation table.

    ``access_token`` is Fernet-encrypted; ``installed_by_id`` references a
    user without a foreign key, so the user may be missing.
    """

    __tablename__ = "app_installation"

    id: Optional[int] = Field(default=None, primary_key=True)
    app_id: int = Field(foreign_key="app.id", index=True)
    workspace_id: int = Field(foreign_key="workspace.id", index=True)
    installed_by_id: int = Field(index=True)
    access_token: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    token_expires_at: Optional[datetime] = timestamp_field()
    scopes: List[str] = Field(
        default_factory=list,
        sa_column=Column(
            JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
        ),
    )
    status: str = Field(
        default=InstallationStatus.ACTIVE,
        sa_column=Column(String, nullable=False, default=InstallationStatus.ACTIVE),
    )
    created_at: datetime = created_at_field()

    app: Optional[App] = Relationship(back_populates="installations")
    workspace: Optional["Workspace"] = Relationship()

    __table_args__ = (
        UniqueConstraint(
            "app_id",
            "workspace_id",
            "installed_by_id",
            name="uq_app_installation_identity",
        ),
    )
