"""
Authorization context handed to app API handlers.
"""

from datetime import datetime
from typing import List, Literal, Optional

from sqlmodel import SQLModel


class InstallationInfo(SQLModel):
    id: int
    app_id: int
    workspace_id: int
    user_id: int
    scopes: List[str]
    status: str


class AppInfo(SQLModel):
    id: int
    slug: str
    name: str
    status: str


class WorkspaceInfo(SQLModel):
    id: int
    slug: str
    name: str


class UserInfo(SQLModel):
    id: int
    email: Optional[str] = None
    name: Optional[str] = None


class TokenInfo(SQLModel):
    type: Literal["access_token"] = "access_token"
    scopes: List[str]
    expires_at: Optional[datetime] = None


class AppAuthContext(SQLModel):
    """Everything a handler may rely on after the auth gate accepted a request."""

    installation: InstallationInfo
    app: AppInfo
    workspace: WorkspaceInfo
    user: UserInfo
    token: TokenInfo
