"""Shared pytest fixtures.

Tests run against an in-memory SQLite database through aiosqlite. Settings are
read at import time, so the environment is prepared before workhub is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TOKEN_ENCRYPTION_KEY"] = "test-token-encryption-key"
os.environ.pop("GITHUB_WEBHOOK_SECRET", None)

from datetime import datetime, timedelta, timezone
from typing import Dict

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from helpers import APP_TOKEN, WEBHOOK_SECRET, FakeGitHub
from workhub.core.crypto import encrypt_token
from workhub.db.models import (
    App,
    AppInstallation,
    AppStatus,
    Issue,
    Project,
    Repository,
    User,
    Workspace,
)
from workhub.db.session import build_engine, build_session_factory
from workhub.dependencies.github import get_github_transport
from workhub.main import app as fastapi_app

@pytest_asyncio.fixture
async def engine():
    engine = build_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def workspace(session) -> Workspace:
    workspace = Workspace(slug="acme", name="Acme")
    session.add(workspace)
    await session.commit()
    await session.refresh(workspace)
    return workspace


@pytest_asyncio.fixture
async def project(session, workspace) -> Project:
    project = Project(
        workspace_id=workspace.id, name="Widgets", slug="widgets", issue_prefix="ABC"
    )
    session.add(project)
    await session.commit()
    await session.refresh(project)
    return project


@pytest_asyncio.fixture
async def issues(session, project) -> Dict[str, Issue]:
    rows = {
        key: Issue(
            project_id=project.id,
            workspace_id=project.workspace_id,
            issue_key=key,
            title=f"Issue {key}",
        )
        for key in ("ABC-1", "ABC-7", "ABC-42")
    }
    session.add_all(rows.values())
    await session.commit()
    for issue in rows.values():
        await session.refresh(issue)
    return rows


@pytest_asyncio.fixture
async def repository(session, project, issues) -> Repository:
    repository = Repository(
        project_id=project.id,
        github_repo_id="1001",
        full_name="acme/widgets",
        owner="acme",
        name="widgets",
        webhook_secret=WEBHOOK_SECRET,
    )
    session.add(repository)
    await session.commit()
    await session.refresh(repository)
    return repository


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest_asyncio.fixture
async def user(session) -> User:
    user = User(email="dev@acme.test", name="Dev", github_id=5001)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def published_app(session) -> App:
    app = App(slug="standup-bot", name="Standup Bot", status=AppStatus.PUBLISHED)
    session.add(app)
    await session.commit()
    await session.refresh(app)
    return app


@pytest_asyncio.fixture
async def installation(session, published_app, workspace, user) -> AppInstallation:
    installation = AppInstallation(
        app_id=published_app.id,
        workspace_id=workspace.id,
        installed_by_id=user.id,
        access_token=encrypt_token(APP_TOKEN),
        token_expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        scopes=["issues:read", "workspace:read"],
    )
    session.add(installation)
    await session.commit()
    await session.refresh(installation)
    return installation


@pytest_asyncio.fixture
async def client(session_factory, fake_github):
    fastapi_app.state.session_factory = session_factory
    fastapi_app.dependency_overrides[get_github_transport] = lambda: fake_github.transport
    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()
