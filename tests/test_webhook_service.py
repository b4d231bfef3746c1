"""Tests for GitHubWebhookService against an in-memory database."""

import logging
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlmodel import select

from helpers import make_sha
from workhub.db.models import Branch, CheckStatus, Commit, PRCheck, PullRequestState
from workhub.schemas.github import (
    BranchData,
    CommitData,
    PRCheckData,
    PullRequestData,
    PullRequestUpdate,
)
from workhub.services.github.errors import (
    BranchAlreadyExistsError,
    DuplicatePullRequestError,
    PullRequestNotFoundError,
    RepositoryNotFoundError,
)
from workhub.services.github.webhook_service import GitHubWebhookService

COMMIT_DATE = datetime(2026, 3, 14, 9, 26, 53, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def service(session):
    return GitHubWebhookService(session)


@pytest_asyncio.fixture
async def context(service, repository):
    return await service.get_repository_context(repository.id)


def commit_data(repository, sha, message="wip", branch="main", **extra):
    return CommitData(
        repository_id=repository.id,
        sha=sha,
        message=message,
        author_name="Dev",
        author_email="dev@acme.test",
        commit_date=COMMIT_DATE,
        branch_name=branch,
        **extra,
    )


def pr_data(repository, number=1, title="Add login", head="feature/login", **extra):
    return PullRequestData(
        repository_id=repository.id,
        github_pr_id=number,
        title=title,
        base_branch="main",
        head_branch=head,
        **extra,
    )


async def all_rows(session, model):
    result = await session.exec(select(model).execution_options(populate_existing=True))
    return result.all()


# =============================================================================
# Repository context and issue resolution
# =============================================================================


@pytest.mark.asyncio
async def test_repository_context_carries_project_prefix(context, repository, project):
    assert context.id == repository.id
    assert context.project_id == project.id
    assert context.issue_prefix == "ABC"
    assert context.full_name == "acme/widgets"


@pytest.mark.asyncio
async def test_repository_context_missing(service):
    with pytest.raises(RepositoryNotFoundError):
        await service.get_repository_context(999)


@pytest.mark.asyncio
async def test_resolve_issue_id(service, context, issues):
    assert await service.resolve_issue_id(context, "fix abc-42 crash") == issues["ABC-42"].id
    assert await service.resolve_issue_id(context, "ABC-999 unknown") is None
    assert await service.resolve_issue_id(context, "nothing") is None


# =============================================================================
# Commits and branches
# =============================================================================


@pytest.mark.asyncio
async def test_commit_on_issue_branch_links_branch_not_commit(
    service, session, repository, context, issues
):
    sha = make_sha("login")
    outcome = await service.process_commit(
        commit_data(repository, sha, message="wip", branch="feature/ABC-7-login"),
        repository=context,
    )

    assert outcome.warnings == []
    assert outcome.commit.sha == sha
    assert outcome.commit.issue_id is None

    branches = await all_rows(session, Branch)
    assert len(branches) == 1
    branch = branches[0]
    assert branch.name == "feature/ABC-7-login"
    assert branch.issue_id == issues["ABC-7"].id
    assert branch.head_sha == sha
    assert branch.is_default is False
    assert outcome.commit.branch_id == branch.id


@pytest.mark.asyncio
async def test_process_commit_is_idempotent_by_sha(service, session, repository, issues):
    sha = make_sha("same")
    await service.process_commit(commit_data(repository, sha, message="first draft"))
    outcome = await service.process_commit(
        CommitData(
            repository_id=repository.id,
            sha=sha,
            message="Fixes ABC-42",
            author_name="Someone Else",
            author_email="else@acme.test",
            commit_date=COMMIT_DATE + timedelta(days=3),
            branch_name="main",
        )
    )

    commits = await all_rows(session, Commit)
    assert len(commits) == 1
    commit = commits[0]
    assert commit.id == outcome.commit.id
    assert commit.message == "Fixes ABC-42"
    assert commit.issue_id == issues["ABC-42"].id
    assert commit.author_name == "Dev"
    assert commit.author_email == "dev@acme.test"
    # SQLite returns naive datetimes
    assert commit.commit_date.replace(tzinfo=None) == COMMIT_DATE.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_branch_head_advances_in_place(service, session, repository, context):
    first, second = make_sha("one"), make_sha("two")
    await service.process_commit(commit_data(repository, first), repository=context)
    await service.process_commit(commit_data(repository, second), repository=context)

    branches = await all_rows(session, Branch)
    assert len(branches) == 1
    assert branches[0].head_sha == second
    assert branches[0].is_default is True

    commits = await all_rows(session, Commit)
    assert {c.branch_id for c in commits} == {branches[0].id}


@pytest.mark.asyncio
async def test_branch_lost_to_concurrent_insert(
    service, session, repository, context, monkeypatch, caplog
):
    existing = await service.create_branch(
        BranchData(repository_id=repository.id, name="hotfix", head_sha=make_sha("first"))
    )
    get_branch = service._get_branch
    calls = []

    async def not_seen_first_time(repository_id, name):
        calls.append(name)
        if len(calls) == 1:
            return None
        return await get_branch(repository_id, name)

    monkeypatch.setattr(service, "_get_branch", not_seen_first_time)
    caplog.set_level(logging.INFO, logger="workhub.services.github.webhook_service")
    caplog.clear()

    branch = await service.find_or_create_branch(context, "hotfix", make_sha("second"))

    assert branch.id == existing.id
    assert len(await all_rows(session, Branch)) == 1
    assert "Created branch" not in caplog.text


@pytest.mark.asyncio
async def test_failed_pull_request_link_is_a_warning(
    service, session, repository, context, monkeypatch
):
    exec_ = session.exec

    async def failing_pull_request_lookup(statement, *args, **kwargs):
        if "FROM pull_request" in str(statement):
            raise RuntimeError("pull_request lookup failed")
        return await exec_(statement, *args, **kwargs)

    monkeypatch.setattr(session, "exec", failing_pull_request_lookup)

    sha = make_sha("unlinked")
    outcome = await service.process_commit(
        commit_data(repository, sha, branch="feature/login"), repository=context
    )

    assert len(outcome.warnings) == 1
    assert sha in outcome.warnings[0]
    assert outcome.commit.sha == sha
    assert outcome.commit.pull_request_id is None

    (stored,) = await all_rows(session, Commit)
    assert stored.sha == sha
    assert stored.branch_id is not None


@pytest.mark.asyncio
async def test_commit_stats_in_payload_are_stored(service, repository):
    outcome = await service.process_commit(
        commit_data(repository, make_sha("stats"), additions=5, deletions=1)
    )
    assert outcome.commit.additions == 5
    assert outcome.commit.deletions == 1


@pytest.mark.asyncio
async def test_create_branch_derives_issue(service, repository, issues):
    branch = await service.create_branch(
        BranchData(repository_id=repository.id, name="bugfix/abc-1-typo")
    )
    assert branch.id is not None
    assert branch.issue_id == issues["ABC-1"].id
    assert branch.head_sha == "unknown"


@pytest.mark.asyncio
async def test_create_branch_twice(service, session, repository):
    data = BranchData(repository_id=repository.id, name="release")
    await service.create_branch(data)
    with pytest.raises(BranchAlreadyExistsError):
        await service.create_branch(data)
    assert len(await all_rows(session, Branch)) == 1


@pytest.mark.asyncio
async def test_delete_branch(service, session, repository):
    await service.create_branch(BranchData(repository_id=repository.id, name="tmp"))
    assert await service.delete_branch(repository.id, "tmp") == 1
    assert await service.delete_branch(repository.id, "tmp") == 0
    assert await all_rows(session, Branch) == []


# =============================================================================
# Pull requests
# =============================================================================


@pytest.mark.asyncio
async def test_create_pull_request_creates_branches(service, session, repository, issues):
    pull_request = await service.create_pull_request(
        pr_data(repository, head="feature/ABC-7-login", title="Login page (ABC-42)")
    )

    assert pull_request.id is not None
    assert pull_request.state == PullRequestState.OPEN
    # Head branch name takes precedence over the title
    assert pull_request.issue_id == issues["ABC-7"].id

    branches = {b.name: b for b in await all_rows(session, Branch)}
    assert set(branches) == {"main", "feature/ABC-7-login"}
    assert pull_request.base_branch_id == branches["main"].id
    assert pull_request.head_branch_id == branches["feature/ABC-7-login"].id
    assert branches["feature/ABC-7-login"].head_sha == "unknown"


@pytest.mark.asyncio
async def test_pull_request_head_sha_seeds_new_head_branch(service, session, repository):
    head_sha = make_sha("pr-head")
    await service.create_pull_request(
        pr_data(repository, number=2, head="feature/search", head_sha=head_sha)
    )

    branches = {b.name: b for b in await all_rows(session, Branch)}
    assert branches["feature/search"].head_sha == head_sha
    assert branches["main"].head_sha == "unknown"


@pytest.mark.asyncio
async def test_pull_request_issue_falls_back_to_title(service, repository, issues):
    pull_request = await service.create_pull_request(
        pr_data(repository, head="feature/login", title="ABC-42: login page")
    )
    assert pull_request.issue_id == issues["ABC-42"].id


@pytest.mark.asyncio
async def test_duplicate_pull_request(service, repository):
    await service.create_pull_request(pr_data(repository, number=3))
    with pytest.raises(DuplicatePullRequestError):
        await service.create_pull_request(pr_data(repository, number=3))


@pytest.mark.asyncio
async def test_update_missing_pull_request(service, repository):
    with pytest.raises(PullRequestNotFoundError):
        await service.update_pull_request(
            repository.id, 404, PullRequestUpdate(state=PullRequestState.CLOSED)
        )


@pytest.mark.asyncio
async def test_update_pull_request_lifecycle(service, repository):
    await service.create_pull_request(pr_data(repository, number=5))
    closed_at = datetime(2026, 3, 15, tzinfo=timezone.utc)

    merged = await service.update_pull_request(
        repository.id,
        5,
        PullRequestUpdate(
            state=PullRequestState.MERGED, merged_at=closed_at, closed_at=closed_at
        ),
    )
    assert merged.state == PullRequestState.MERGED
    assert merged.merged_at is not None
    assert merged.closed_at is not None

    reopened = await service.update_pull_request(
        repository.id, 5, PullRequestUpdate(state=PullRequestState.OPEN, closed_at=None)
    )
    assert reopened.state == PullRequestState.OPEN
    assert reopened.closed_at is None
    # merged_at was not part of the update
    assert reopened.merged_at is not None


@pytest.mark.asyncio
async def test_commit_links_to_open_pull_request(service, repository, context):
    pull_request = await service.create_pull_request(
        pr_data(repository, number=8, head="feature/login")
    )
    outcome = await service.process_commit(
        commit_data(repository, make_sha("linked"), branch="feature/login"),
        repository=context,
    )
    assert outcome.warnings == []
    assert outcome.commit.pull_request_id == pull_request.id


@pytest.mark.asyncio
async def test_commit_not_linked_to_closed_pull_request(service, repository, context):
    await service.create_pull_request(pr_data(repository, number=9, head="feature/old"))
    await service.update_pull_request(
        repository.id, 9, PullRequestUpdate(state=PullRequestState.CLOSED)
    )
    outcome = await service.process_commit(
        commit_data(repository, make_sha("late"), branch="feature/old"),
        repository=context,
    )
    assert outcome.commit.pull_request_id is None


# =============================================================================
# CI checks
# =============================================================================


@pytest.mark.asyncio
async def test_pr_check_upsert_last_write_wins(service, session, repository):
    pull_request = await service.create_pull_request(pr_data(repository, number=11))

    await service.update_pr_check(
        PRCheckData(pull_request_id=pull_request.id, name="ci/build")
    )
    check = await service.update_pr_check(
        PRCheckData(
            pull_request_id=pull_request.id,
            name="ci/build",
            status=CheckStatus.SUCCESS,
            conclusion="success",
        )
    )

    rows = await all_rows(session, PRCheck)
    assert len(rows) == 1
    assert check.id == rows[0].id
    assert check.status == CheckStatus.SUCCESS
    assert check.conclusion == "success"
