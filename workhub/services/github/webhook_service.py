"""
GitHub webhook reconciliation.

Translates commits, branches, pull requests and CI checks delivered by GitHub
webhooks into rows, and links them to tracked issues by scanning commit
messages, branch names and PR titles for the project's issue key prefix.

Writes in the primary path are logged and re-raised so the webhook route can
fail the delivery and let GitHub retry. Best-effort steps (linking a commit to
its open pull request, commit stats backfill) report failures as warnings.
"""

import asyncio
from typing import Iterable, List, Optional

import httpx
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from workhub.core.config import settings
from workhub.core.logging import get_logger
from workhub.db.models._base import utcnow
from workhub.db.models.github import (
    DEFAULT_BRANCH_NAMES,
    UNKNOWN_HEAD_SHA,
    Branch,
    Commit,
    PRCheck,
    PullRequest,
    PullRequestState,
    Repository,
)
from workhub.db.models.workspace import Issue
from workhub.db.upsert import dialect_insert
from workhub.integrations.github import GitHubClient, is_commit_sha, is_safe_path_segment
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
from workhub.services.github.errors import (
    BranchAlreadyExistsError,
    DuplicatePullRequestError,
    PullRequestNotFoundError,
    RepositoryNotFoundError,
)
from workhub.services.github.issue_keys import extract_issue_key

logger = get_logger(__name__)

LINKABLE_PR_STATES = (PullRequestState.OPEN.value, PullRequestState.DRAFT.value)


def is_default_branch(name: str) -> bool:
    return name in DEFAULT_BRANCH_NAMES


class GitHubWebhookService:
    """Reconciles GitHub webhook data with the issue tracker."""

    def __init__(
        self,
        session: AsyncSession,
        github_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self.github_transport = github_transport

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------
    async def get_repository_context(self, repository_id: int) -> RepositoryContext:
        """
        Load a repository with its project.

        Raises:
            RepositoryNotFoundError: If no repository has this id.
        """
        result = await self.session.exec(
            select(Repository)
            .options(selectinload(Repository.project))
            .where(Repository.id == repository_id)
        )
        repository = result.first()
        if repository is None:
            raise RepositoryNotFoundError(repository_id)
        return RepositoryContext(
            id=repository.id,
            project_id=repository.project_id,
            issue_prefix=repository.issue_prefix,
            full_name=repository.full_name,
            owner=repository.owner,
            name=repository.name,
            access_token=repository.access_token,
        )

    async def resolve_issue_id(
        self, repository: RepositoryContext, text: Optional[str]
    ) -> Optional[int]:
        """
        Find the issue referenced by ``text`` inside the repository's project.

        Returns None when the text carries no key or the key is unknown.
        """
        issue_key = extract_issue_key(repository.issue_prefix, text)
        if issue_key is None:
            return None

        result = await self.session.exec(
            select(Issue.id).where(
                Issue.project_id == repository.project_id,
                Issue.issue_key == issue_key,
            )
        )
        return result.first()

    async def get_pull_request(
        self, repository_id: int, github_pr_id: int
    ) -> Optional[PullRequest]:
        result = await self.session.exec(
            select(PullRequest)
            .where(
                PullRequest.repository_id == repository_id,
                PullRequest.github_pr_id == github_pr_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.first()

    async def _get_branch(self, repository_id: int, name: str) -> Optional[Branch]:
        result = await self.session.exec(
            select(Branch)
            .where(Branch.repository_id == repository_id, Branch.name == name)
            .execution_options(populate_existing=True)
        )
        return result.first()

    async def _get_commit(self, sha: str) -> Optional[Commit]:
        result = await self.session.exec(
            select(Commit)
            .where(Commit.sha == sha)
            .execution_options(populate_existing=True)
        )
        return result.first()

    # -------------------------------------------------------------------------
    # Branches
    # -------------------------------------------------------------------------
    async def find_or_create_branch(
        self,
        repository: RepositoryContext,
        branch_name: str,
        head_sha: Optional[str] = None,
    ) -> Branch:
        """
        Return the branch row, creating it on first sight.

        A new branch takes its issue link from its name. An existing branch
        has its head advanced when a different ``head_sha`` arrives.
        Does not commit.
        """
        branch = await self._get_branch(repository.id, branch_name)

        if branch is None:
            issue_id = await self.resolve_issue_id(repository, branch_name)
            stmt = (
                dialect_insert(self.session, Branch)
                .values(
                    repository_id=repository.id,
                    name=branch_name,
                    head_sha=head_sha or UNKNOWN_HEAD_SHA,
                    issue_id=issue_id,
                    is_default=is_default_branch(branch_name),
                )
                .on_conflict_do_nothing(index_elements=["repository_id", "name"])
            )
            result = await self.session.execute(stmt)
            if result.rowcount == 1:
                logger.info(
                    "Created branch %s in %s (issue_id=%s)",
                    branch_name,
                    repository.full_name,
                    issue_id,
                )
            branch = await self._get_branch(repository.id, branch_name)
        elif head_sha and branch.head_sha != head_sha:
            branch.head_sha = head_sha
            branch.updated_at = utcnow()
            self.session.add(branch)
            await self.session.flush()

        return branch

    async def create_branch(self, branch_data: BranchData) -> Branch:
        """
        Create a branch from a branch-created event.

        The issue link is derived from the branch name unless supplied.

        Raises:
            BranchAlreadyExistsError: If (repository_id, name) is taken.
        """
        try:
            repository = await self.get_repository_context(branch_data.repository_id)
            issue_id = branch_data.issue_id
            if issue_id is None:
                issue_id = await self.resolve_issue_id(repository, branch_data.name)

            branch = Branch(
                repository_id=branch_data.repository_id,
                name=branch_data.name,
                head_sha=branch_data.head_sha or UNKNOWN_HEAD_SHA,
                issue_id=issue_id,
                is_default=is_default_branch(branch_data.name),
            )
            self.session.add(branch)
            await self.session.commit()
            logger.info("Created branch %s in %s", branch.name, repository.full_name)
            return branch
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(
                "Branch %s already exists for repository %s",
                branch_data.name,
                branch_data.repository_id,
            )
            raise BranchAlreadyExistsError(
                branch_data.repository_id, branch_data.name
            ) from e
        except Exception:
            await self.session.rollback()
            logger.error("Error creating branch %s", branch_data.name, exc_info=True)
            raise

    async def delete_branch(self, repository_id: int, branch_name: str) -> int:
        """Delete branches by name. Returns the number of rows removed."""
        try:
            result = await self.session.execute(
                delete(Branch).where(
                    Branch.repository_id == repository_id, Branch.name == branch_name
                )
            )
            await self.session.commit()
            logger.info(
                "Deleted %d branch row(s) named %s in repository %s",
                result.rowcount,
                branch_name,
                repository_id,
            )
            return result.rowcount
        except Exception:
            await self.session.rollback()
            logger.error("Error deleting branch %s", branch_name, exc_info=True)
            raise

    # -------------------------------------------------------------------------
    # Commits
    # -------------------------------------------------------------------------
    async def process_commit(
        self,
        commit_data: CommitData,
        repository: Optional[RepositoryContext] = None,
    ) -> CommitProcessingResult:
        """
        Upsert a pushed commit and link it to its branch, issue and open PR.

        1. Find or create the branch, advancing its head to this sha.
        2. Resolve the issue from the commit message (first key wins).
        3. Upsert the commit by sha. Author and commit date are kept from the
           first insert; message, branch, issue and stats are refreshed.
        4. Best-effort: link the commit to an OPEN/DRAFT PR on the same branch.

        Args:
            commit_data: The commit to store.
            repository: Pre-fetched repository context; looked up when omitted.

        Returns:
            The stored commit and any warnings from step 4.
        """
        try:
            if repository is None:
                repository = await self.get_repository_context(
                    commit_data.repository_id
                )

            branch = await self.find_or_create_branch(
                repository, commit_data.branch_name, commit_data.sha
            )
            issue_id = await self.resolve_issue_id(repository, commit_data.message)

            update_values = {
                "message": commit_data.message,
                "branch_id": branch.id,
                "issue_id": issue_id,
                "updated_at": utcnow(),
            }
            if commit_data.additions is not None:
                update_values["additions"] = commit_data.additions
            if commit_data.deletions is not None:
                update_values["deletions"] = commit_data.deletions

            stmt = (
                dialect_insert(self.session, Commit)
                .values(
                    sha=commit_data.sha,
                    repository_id=repository.id,
                    branch_id=branch.id,
                    issue_id=issue_id,
                    message=commit_data.message,
                    author_name=commit_data.author_name,
                    author_email=commit_data.author_email,
                    commit_date=commit_data.commit_date,
                    additions=commit_data.additions,
                    deletions=commit_data.deletions,
                )
                .on_conflict_do_update(index_elements=["sha"], set_=update_values)
            )
            await self.session.execute(stmt)
            commit = await self._get_commit(commit_data.sha)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.error("Error processing commit %s", commit_data.sha, exc_info=True)
            raise

        warnings: List[str] = []
        warning = await self._link_commit_to_pull_request(commit, branch.id)
        if warning:
            warnings.append(warning)

        return CommitProcessingResult(commit=commit, warnings=warnings)

    async def _link_commit_to_pull_request(
        self, commit: Commit, branch_id: int
    ) -> Optional[str]:
        """
        Stamp ``pull_request_id`` from an OPEN or DRAFT PR whose head is the branch.

        Returns a warning message instead of raising.
        """
        sha = commit.sha
        try:
            result = await self.session.exec(
                select(PullRequest.id).where(
                    PullRequest.head_branch_id == branch_id,
                    col(PullRequest.state).in_(LINKABLE_PR_STATES),
                )
            )
            pull_request_id = result.first()
            if pull_request_id is not None and commit.pull_request_id != pull_request_id:
                commit.pull_request_id = pull_request_id
                self.session.add(commit)
                await self.session.commit()
            return None
        except Exception as e:
            logger.warning(
                "Error linking commit %s to pull request: %s", sha, e, exc_info=True
            )
            await self.session.rollback()
            try:
                await self.session.refresh(commit)
            except Exception:
                logger.warning("Could not reload commit %s after rollback", sha)
            return f"Commit {sha} was stored but not linked to its pull request: {e}"

    # -------------------------------------------------------------------------
    # Pull requests
    # -------------------------------------------------------------------------
    async def create_pull_request(self, pr_data: PullRequestData) -> PullRequest:
        """
        Create a pull request row from an opened event.

        Base and head branches are created if unseen. The head branch takes
        ``head_sha`` from the payload; the base branch head stays "unknown".
        The issue comes from the head branch name, falling back to the title.

        Raises:
            DuplicatePullRequestError: If the PR already exists. Lifecycle
                events for an existing PR go through update_pull_request.
        """
        try:
            repository = await self.get_repository_context(pr_data.repository_id)
            base_branch = await self.find_or_create_branch(
                repository, pr_data.base_branch
            )
            head_branch = await self.find_or_create_branch(
                repository, pr_data.head_branch, pr_data.head_sha
            )

            issue_id = await self.resolve_issue_id(
                repository, pr_data.head_branch
            ) or await self.resolve_issue_id(repository, pr_data.title)

            pull_request = PullRequest(
                repository_id=pr_data.repository_id,
                github_pr_id=pr_data.github_pr_id,
                title=pr_data.title,
                description=pr_data.description,
                state=PullRequestState(pr_data.state).value,
                base_branch_id=base_branch.id,
                head_branch_id=head_branch.id,
                issue_id=issue_id,
                created_by_id=pr_data.created_by_id,
                github_created_at=pr_data.github_created_at,
                github_updated_at=pr_data.github_updated_at,
            )
            self.session.add(pull_request)
            await self.session.commit()
            logger.info(
                "Created pull request #%s in %s (issue_id=%s)",
                pr_data.github_pr_id,
                repository.full_name,
                issue_id,
            )
            return pull_request
        except IntegrityError as e:
            await self.session.rollback()
            logger.error(
                "Pull request #%s already exists for repository %s",
                pr_data.github_pr_id,
                pr_data.repository_id,
            )
            raise DuplicatePullRequestError(
                pr_data.repository_id, pr_data.github_pr_id
            ) from e
        except Exception:
            await self.session.rollback()
            logger.error(
                "Error creating pull request #%s", pr_data.github_pr_id, exc_info=True
            )
            raise

    async def update_pull_request(
        self, repository_id: int, github_pr_id: int, updates: PullRequestUpdate
    ) -> PullRequest:
        """
        Apply a partial update to a pull request identified by its GitHub number.

        Raises:
            PullRequestNotFoundError: If the opened event has not been processed.
        """
        values = updates.model_dump(exclude_unset=True)
        if values.get("state") is None:
            values.pop("state", None)
        else:
            values["state"] = PullRequestState(values["state"]).value
        values["updated_at"] = utcnow()

        try:
            result = await self.session.execute(
                update(PullRequest)
                .where(
                    PullRequest.repository_id == repository_id,
                    PullRequest.github_pr_id == github_pr_id,
                )
                .values(**values)
            )
            if result.rowcount == 0:
                await self.session.rollback()
                raise PullRequestNotFoundError(repository_id, github_pr_id)

            pull_request = await self.get_pull_request(repository_id, github_pr_id)
            await self.session.commit()
            return pull_request
        except PullRequestNotFoundError:
            logger.warning(
                "Pull request #%s not found for repository %s",
                github_pr_id,
                repository_id,
            )
            raise
        except Exception:
            await self.session.rollback()
            logger.error(
                "Error updating pull request #%s", github_pr_id, exc_info=True
            )
            raise

    async def update_pr_check(self, check_data: PRCheckData) -> PRCheck:
        """Upsert a CI check by (pull_request_id, name); last write wins."""
        values = {
            "status": check_data.status.value,
            "conclusion": check_data.conclusion,
            "details_url": check_data.details_url,
            "github_check_id": check_data.github_check_id,
            "started_at": check_data.started_at,
            "completed_at": check_data.completed_at,
        }
        try:
            stmt = (
                dialect_insert(self.session, PRCheck)
                .values(
                    pull_request_id=check_data.pull_request_id,
                    name=check_data.name,
                    **values,
                )
                .on_conflict_do_update(
                    index_elements=["pull_request_id", "name"],
                    set_={**values, "updated_at": utcnow()},
                )
            )
            await self.session.execute(stmt)
            result = await self.session.exec(
                select(PRCheck)
                .where(
                    PRCheck.pull_request_id == check_data.pull_request_id,
                    PRCheck.name == check_data.name,
                )
                .execution_options(populate_existing=True)
            )
            check = result.one()
            await self.session.commit()
            return check
        except Exception:
            await self.session.rollback()
            logger.error("Error updating PR check %s", check_data.name, exc_info=True)
            raise

    # -------------------------------------------------------------------------
    # Commit stats backfill
    # -------------------------------------------------------------------------
    async def fetch_commit_stats(
        self, access_token: str, owner: str, repo: str, sha: str
    ) -> Optional[CommitStats]:
        """
        Fetch addition/deletion counts for a commit from the GitHub API.

        Inputs are validated before a URL is built; invalid input or any
        fetch failure returns None.
        """
        if not (is_safe_path_segment(owner) and is_safe_path_segment(repo)):
            logger.warning("Rejected commit stats request for invalid repository path")
            return None
        if not is_commit_sha(sha):
            logger.warning("Rejected commit stats request for invalid sha")
            return None

        client = GitHubClient(access_token, transport=self.github_transport)
        try:
            data = await client.get_commit(owner, repo, sha)
            # ValidationError is a ValueError
            stats = data.get("stats") or {}
            return CommitStats(
                sha=sha,
                additions=stats.get("additions"),
                deletions=stats.get("deletions"),
            )
        except (httpx.HTTPError, ValueError, AttributeError, TypeError) as e:
            logger.warning(
                "Failed to fetch stats for %s/%s@%s: %s", owner, repo, sha, e
            )
            return None

    async def _apply_commit_stats(self, stats: CommitStats) -> Optional[Commit]:
        values = {}
        if stats.additions is not None:
            values["additions"] = stats.additions
        if stats.deletions is not None:
            values["deletions"] = stats.deletions

        try:
            if values:
                result = await self.session.execute(
                    update(Commit)
                    .where(Commit.sha == stats.sha)
                    .values(**values, updated_at=utcnow())
                )
                if result.rowcount == 0:
                    await self.session.rollback()
                    logger.warning("No stored commit %s to attach stats to", stats.sha)
                    return None
            commit = await self._get_commit(stats.sha)
            await self.session.commit()
            return commit
        except Exception:
            await self.session.rollback()
            logger.warning("Error storing stats for commit %s", stats.sha, exc_info=True)
            return None

    async def update_commit_stats(
        self, access_token: str, owner: str, repo: str, sha: str
    ) -> Optional[Commit]:
        """
        Backfill stats for one commit.

        Returns the updated commit, or None if the stats could not be fetched
        or stored. Never raises.
        """
        stats = await self.fetch_commit_stats(access_token, owner, repo, sha)
        if stats is None:
            return None
        return await self._apply_commit_stats(stats)

    async def update_commit_stats_batch(
        self,
        access_token: str,
        owner: str,
        repo: str,
        shas: Iterable[str],
        batch_size: Optional[int] = None,
    ) -> StatsBackfillResult:
        """
        Backfill stats for many commits, ``batch_size`` requests at a time.

        Each window of GitHub calls runs concurrently and is awaited before
        the next one starts. Writes are applied one by one on the session.
        """
        size = max(1, batch_size or settings.COMMIT_STATS_BATCH_SIZE)
        pending = list(dict.fromkeys(shas))
        outcome = StatsBackfillResult()

        for start in range(0, len(pending), size):
            window = pending[start : start + size]
            fetched = await asyncio.gather(
                *(
                    self.fetch_commit_stats(access_token, owner, repo, sha)
                    for sha in window
                ),
                return_exceptions=True,
            )
            for sha, stats in zip(window, fetched):
                if isinstance(stats, Exception):
                    logger.warning(
                        "Unexpected error fetching stats for %s: %s", sha, stats
                    )
                    stats = None
                if stats is None:
                    outcome.warnings.append(f"Could not fetch stats for commit {sha}")
                    continue
                commit = await self._apply_commit_stats(stats)
                if commit is None:
                    outcome.warnings.append(f"Could not store stats for commit {sha}")
                    continue
                outcome.updated.append(commit)

        logger.info(
            "Backfilled stats for %d/%d commits in %s/%s",
            len(outcome.updated),
            len(pending),
            owner,
            repo,
        )
        return outcome
