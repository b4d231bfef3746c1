"""Exceptions raised by the GitHub webhook reconciler."""


class ReconciliationError(Exception):
    """Base class for reconciler failures the caller should act on."""


class RepositoryNotFoundError(ReconciliationError):
    def __init__(self, repository_id: int):
        super().__init__(f"Repository {repository_id} not found")
        self.repository_id = repository_id


class DuplicatePullRequestError(ReconciliationError):
    """A pull request with the same (repository_id, github_pr_id) already exists."""

    def __init__(self, repository_id: int, github_pr_id: int):
        super().__init__(
            f"Pull request #{github_pr_id} already exists for repository {repository_id}"
        )
        self.repository_id = repository_id
        self.github_pr_id = github_pr_id


class PullRequestNotFoundError(ReconciliationError):
    """
    No pull request row for (repository_id, github_pr_id).

    Usually a lifecycle event delivered before the opened event was processed.
    """

    def __init__(self, repository_id: int, github_pr_id: int):
        super().__init__(
            f"Pull request #{github_pr_id} not found for repository {repository_id}"
        )
        self.repository_id = repository_id
        self.github_pr_id = github_pr_id


class BranchAlreadyExistsError(ReconciliationError):
    def __init__(self, repository_id: int, name: str):
        super().__init__(f"Branch '{name}' already exists for repository {repository_id}")
        self.repository_id = repository_id
        self.name = name
