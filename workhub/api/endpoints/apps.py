"""
Third-party app API routes.

Every route here is authenticated with an installation access token and is
scoped to the installation's workspace.
"""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlmodel import col, or_, select

from workhub.db.models.github import Branch, Commit, PullRequest
from workhub.db.models.workspace import Issue
from workhub.dependencies.app_auth import AppAuth, with_app_auth
from workhub.schemas.apps import AppAuthContext

router = APIRouter()


@router.get("/me", response_model=AppAuthContext)
async def get_token_context(context: Annotated[AppAuthContext, Depends(AppAuth())]):
    """Introspect the presented token."""
    return context


async def get_issue(
    request: Request, context: AppAuthContext, params: Dict[str, Any]
) -> JSONResponse:
    """Issue details with its linked branches, commits and pull requests."""
    session = request.state.db
    issue_id_or_key = params["issue_id_or_key"]

    conditions = [Issue.issue_key == issue_id_or_key.upper()]
    if issue_id_or_key.isdigit():
        conditions.append(Issue.id == int(issue_id_or_key))

    result = await session.exec(
        select(Issue).where(
            Issue.workspace_id == context.workspace.id, or_(*conditions)
        )
    )
    issue = result.first()
    if issue is None:
        return JSONResponse(
            status_code=404,
            content={"error": "not_found", "error_description": "Issue not found"},
        )

    branches = await session.exec(
        select(Branch.name).where(Branch.issue_id == issue.id).order_by(Branch.name)
    )
    commits = await session.exec(
        select(Commit.sha)
        .where(Commit.issue_id == issue.id)
        .order_by(col(Commit.commit_date).desc())
    )
    pull_requests = await session.exec(
        select(PullRequest)
        .where(PullRequest.issue_id == issue.id)
        .order_by(PullRequest.github_pr_id)
    )

    return JSONResponse(
        content={
            "id": issue.id,
            "issue_key": issue.issue_key,
            "title": issue.title,
            "status": issue.status,
            "project_id": issue.project_id,
            "development": {
                "branches": list(branches.all()),
                "commits": list(commits.all()),
                "pull_requests": [
                    {"number": pr.github_pr_id, "title": pr.title, "state": pr.state}
                    for pr in pull_requests.all()
                ],
            },
        }
    )


router.add_api_route(
    "/issues/{issue_id_or_key}",
    with_app_auth(get_issue, required_scopes=["issues:read"]),
    methods=["GET"],
)
