"""GitHub webhook handling: signature check and routing by event type."""

import json
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException
from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from workhub.core.config import settings
from workhub.core.crypto import InvalidToken, decrypt_token
from workhub.core.logging import get_logger
from workhub.db.models._base import utcnow
from workhub.db.models.github import (
    UNKNOWN_HEAD_SHA,
    CheckStatus,
    PullRequestState,
    Repository,
)
from workhub.db.models.workspace import User
from workhub.schemas.github import (
    BranchData,
    CommitData,
    PRCheckData,
    PullRequestData,
    PullRequestUpdate,
)
from workhub.services.github.errors import (
    BranchAlreadyExistsError,
    PullRequestNotFoundError,
)
from workhub.services.github.security import verify_signature
from workhub.services.github.webhook_service import GitHubWebhookService

logger = get_logger(__name__)

BRANCH_REF_PREFIX = "refs/heads/"

_PENDING_CHECK_STATUSES = {"queued", "in_progress", "waiting", "requested", "pending"}

_CHECK_CONCLUSIONS = {
    "success": CheckStatus.SUCCESS,
    "failure": CheckStatus.FAILURE,
    "timed_out": CheckStatus.FAILURE,
    "cancelled": CheckStatus.CANCELLED,
    "neutral": CheckStatus.NEUTRAL,
    "skipped": CheckStatus.SKIPPED,
    "stale": CheckStatus.PENDING,
    "action_required": CheckStatus.PENDING,
}


def map_check_status(status: Optional[str], conclusion: Optional[str]) -> CheckStatus:
    """
    Map a GitHub check status/conclusion pair to a CheckStatus.

    Unfinished checks are PENDING; completed checks take their conclusion.
    """
    if status in _PENDING_CHECK_STATUSES or status is None:
        return CheckStatus.PENDING
    if status == "completed":
        return _CHECK_CONCLUSIONS.get(conclusion or "", CheckStatus.ERROR)
    return CheckStatus.ERROR


async def find_repository_by_github_id(
    session: AsyncSession, github_repo_id: Any
) -> Optional[Repository]:
    if github_repo_id is None:
        return None
    result = await session.exec(
        select(Repository)
        .options(selectinload(Repository.project))
        .where(Repository.github_repo_id == str(github_repo_id))
    )
    return result.first()


async def find_user_by_github_id(
    session: AsyncSession, github_user_id: Any
) -> Optional[int]:
    if github_user_id is None:
        return None
    result = await session.exec(select(User.id).where(User.github_id == github_user_id))
    return result.first()


async def handle_github_webhook(
    session: AsyncSession,
    event_type: str,
    delivery_id: str,
    raw_body: bytes,
    signature_header: str,
    github_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    Process a GitHub webhook: verify, then route by event type.

    - Verifies the HMAC SHA-256 signature with the repository's secret
      (falling back to GITHUB_WEBHOOK_SECRET).
    - push, pull_request, check_run/check_suite and branch create/delete
      events are reconciled; other events are logged and ignored.

    Args:
        session: Request-scoped database session.
        event_type: The X-GitHub-Event header value (e.g. "push", "pull_request").
        delivery_id: The X-GitHub-Delivery header value.
        raw_body: The raw body bytes for signature verification.
        signature_header: The X-Hub-Signature-256 header.
        github_transport: Optional httpx transport for GitHub API calls.

    Returns:
        A dict to be returned as the JSON response.

    Raises:
        HTTPException: 400 on an unparsable body, 401 on a bad signature,
            500 when reconciliation fails (so GitHub retries the delivery).
    """
    # 1. Parse payload
    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    # 2. Verify signature
    repository = await find_repository_by_github_id(
        session, (payload.get("repository") or {}).get("id")
    )
    secret = (
        repository.webhook_secret if repository else None
    ) or settings.GITHUB_WEBHOOK_SECRET
    if not verify_signature(raw_body, secret, signature_header):
        logger.warning("Rejected %s delivery %s: invalid signature", event_type, delivery_id)
        raise HTTPException(status_code=401, detail="Invalid signature")

    base = {"success": True, "event": event_type, "delivery": delivery_id}

    if repository is None:
        logger.info("Delivery %s for untracked repository ignored", delivery_id)
        return {**base, "message": "Repository not tracked"}

    service = GitHubWebhookService(session, github_transport=github_transport)
    repository_id = repository.id

    # 3. Route by event type
    try:
        if event_type == "push":
            result = await _handle_push(service, repository_id, payload)
        elif event_type == "pull_request":
            result = await _handle_pull_request(service, repository_id, payload)
        elif event_type in ("check_run", "check_suite"):
            result = await _handle_check(service, repository_id, payload)
        elif event_type in ("create", "delete") and payload.get("ref_type") == "branch":
            result = await _handle_branch(service, repository_id, event_type, payload)
        else:
            logger.info("GitHub webhook received: %s (ignored)", event_type)
            result = {"message": "Event ignored"}
    except Exception as e:
        logger.error(
            "Webhook %s delivery %s failed: %s", event_type, delivery_id, e, exc_info=True
        )
        raise HTTPException(status_code=500, detail="Webhook processing failed") from e

    return {**base, **result}


async def _handle_push(
    service: GitHubWebhookService, repository_id: int, payload: dict
) -> Dict[str, Any]:
    ref = payload.get("ref") or ""
    if not ref.startswith(BRANCH_REF_PREFIX):
        return {"message": "Non-branch push ignored"}
    branch_name = ref[len(BRANCH_REF_PREFIX) :]

    repository = await service.get_repository_context(repository_id)
    warnings = []
    processed = []

    for commit in payload.get("commits") or []:
        author = commit.get("author") or {}
        commit_data = CommitData(
            repository_id=repository.id,
            sha=commit["id"],
            message=commit.get("message") or "",
            author_name=author.get("name") or "Unknown",
            author_email=author.get("email") or "",
            commit_date=commit.get("timestamp") or utcnow(),
            branch_name=branch_name,
        )
        outcome = await service.process_commit(commit_data, repository=repository)
        warnings.extend(outcome.warnings)
        processed.append(commit_data.sha)

    if processed and repository.access_token:
        try:
            token = decrypt_token(repository.access_token)
        except InvalidToken:
            logger.warning("Stored token for %s could not be decrypted", repository.full_name)
            warnings.append("Repository access token could not be decrypted")
        else:
            backfill = await service.update_commit_stats_batch(
                token, repository.owner, repository.name, processed
            )
            warnings.extend(backfill.warnings)

    logger.info(
        "Processed %d commit(s) on %s in %s",
        len(processed),
        branch_name,
        repository.full_name,
    )
    return {"message": "Push processed", "commits": len(processed), "warnings": warnings}


async def _handle_pull_request(
    service: GitHubWebhookService, repository_id: int, payload: dict
) -> Dict[str, Any]:
    action = payload.get("action")
    pr = payload.get("pull_request") or {}
    number = pr.get("number")
    logger.info("Processing pull_request event: %s #%s", action, number)

    if action == "opened":
        pull_request = await service.create_pull_request(
            PullRequestData(
                repository_id=repository_id,
                github_pr_id=number,
                title=pr.get("title") or "",
                description=pr.get("body"),
                state=PullRequestState.DRAFT if pr.get("draft") else PullRequestState.OPEN,
                base_branch=pr["base"]["ref"],
                head_branch=pr["head"]["ref"],
                head_sha=pr["head"].get("sha"),
                created_by_id=await find_user_by_github_id(
                    service.session, (pr.get("user") or {}).get("id")
                ),
                github_created_at=pr.get("created_at"),
                github_updated_at=pr.get("updated_at"),
            )
        )
        return {"message": "Pull request created", "pull_request_id": pull_request.id}

    if action == "closed":
        merged = bool(pr.get("merged"))
        merged_by_id = None
        if merged:
            merged_by_id = await find_user_by_github_id(
                service.session, (pr.get("merged_by") or {}).get("id")
            )
        updates = PullRequestUpdate(
            state=PullRequestState.MERGED if merged else PullRequestState.CLOSED,
            merged_at=pr.get("merged_at"),
            closed_at=pr.get("closed_at") or utcnow(),
            merged_by_id=merged_by_id,
        )
    elif action == "reopened":
        updates = PullRequestUpdate(state=PullRequestState.OPEN, closed_at=None)
    elif action == "ready_for_review":
        updates = PullRequestUpdate(state=PullRequestState.OPEN)
    elif action == "converted_to_draft":
        updates = PullRequestUpdate(state=PullRequestState.DRAFT)
    else:
        return {"message": "Pull request action ignored", "action": action}

    try:
        pull_request = await service.update_pull_request(repository_id, number, updates)
    except PullRequestNotFoundError:
        return {"message": "Pull request not tracked yet", "status": "pull_request_not_found"}
    return {"message": "Pull request updated", "state": pull_request.state}


async def _handle_check(
    service: GitHubWebhookService, repository_id: int, payload: dict
) -> Dict[str, Any]:
    check = payload.get("check_run") or payload.get("check_suite") or {}
    pull_requests = check.get("pull_requests") or []
    if not pull_requests:
        return {"message": "Check not attached to a pull request"}

    pull_request = await service.get_pull_request(
        repository_id, pull_requests[0].get("number")
    )
    if pull_request is None:
        return {"message": "Pull request not tracked yet", "status": "pull_request_not_found"}

    check_id = check.get("id")
    pr_check = await service.update_pr_check(
        PRCheckData(
            pull_request_id=pull_request.id,
            name=check.get("name") or (check.get("app") or {}).get("name") or "Unknown Check",
            status=map_check_status(check.get("status"), check.get("conclusion")),
            conclusion=check.get("conclusion"),
            details_url=check.get("html_url") or check.get("details_url"),
            github_check_id=str(check_id) if check_id is not None else None,
            started_at=check.get("started_at"),
            completed_at=check.get("completed_at"),
        )
    )
    return {"message": "Check updated", "status": pr_check.status}


async def _handle_branch(
    service: GitHubWebhookService, repository_id: int, event_type: str, payload: dict
) -> Dict[str, Any]:
    branch_name = payload.get("ref") or ""

    if event_type == "create":
        try:
            await service.create_branch(
                BranchData(
                    repository_id=repository_id,
                    name=branch_name,
                    head_sha=payload.get("sha") or payload.get("after") or UNKNOWN_HEAD_SHA,
                )
            )
        except BranchAlreadyExistsError:
            return {"message": "Branch already tracked"}
        return {"message": "Branch created"}

    deleted = await service.delete_branch(repository_id, branch_name)
    return {"message": "Branch deleted", "deleted": deleted}
