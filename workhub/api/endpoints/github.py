from typing import Annotated, Optional

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException, Request

from workhub.dependencies.database import SessionDep
from workhub.dependencies.github import get_github_transport
from workhub.services.github.events import handle_github_webhook

router = APIRouter()


@router.post("/webhooks/events")
async def github_webhook_events(
    request: Request,
    session: SessionDep,
    github_transport: Annotated[
        Optional[httpx.AsyncBaseTransport], Depends(get_github_transport)
    ],
    x_github_event: Annotated[Optional[str], Header()] = None,
    x_hub_signature_256: Annotated[Optional[str], Header()] = None,
    x_github_delivery: Annotated[Optional[str], Header()] = None,
):
    """
    Handle GitHub webhook deliveries.

    Args:
        request: The incoming HTTP request.
        x_github_event: The GitHub event type (e.g., 'push', 'pull_request').
        x_hub_signature_256: HMAC SHA-256 signature of the raw body.
        x_github_delivery: Unique delivery id.

    Returns:
        A JSON summary of what was reconciled.
    """
    if not (x_github_event and x_hub_signature_256 and x_github_delivery):
        raise HTTPException(status_code=400, detail="Missing required webhook headers")

    raw_body = await request.body()
    return await handle_github_webhook(
        session,
        event_type=x_github_event,
        delivery_id=x_github_delivery,
        raw_body=raw_body,
        signature_header=x_hub_signature_256,
        github_transport=github_transport,
    )
