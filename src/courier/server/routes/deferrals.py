"""Deferred post routes."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, Field

from courier.errors import NotFoundError
from courier.scheduling import DeferredPost, Post

router = APIRouter()
logger = logging.getLogger(__name__)

# Delay keyword that holds the post until the recipient shows activity
ONLINE = "online"


class DeferRequest(BaseModel):
    user_id: str = Field(min_length=1)
    channel_id: str = Field(min_length=1)
    message: str = Field(min_length=1)
    root_id: str | None = None
    # Duration such as "90s" or "1h30m", or "online"
    delay: str
    # Channel participants, required with "online"
    members: list[str] = Field(default_factory=list)


def _entry_payload(entry: DeferredPost) -> dict[str, Any]:
    return {"status": "scheduled", **entry.to_dict()}


@router.post("", status_code=201)
async def defer_post(body: DeferRequest, request: Request) -> dict[str, Any]:
    """Defer a post by a duration, or until its recipient comes online."""
    engine = request.app.state.engine
    post = Post(
        user_id=body.user_id,
        channel_id=body.channel_id,
        message=body.message,
        root_id=body.root_id,
    )

    if body.delay.strip().lower() == ONLINE:
        if not body.members:
            raise HTTPException(
                status_code=400,
                detail="members are required to wait for a recipient",
            )
        recipient_id = await engine.mailbox.enqueue_for_channel(post, body.members)
        return {"status": "waiting", "recipient_id": recipient_id}

    entry = await engine.deferrals.defer(post, body.delay)
    return _entry_payload(entry)


@router.get("")
async def list_deferrals(request: Request) -> list[dict[str, Any]]:
    """Pending deferred posts ordered by fire time."""
    return [_entry_payload(e) for e in request.app.state.engine.deferrals.pending()]


@router.get("/{entry_id}")
async def get_deferral(entry_id: str, request: Request) -> dict[str, Any]:
    for entry in request.app.state.engine.deferrals.pending():
        if entry.id == entry_id:
            return _entry_payload(entry)
    raise NotFoundError(f"Deferred post {entry_id} not found")


@router.delete("/{entry_id}", status_code=204)
async def cancel_deferral(entry_id: str, request: Request) -> Response:
    await request.app.state.engine.deferrals.cancel(entry_id)
    logger.debug(f"Deferred post {entry_id} cancelled over HTTP")
    return Response(status_code=204)
