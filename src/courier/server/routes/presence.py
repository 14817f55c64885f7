"""Presence routes: activity signals and the waiting-for-online mailbox."""

from typing import Annotated, Any

from fastapi import APIRouter, Header, HTTPException, Request

router = APIRouter()


@router.post("/presence")
async def presence_signal(
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    """Record activity for the requesting user and flush their mailbox."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")

    flushed = await request.app.state.engine.presence_signal(x_user_id)
    return {"user_id": x_user_id, "flushed": flushed}


@router.get("/mailbox")
async def list_mailbox(request: Request) -> dict[str, list[dict[str, Any]]]:
    """Posts waiting for their recipient, keyed by recipient."""
    pending = request.app.state.engine.mailbox.pending()
    return {
        recipient: [post.to_dict() for post in posts]
        for recipient, posts in sorted(pending.items())
    }
