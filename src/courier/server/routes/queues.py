"""Queue administration routes.

Every route requires an ``X-User-ID`` listed in ``admin_users``.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from pydantic import BaseModel, Field

from courier.scheduling import Queue, QueueManager, QueueStatus

logger = logging.getLogger(__name__)


async def require_admin(
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Resolve the calling admin, rejecting everyone else."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")
    if not request.app.state.config.is_admin(x_user_id):
        logger.warning("queue_admin_denied", extra={"messaging.user_id": x_user_id})
        raise HTTPException(
            status_code=403, detail="Queue management requires an admin user"
        )
    return x_user_id


router = APIRouter(dependencies=[Depends(require_admin)])

AdminUser = Annotated[str, Depends(require_admin)]


class CreateQueueRequest(BaseModel):
    name: str
    schedule: str
    channel_id: str = Field(min_length=1)


class RescheduleRequest(BaseModel):
    schedule: str


class MessageRequest(BaseModel):
    message: str = Field(min_length=1)
    # Appends when omitted
    position: int | None = None


def _queues(request: Request) -> QueueManager:
    return request.app.state.engine.queues


def _queue_payload(queue: Queue) -> dict[str, Any]:
    return queue.to_dict()


def _status_payload(status: QueueStatus) -> dict[str, Any]:
    return {
        "name": status.name,
        "schedule": status.schedule,
        "owner_id": status.owner_id,
        "channel_id": status.channel_id,
        "pending": status.pending,
        "next_message": status.next_message,
        "next_fire": status.next_fire.isoformat() if status.next_fire else None,
    }


@router.post("", status_code=201)
async def create_queue(
    body: CreateQueueRequest, request: Request, user_id: AdminUser
) -> dict[str, Any]:
    queue = await _queues(request).create_queue(
        body.name, body.schedule, body.channel_id, user_id
    )
    return _queue_payload(queue)


@router.get("")
async def list_queues(request: Request) -> list[dict[str, Any]]:
    """All queues, sorted by name."""
    return [_status_payload(s) for s in _queues(request).list_queues()]


@router.get("/{name}")
async def get_queue(name: str, request: Request) -> dict[str, Any]:
    return _queue_payload(_queues(request).get_queue(name))


@router.delete("/{name}", status_code=204)
async def delete_queue(name: str, request: Request) -> Response:
    await _queues(request).delete_queue(name)
    return Response(status_code=204)


@router.put("/{name}/schedule")
async def reschedule_queue(
    name: str, body: RescheduleRequest, request: Request
) -> dict[str, Any]:
    queue = await _queues(request).reschedule(name, body.schedule)
    return _queue_payload(queue)


@router.get("/{name}/messages")
async def list_messages(name: str, request: Request) -> list[dict[str, Any]]:
    """Backlog in delivery order with positions."""
    return [
        {"position": position, "message": message}
        for position, message in _queues(request).list_messages(name)
    ]


@router.post("/{name}/messages", status_code=201)
async def add_message(
    name: str, body: MessageRequest, request: Request
) -> dict[str, Any]:
    queues = _queues(request)
    if body.position is None:
        position = await queues.add_message(name, body.message)
    else:
        await queues.insert_message(name, body.position, body.message)
        position = body.position
    return {"position": position, "message": body.message}


@router.delete("/{name}/messages/{position}")
async def remove_message(name: str, position: int, request: Request) -> dict[str, Any]:
    removed = await _queues(request).remove_message(name, position)
    return {"position": position, "message": removed}
