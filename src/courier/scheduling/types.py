"""Scheduling types.

Public types:
- Post: A message to create in a channel
- DeferredPost: A post waiting for an absolute fire time
- Queue: A named, cron-scheduled backlog of message bodies
- QueueStatus: Read-only queue snapshot for display
- PostSender: Async collaborator that creates posts
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol


@dataclass(frozen=True)
class Post:
    """A message to be created in a channel on behalf of a user."""

    user_id: str
    channel_id: str
    message: str
    root_id: str | None = None  # Thread root, if replying in a thread

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "user_id": self.user_id,
            "channel_id": self.channel_id,
            "message": self.message,
        }
        if self.root_id:
            data["root_id"] = self.root_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Post":
        return cls(
            user_id=str(data["user_id"]),
            channel_id=str(data["channel_id"]),
            message=str(data.get("message", "")),
            root_id=data.get("root_id") or None,
        )


@dataclass(frozen=True)
class DeferredPost:
    """A post scheduled for a single delivery at ``fire_at``."""

    id: str
    fire_at: datetime
    post: Post

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fire_at": self.fire_at.isoformat(),
            "post": self.post.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeferredPost":
        return cls(
            id=str(data["id"]),
            fire_at=datetime.fromisoformat(data["fire_at"]),
            post=Post.from_dict(data["post"]),
        )


@dataclass
class Queue:
    """A named backlog delivered one message per scheduled tick."""

    name: str
    schedule: str  # Raw cron text; compiled form is never persisted
    owner_id: str
    channel_id: str
    messages: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "schedule": self.schedule,
            "owner_id": self.owner_id,
            "channel_id": self.channel_id,
            "messages": list(self.messages),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Queue":
        return cls(
            name=str(data["name"]),
            schedule=str(data.get("schedule", "")),
            owner_id=str(data.get("owner_id", "")),
            channel_id=str(data.get("channel_id", "")),
            messages=[str(m) for m in data.get("messages") or []],
        )


@dataclass(frozen=True)
class QueueStatus:
    """Snapshot of a queue for listing."""

    name: str
    schedule: str
    owner_id: str
    channel_id: str
    pending: int
    next_message: str | None
    next_fire: datetime | None  # None when the schedule failed to compile


class PostSender(Protocol):
    """Creates a post at its destination. Returns the created post ID."""

    async def create_post(self, post: Post) -> str: ...
