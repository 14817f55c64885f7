"""Presence-gated mailbox.

Posts wait here until their recipient shows activity. A presence signal
flushes the recipient's whole backlog in enqueue order. Only two-party
conversations have a well-defined recipient.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from courier.errors import AmbiguousRecipientError
from courier.scheduling.persistence import (
    WAITING_FOR_ONLINE_KEY,
    deliver,
    load_json,
    save_json,
)
from courier.scheduling.types import Post, PostSender
from courier.storage import KeyValueStore

logger = logging.getLogger(__name__)


class PresenceMailbox:
    """Per-recipient posts awaiting a presence signal."""

    def __init__(self, store: KeyValueStore, sender: PostSender) -> None:
        self._store = store
        self._sender = sender
        self._pending: dict[str, list[Post]] = {}
        # One (recipient, posts) batch per flush still delivering
        self._flushing: list[tuple[str, list[Post]]] = []
        self._lock = asyncio.Lock()

    async def enqueue(self, recipient_id: str, post: Post) -> None:
        async with self._lock:
            self._pending.setdefault(recipient_id, []).append(post)
            self._save()
        logger.info(
            "post_waiting_for_online",
            extra={
                "mailbox.recipient_id": recipient_id,
                "messaging.channel_id": post.channel_id,
            },
        )

    async def enqueue_for_channel(self, post: Post, members: Iterable[str]) -> str:
        """Queue ``post`` for the other participant of a two-party channel.

        Returns the resolved recipient ID.

        Raises:
            AmbiguousRecipientError: If the channel has more than two
                participants.
        """
        recipient_id = resolve_recipient(post.user_id, members)
        await self.enqueue(recipient_id, post)
        return recipient_id

    async def flush(self, recipient_id: str) -> int:
        """Deliver everything waiting for ``recipient_id``.

        Returns the number of posts flushed. Calling it with nothing pending
        is a no-op.
        """
        async with self._lock:
            posts = self._pending.pop(recipient_id, None)
            if not posts:
                return 0
            batch = (recipient_id, posts)
            self._flushing.append(batch)

        logger.info(
            "mailbox_flushing",
            extra={"mailbox.recipient_id": recipient_id, "mailbox.count": len(posts)},
        )
        try:
            for post in posts:
                await deliver(self._sender, post, source="mailbox")
        except asyncio.CancelledError:
            # Interrupted: the batch waits for the next signal again
            self._drop_batch(batch)
            self._pending[recipient_id] = posts + self._pending.get(recipient_id, [])
            raise

        # Until this save lands, a crash redelivers on the next signal
        async with self._lock:
            self._drop_batch(batch)
            self._save()
        return len(posts)

    def pending(self) -> dict[str, list[Post]]:
        """Snapshot of waiting posts keyed by recipient."""
        return {rid: list(posts) for rid, posts in self._pending.items() if posts}

    async def restore(self) -> int:
        """Load the persisted mailbox. Returns the number of waiting posts."""
        async with self._lock:
            raw = load_json(self._store, WAITING_FOR_ONLINE_KEY)
            self._pending = decode_mailbox(raw)
        count = sum(len(posts) for posts in self._pending.values())
        logger.info(
            "mailbox_restored",
            extra={"mailbox.recipients": len(self._pending), "mailbox.count": count},
        )
        return count

    def _drop_batch(self, batch: tuple[str, list[Post]]) -> None:
        self._flushing = [b for b in self._flushing if b is not batch]

    def _save(self) -> None:
        # Posts being flushed stay on disk until delivery finishes
        merged: dict[str, list[Post]] = {}
        for rid, posts in [*self._flushing, *self._pending.items()]:
            merged.setdefault(rid, []).extend(posts)
        save_json(
            self._store,
            WAITING_FOR_ONLINE_KEY,
            {
                rid: [p.to_dict() for p in posts]
                for rid, posts in merged.items()
                if posts
            },
        )


def resolve_recipient(author_id: str, members: Iterable[str]) -> str:
    """Find the other party of a two-party channel.

    A conversation with yourself resolves to the author.
    """
    others = {m for m in members if m and m != author_id}
    if len(others) > 1:
        raise AmbiguousRecipientError(
            "Posts can only wait for a recipient in a two-party channel"
        )
    return others.pop() if others else author_id


def decode_mailbox(raw: Any) -> dict[str, list[Post]]:
    """Parse a persisted mailbox, skipping malformed posts."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        logger.error("mailbox_malformed", extra={"raw.type": type(raw).__name__})
        return {}

    pending: dict[str, list[Post]] = {}
    for recipient_id, items in raw.items():
        posts: list[Post] = []
        for item in items or []:
            try:
                posts.append(Post.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(
                    "mailbox_post_skipped",
                    extra={
                        "mailbox.recipient_id": recipient_id,
                        "error.message": str(e),
                    },
                )
        if posts:
            pending[str(recipient_id)] = posts
    return pending
