"""Write-through persistence and delivery helpers shared by the managers."""

import json
import logging
from typing import Any

from courier.errors import PersistenceError
from courier.scheduling.types import Post, PostSender
from courier.storage import KeyValueStore

logger = logging.getLogger(__name__)

QUEUES_KEY = "queues"
DEFERRED_POSTS_KEY = "deferred-posts"
WAITING_FOR_ONLINE_KEY = "waiting-for-online"


def save_json(store: KeyValueStore, key: str, payload: Any) -> bool:
    """Persist ``payload`` under ``key``.

    Failures are logged and swallowed: in-memory state stays authoritative
    for the rest of the process lifetime.
    """
    try:
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        store.set(key, data)
    except (PersistenceError, OSError, TypeError, ValueError) as e:
        logger.error(
            "state_persist_failed",
            extra={"storage.key": key, "error.message": str(e)},
        )
        return False
    return True


def load_json(store: KeyValueStore, key: str) -> Any | None:
    """Load the blob stored under ``key``.

    Returns None when the key is absent, unreadable or not valid JSON.
    """
    try:
        data = store.get(key)
    except (PersistenceError, OSError) as e:
        logger.error(
            "state_load_failed",
            extra={"storage.key": key, "error.message": str(e)},
        )
        return None
    if not data:
        return None
    try:
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(
            "state_decode_failed",
            extra={"storage.key": key, "error.message": str(e)},
        )
        return None


async def deliver(sender: PostSender, post: Post, *, source: str) -> bool:
    """Create ``post`` via ``sender``. Failures are logged, never retried."""
    try:
        post_id = await sender.create_post(post)
    except Exception as e:
        logger.error(
            "post_delivery_failed",
            extra={
                "delivery.source": source,
                "messaging.channel_id": post.channel_id,
                "error.message": str(e),
            },
        )
        return False

    logger.info(
        "post_delivered",
        extra={
            "delivery.source": source,
            "messaging.channel_id": post.channel_id,
            "messaging.post_id": post_id,
            "post.preview": post.message[:50],
        },
    )
    return True
