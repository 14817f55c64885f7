"""Post senders: the collaborators that actually create posts."""

import logging
import uuid

import httpx

from courier.config.models import DeliveryConfig
from courier.errors import DeliveryError
from courier.scheduling.types import Post, PostSender

logger = logging.getLogger(__name__)


class WebhookPostSender:
    """Creates posts by POSTing them as JSON to a webhook.

    The response may carry the created post's ID as ``{"id": ...}``; when it
    doesn't, a local ID is generated.
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._token = token
        self._timeout = timeout
        self._transport = transport

    async def create_post(self, post: Post) -> str:
        """Send ``post`` to the webhook.

        Raises:
            DeliveryError: On transport errors and non-2xx responses.
        """
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._url, json=post.to_dict(), headers=headers
                )
        except httpx.HTTPError as e:
            raise DeliveryError(f"Webhook request failed: {e}") from e

        if not response.is_success:
            logger.error(
                "webhook_rejected_post",
                extra={
                    "http.status_code": response.status_code,
                    "messaging.channel_id": post.channel_id,
                },
            )
            raise DeliveryError(f"Webhook returned {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("id"):
            return str(data["id"])
        return uuid.uuid4().hex


class LoggingPostSender:
    """Logs posts instead of delivering them. Used when no webhook is set."""

    async def create_post(self, post: Post) -> str:
        post_id = uuid.uuid4().hex
        logger.info(
            "post_logged",
            extra={
                "messaging.post_id": post_id,
                "messaging.user_id": post.user_id,
                "messaging.channel_id": post.channel_id,
                "post.message": post.message,
            },
        )
        return post_id


def create_sender(config: DeliveryConfig) -> PostSender:
    """Build the sender described by ``config``."""
    if not config.webhook_url:
        logger.warning("No delivery webhook configured, posts will only be logged")
        return LoggingPostSender()
    token = config.token.get_secret_value() if config.token else None
    return WebhookPostSender(config.webhook_url, token=token, timeout=config.timeout)
