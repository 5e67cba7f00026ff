"""Out-of-band notices for newly received dmails.

Dispatchers are invoked only after the send that produced the copy has
committed. Delivery is fire-and-forget: transport errors are logged and
never reach the sender.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol

import httpx

from dmail_service.core.settings import settings
from dmail_service.models import Dmail, User

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


class NotificationDispatcher(Protocol):
    """Delivers a notice about a recipient's new copy."""

    def notify(self, dmail: Dmail) -> None: ...


def has_valid_address(user: User) -> bool:
    return bool(user.email and EMAIL_PATTERN.match(user.email))


def should_notify(dmail: Dmail, recipient: User) -> bool:
    """Return True if a new copy warrants a notice to its owner.

    Only a distinct recipient's copy that is neither spam nor filtered
    (filtered copies are created read) qualifies, and only for recipients
    who opted in and have a usable address.
    """
    return (
        dmail.is_recipient_copy
        and not dmail.is_sender_copy
        and not dmail.is_spam
        and not dmail.is_read
        and recipient.receive_email_notifications
        and has_valid_address(recipient)
    )


def build_notice(dmail: Dmail) -> dict[str, Any]:
    return {
        "dmail_id": dmail.id,
        "to_id": dmail.to_id,
        "from_id": dmail.from_id,
        "title": dmail.title,
    }


class LoggingNotificationDispatcher:
    """Records notices in the application log."""

    def notify(self, dmail: Dmail) -> None:
        logger.info("New dmail %s for user %s", dmail.id, dmail.to_id)


class WebhookNotificationDispatcher:
    """POSTs notices as JSON to a configured endpoint."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self._client = httpx.Client(
            timeout=timeout if timeout is not None else settings.notification_timeout_seconds,
            transport=transport,
        )

    def notify(self, dmail: Dmail) -> None:
        try:
            response = self._client.post(self.url, json=build_notice(dmail))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to deliver notice for dmail %s: %s", dmail.id, exc)

    def close(self) -> None:
        self._client.close()


def build_notification_dispatcher(
    webhook_url: str | None = None,
    *,
    timeout: float | None = None,
    transport: httpx.BaseTransport | None = None,
) -> NotificationDispatcher:
    """Return a webhook dispatcher when a URL is configured, else a logging one."""
    if webhook_url:
        return WebhookNotificationDispatcher(webhook_url, timeout=timeout, transport=transport)
    return LoggingNotificationDispatcher()


def close_notification_dispatcher(dispatcher: NotificationDispatcher | None) -> None:
    """Release transport resources held by ``dispatcher``, if any."""
    close = getattr(dispatcher, "close", None)
    if close is not None:
        close()
