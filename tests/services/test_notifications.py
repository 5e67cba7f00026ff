# tests/services/test_notifications.py
"""Tests for new-dmail notices."""

import json
import logging

import httpx

from dmail_service.models import Dmail, User
from dmail_service.services.notifications import (
    LoggingNotificationDispatcher,
    WebhookNotificationDispatcher,
    build_notification_dispatcher,
    close_notification_dispatcher,
    should_notify,
)


def _recipient(**overrides) -> User:
    values = {"id": 2, "name": "bob", "email": "bob@example.com", "receive_email_notifications": True}
    values.update(overrides)
    return User(**values)


def _copy(**overrides) -> Dmail:
    values = {
        "id": 7,
        "owner_id": 2,
        "from_id": 1,
        "to_id": 2,
        "title": "Hi",
        "body": "hello",
        "is_read": False,
        "is_spam": False,
        "is_deleted": False,
    }
    values.update(overrides)
    return Dmail(**values)


def test_unread_clean_recipient_copy_is_notified() -> None:
    assert should_notify(_copy(), _recipient()) is True


def test_sender_copy_is_not_notified() -> None:
    assert should_notify(_copy(owner_id=1), _recipient(id=1)) is False


def test_spam_or_filtered_copy_is_not_notified() -> None:
    assert should_notify(_copy(is_spam=True), _recipient()) is False
    assert should_notify(_copy(is_read=True), _recipient()) is False


def test_recipient_preferences_are_respected() -> None:
    assert should_notify(_copy(), _recipient(receive_email_notifications=False)) is False
    assert should_notify(_copy(), _recipient(email=None)) is False
    assert should_notify(_copy(), _recipient(email="not an address")) is False


def test_webhook_posts_notice() -> None:
    received: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(204)

    dispatcher = WebhookNotificationDispatcher(
        "http://hooks.test/dmail", transport=httpx.MockTransport(handler)
    )
    dispatcher.notify(_copy())
    dispatcher.close()

    assert received == [{"dmail_id": 7, "to_id": 2, "from_id": 1, "title": "Hi"}]


def test_webhook_failure_is_logged_not_raised(caplog) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    dispatcher = WebhookNotificationDispatcher(
        "http://hooks.test/dmail", transport=httpx.MockTransport(handler)
    )
    with caplog.at_level(logging.WARNING, logger="dmail_service.services.notifications"):
        dispatcher.notify(_copy())
    dispatcher.close()

    assert "Failed to deliver notice for dmail 7" in caplog.text


def test_logging_dispatcher_is_built_without_webhook(caplog) -> None:
    dispatcher = build_notification_dispatcher(None)

    assert isinstance(dispatcher, LoggingNotificationDispatcher)
    with caplog.at_level(logging.INFO, logger="dmail_service.services.notifications"):
        dispatcher.notify(_copy())
    assert "New dmail 7 for user 2" in caplog.text


def test_webhook_dispatcher_is_built_from_url_and_closed() -> None:
    dispatcher = build_notification_dispatcher(
        "http://hooks.test/dmail",
        transport=httpx.MockTransport(lambda request: httpx.Response(204)),
    )

    assert isinstance(dispatcher, WebhookNotificationDispatcher)
    close_notification_dispatcher(dispatcher)
    assert dispatcher._client.is_closed


def test_closing_a_dispatcher_without_resources_is_a_noop() -> None:
    close_notification_dispatcher(LoggingNotificationDispatcher())
    close_notification_dispatcher(None)
