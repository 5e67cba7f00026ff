# tests/services/test_message_store.py
"""Tests for dual-copy sends and per-copy state changes."""

from datetime import timedelta

import pytest

from dmail_service.db.time import utcnow
from dmail_service.models import Ban, Dmail, UserLevel
from dmail_service.services import (
    Actor,
    AutobanPolicy,
    DmailPermissionError,
    MessageStore,
)
from dmail_service.services.users import get_system_user


def _copies(db_session):
    return db_session.query(Dmail).order_by(Dmail.id).all()


def test_send_creates_recipient_and_sender_copies(send, alice, bob, db_session, dispatcher) -> None:
    result = send(alice, bob, title="Hi", body="hello")

    assert result.ok
    copies = _copies(db_session)
    assert len(copies) == 2
    assert {copy.owner_id for copy in copies} == {alice.id, bob.id}

    assert result.recipient_copy.owner_id == bob.id
    assert result.recipient_copy.is_read is False
    assert result.sender_copy.owner_id == alice.id
    assert result.sender_copy.is_read is True

    for copy in copies:
        assert (copy.from_id, copy.to_id, copy.title, copy.body) == (alice.id, bob.id, "Hi", "hello")
    assert copies[0].created_at == copies[1].created_at

    assert bob.unread_dmail_count == 1
    assert bob.has_mail is True
    assert alice.unread_dmail_count == 0
    assert dispatcher.notified == [result.recipient_copy]


def test_send_to_self_creates_single_read_copy(send, alice, db_session, dispatcher) -> None:
    result = send(alice, alice)

    assert result.ok
    copies = _copies(db_session)
    assert len(copies) == 1
    assert copies[0].owner_id == alice.id
    assert copies[0].is_read is True
    assert result.recipient_copy is None
    assert alice.unread_dmail_count == 0
    assert alice.has_mail is False
    assert dispatcher.notified == []


def test_filtered_message_is_created_read(send, alice, make_user, dispatcher) -> None:
    carol = make_user(
        "carol",
        email="carol@example.com",
        receive_email_notifications=True,
        filter_words="hello",
    )

    result = send(alice, carol, body="hello there")

    assert result.recipient_copy.is_read is True
    assert carol.unread_dmail_count == 0
    assert carol.has_mail is False
    assert dispatcher.notified == []


def test_spam_is_flagged_on_recipient_copy_only(send, alice, bob, dispatcher) -> None:
    result = send(alice, bob, body="Visit my casino")

    assert result.recipient_copy.is_spam is True
    assert result.sender_copy.is_spam is False
    # Spam still sits unread in the recipient's box, it just never triggers a notice.
    assert bob.unread_dmail_count == 1
    assert dispatcher.notified == []


def test_no_notice_without_opt_in_or_address(send, alice, make_user, dispatcher) -> None:
    quiet = make_user("quiet", email="quiet@example.com", receive_email_notifications=False)
    no_address = make_user("no_address", email="not-an-address", receive_email_notifications=True)

    send(alice, quiet)
    send(alice, no_address)

    assert dispatcher.notified == []
    assert quiet.unread_dmail_count == 1
    assert no_address.unread_dmail_count == 1


def test_blank_title_and_body_are_rejected_without_writes(
    store, alice, bob, db_session, spam_classifier
) -> None:
    result = store.compose(Actor.from_user(alice), title=" ", body="", to_id=bob.id)

    assert not result.ok
    assert "Title can't be blank" in result.errors
    assert "Body can't be blank" in result.errors
    assert _copies(db_session) == []
    assert spam_classifier.calls == []


def test_banned_sender_cannot_send(send, alice, bob, db_session) -> None:
    system = get_system_user(db_session)
    now = utcnow()
    db_session.add(
        Ban(
            user_id=alice.id,
            banner_id=system.id,
            reason="manual",
            duration=1,
            created_at=now,
            expires_at=now + timedelta(days=1),
        )
    )
    db_session.commit()

    result = send(alice, bob)

    assert result.errors == ["Sender is banned and cannot send messages"]
    assert _copies(db_session) == []


def test_expired_ban_does_not_block(send, alice, bob, db_session) -> None:
    system = get_system_user(db_session)
    then = utcnow() - timedelta(days=5)
    db_session.add(
        Ban(
            user_id=alice.id,
            banner_id=system.id,
            reason="old",
            duration=1,
            created_at=then,
            expires_at=then + timedelta(days=1),
        )
    )
    db_session.commit()

    assert send(alice, bob).ok


def test_unknown_recipient_is_rejected(store, alice, db_session) -> None:
    result = store.compose(Actor.from_user(alice), title="Hi", body="hello", to_id=9999)

    assert result.errors == ["Recipient must exist"]
    assert _copies(db_session) == []


def test_recipient_resolved_by_normalized_name(store, alice, make_user) -> None:
    target = make_user("some_user")

    result = store.compose(Actor.from_user(alice), title="Hi", body="hello", to_name="  Some User ")

    assert result.ok
    assert result.recipient_copy.to_id == target.id


def test_failed_copy_write_leaves_no_rows(store, alice, bob, db_session, dispatcher, monkeypatch) -> None:
    original = store._build_copy
    calls = {"count": 0}

    def flaky_build_copy(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 2:
            raise RuntimeError("disk full")
        return original(*args, **kwargs)

    monkeypatch.setattr(store, "_build_copy", flaky_build_copy)

    with pytest.raises(RuntimeError):
        store.compose(Actor.from_user(alice), title="Hi", body="hello", to_id=bob.id)

    assert _copies(db_session) == []
    assert dispatcher.notified == []
    db_session.refresh(bob)
    assert bob.unread_dmail_count == 0


def test_bookkeeping_failure_keeps_the_sent_message(db_session, alice, bob, dispatcher) -> None:
    class BrokenAutoban(AutobanPolicy):
        def evaluate(self, user_id, now=None):
            raise RuntimeError("autoban unavailable")

    store = MessageStore(
        db_session,
        notifier=dispatcher,
        autoban=BrokenAutoban(db_session),
    )

    result = store.compose(Actor.from_user(alice), title="Hi", body="hello", to_id=bob.id)

    assert result.ok
    assert len(_copies(db_session)) == 2
    assert bob.unread_dmail_count == 1
    assert len(dispatcher.notified) == 1


def test_notifier_failure_is_not_raised(db_session, alice, bob) -> None:
    class ExplodingDispatcher:
        def notify(self, dmail):
            raise ConnectionError("mail relay down")

    store = MessageStore(db_session, notifier=ExplodingDispatcher())

    result = store.compose(Actor.from_user(alice), title="Hi", body="hello", to_id=bob.id)

    assert result.ok
    assert len(_copies(db_session)) == 2


def test_mark_read_is_idempotent(send, store, alice, bob) -> None:
    result = send(alice, bob)
    actor = Actor.from_user(bob)

    store.mark_read(actor, result.recipient_copy.id)
    first = (bob.unread_dmail_count, bob.has_mail)
    store.mark_read(actor, result.recipient_copy.id)

    assert result.recipient_copy.is_read is True
    assert first == (0, False)
    assert (bob.unread_dmail_count, bob.has_mail) == first


def test_mark_read_requires_ownership(send, store, alice, bob) -> None:
    result = send(alice, bob)

    with pytest.raises(DmailPermissionError):
        store.mark_read(Actor.from_user(alice), result.recipient_copy.id)

    assert result.recipient_copy.is_read is False
    assert bob.unread_dmail_count == 1


def test_delete_and_undelete_resync_unread_count(send, store, alice, bob) -> None:
    result = send(alice, bob)
    actor = Actor.from_user(bob)

    store.delete(actor, result.recipient_copy.id)
    assert result.recipient_copy.is_deleted is True
    assert bob.unread_dmail_count == 0
    assert bob.has_mail is False

    store.undelete(actor, result.recipient_copy.id)
    assert result.recipient_copy.is_deleted is False
    assert bob.unread_dmail_count == 1
    assert bob.has_mail is True


def test_delete_by_non_owner_is_refused(send, store, alice, bob) -> None:
    result = send(alice, bob)

    with pytest.raises(DmailPermissionError):
        store.delete(Actor.from_user(alice), result.recipient_copy.id)

    assert result.recipient_copy.is_deleted is False


def test_copies_evolve_independently(send, store, alice, bob) -> None:
    result = send(alice, bob)

    store.delete(Actor.from_user(alice), result.sender_copy.id)

    assert result.sender_copy.is_deleted is True
    assert result.recipient_copy.is_deleted is False
    assert result.recipient_copy.is_read is False


def test_show_marks_owner_copy_read(send, store, alice, bob) -> None:
    result = send(alice, bob)

    shown = store.show(Actor.from_user(bob), result.recipient_copy.id)

    assert shown.is_read is True
    assert bob.unread_dmail_count == 0


def test_show_for_moderator_requires_key_and_is_read_only(send, store, alice, bob, moderator) -> None:
    result = send(alice, bob)
    copy = result.recipient_copy
    actor = Actor.from_user(moderator)

    with pytest.raises(DmailPermissionError):
        store.show(actor, copy.id)

    shown = store.show(actor, copy.id, key=copy.key)
    assert shown.id == copy.id
    assert copy.is_read is False
    assert bob.unread_dmail_count == 1


def test_mark_all_read(send, store, alice, bob) -> None:
    send(alice, bob, title="One")
    send(alice, bob, title="Two")
    assert bob.unread_dmail_count == 2

    changed = store.mark_all_read(Actor.from_user(bob))

    assert changed == 2
    assert bob.unread_dmail_count == 0
    assert bob.has_mail is False


def test_build_response_quotes_original(send, store, alice, bob) -> None:
    result = send(alice, bob, title="Lunch", body="Tomorrow?")
    actor = Actor.from_user(bob)

    reply = store.build_response(actor, result.recipient_copy.id)
    assert reply.title == "Re: Lunch"
    assert reply.body == "[quote]\nalice said:\n\nTomorrow?\n[/quote]\n\n"
    assert reply.to_id == alice.id
    assert reply.from_id == bob.id

    forward = store.build_response(actor, result.recipient_copy.id, forward=True)
    assert forward.to_id is None


def test_build_response_keeps_existing_reply_prefix(send, store, alice, bob) -> None:
    result = send(alice, bob, title="Re: Lunch", body="Sure")

    reply = store.build_response(Actor.from_user(bob), result.recipient_copy.id)

    assert reply.title == "Re: Lunch"


def test_create_automated_writes_only_recipient_copy(store, bob, db_session, dispatcher) -> None:
    result = store.create_automated(bob, title="Welcome", body="Glad to have you")

    copies = _copies(db_session)
    assert len(copies) == 1
    system = get_system_user(db_session)
    assert copies[0].owner_id == bob.id
    assert copies[0].from_id == system.id
    assert system.level == UserLevel.ADMIN
    assert bob.unread_dmail_count == 1
    assert dispatcher.notified == [result.recipient_copy]
