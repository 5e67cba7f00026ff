"""Dmail storage: dual-copy sends and per-copy state changes."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from dmail_service.db.time import utcnow
from dmail_service.db.unit_of_work import UnitOfWork
from dmail_service.models import Dmail, User
from dmail_service.services.autoban import AutobanPolicy
from dmail_service.services.errors import (
    DmailNotFoundError,
    DmailPermissionError,
    DmailValidationError,
)
from dmail_service.services.filters import FilterEngine
from dmail_service.services.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    should_notify,
)
from dmail_service.services.search import QueryCompiler
from dmail_service.services.spam import NullSpamClassifier, SpamClassifier
from dmail_service.services.types import Actor, DmailDraft, SendResult
from dmail_service.services.unread import UnreadCounter
from dmail_service.services.users import (
    find_user_by_name,
    get_system_user,
    get_user,
    is_banned,
)
from dmail_service.services.visibility import VisibilityGuard

logger = logging.getLogger(__name__)


class MessageStore:
    """Owns the two-copy dmail model.

    A send writes the recipient's copy and the sender's copy in one
    transaction. Once it commits, the sender is re-evaluated for spam
    bans, the recipient's unread counter is resynced and a notice may be
    dispatched, in that order. Failures in those follow-ups are logged
    and leave the sent dmail in place.
    """

    def __init__(
        self,
        db: Session,
        *,
        spam_classifier: SpamClassifier | None = None,
        notifier: NotificationDispatcher | None = None,
        filter_engine: FilterEngine | None = None,
        autoban: AutobanPolicy | None = None,
        unread: UnreadCounter | None = None,
    ) -> None:
        self.db = db
        self.spam_classifier = spam_classifier or NullSpamClassifier()
        self.notifier = notifier or LoggingNotificationDispatcher()
        self.filter_engine = filter_engine or FilterEngine()
        self.autoban = autoban or AutobanPolicy(db)
        self.unread = unread or UnreadCounter(db)
        self.guard = VisibilityGuard()

    # Sending

    def compose(
        self,
        actor: Actor,
        *,
        title: str | None,
        body: str | None,
        to_id: int | None = None,
        to_name: str | None = None,
    ) -> SendResult:
        """Send a new dmail from ``actor``, addressed by id or by name.

        The recipient's filter and the spam classifier are consulted
        before anything is written.
        """
        recipient = get_user(self.db, to_id) if to_id is not None else find_user_by_name(self.db, to_name)
        draft = DmailDraft(
            title=title or "",
            body=body or "",
            from_id=actor.user_id,
            to_id=recipient.id if recipient is not None else None,
        )

        errors = self.validate(draft)
        if errors:
            return SendResult(errors=errors)

        sender = get_user(self.db, draft.from_id)
        is_filtered = False
        is_spam = False
        if recipient is not None and draft.to_id != draft.from_id:
            is_filtered = self.filter_engine.matches(draft, recipient.dmail_filter, sender)
            is_spam = bool(self.spam_classifier.classify(draft))

        return self.send(draft, is_filtered=is_filtered, is_spam=is_spam)

    def validate(self, draft: DmailDraft, *, check_ban: bool = True) -> list[str]:
        """Return the reasons ``draft`` cannot be sent; empty when it can."""
        errors: list[str] = []
        if not draft.title.strip():
            errors.append("Title can't be blank")
        if not draft.body.strip():
            errors.append("Body can't be blank")
        if get_user(self.db, draft.to_id) is None:
            errors.append("Recipient must exist")
        if get_user(self.db, draft.from_id) is None:
            errors.append("Sender must exist")
        elif check_ban and is_banned(self.db, draft.from_id):
            errors.append("Sender is banned and cannot send messages")
        return errors

    def send(
        self,
        draft: DmailDraft,
        *,
        is_filtered: bool = False,
        is_spam: bool = False,
    ) -> SendResult:
        """Write the copies for ``draft`` atomically.

        A self-addressed draft yields one read copy. Otherwise the
        recipient's copy starts read only when filtered, and the sender's
        copy always starts read.
        """
        errors = self.validate(draft)
        if errors:
            return SendResult(errors=errors)

        recipient_copy: Dmail | None = None
        created_at = utcnow()

        with UnitOfWork(self.db) as uow:
            if draft.to_id != draft.from_id:
                recipient_copy = self._build_copy(
                    draft,
                    owner_id=draft.to_id,
                    is_read=is_filtered,
                    is_spam=is_spam,
                    created_at=created_at,
                )
            sender_copy = self._build_copy(
                draft,
                owner_id=draft.from_id,
                is_read=True,
                is_spam=False,
                created_at=created_at,
            )

            uow.after_commit(lambda: self.autoban.evaluate(draft.from_id), "autoban")
            if recipient_copy is not None:
                self._schedule_recipient_followups(uow, recipient_copy)

        logger.info(
            "Dmail sent from %s to %s (spam=%s, filtered=%s)",
            draft.from_id,
            draft.to_id,
            is_spam,
            is_filtered,
        )
        return SendResult(recipient_copy=recipient_copy, sender_copy=sender_copy)

    def create_automated(self, recipient: User, *, title: str, body: str) -> SendResult:
        """Deliver a system-authored dmail; only the recipient's copy is kept."""
        system = get_system_user(self.db)
        draft = DmailDraft(title=title, body=body, from_id=system.id, to_id=recipient.id)
        errors = self.validate(draft, check_ban=False)
        if errors:
            return SendResult(errors=errors)

        with UnitOfWork(self.db) as uow:
            copy = self._build_copy(
                draft,
                owner_id=recipient.id,
                is_read=False,
                is_spam=False,
                created_at=utcnow(),
            )
            self._schedule_recipient_followups(uow, copy)

        return SendResult(recipient_copy=copy)

    def _build_copy(
        self,
        draft: DmailDraft,
        *,
        owner_id: int,
        is_read: bool,
        is_spam: bool,
        created_at: datetime,
    ) -> Dmail:
        copy = Dmail(
            owner_id=owner_id,
            from_id=draft.from_id,
            to_id=draft.to_id,
            title=draft.title,
            body=draft.body,
            is_read=is_read,
            is_deleted=False,
            is_spam=is_spam,
            created_at=created_at,
        )
        self.db.add(copy)
        self.db.flush()
        return copy

    def _schedule_recipient_followups(self, uow: UnitOfWork, copy: Dmail) -> None:
        recipient_id = copy.owner_id
        uow.after_commit(lambda: self.unread.resync(recipient_id), "unread_resync")
        recipient = get_user(self.db, recipient_id)
        if recipient is not None and should_notify(copy, recipient):
            uow.after_commit(lambda: self.notifier.notify(copy), "notify")

    # Reading and state changes

    def get(self, dmail_id: int) -> Dmail:
        dmail = self.db.get(Dmail, dmail_id)
        if dmail is None:
            raise DmailNotFoundError(f"Dmail {dmail_id} not found")
        return dmail

    def get_owned(self, actor: Actor, dmail_id: int) -> Dmail:
        """Return a copy owned by ``actor``.

        Raises:
            DmailNotFoundError: If the copy does not exist.
            DmailPermissionError: If someone else owns it.
        """
        dmail = self.get(dmail_id)
        if not self.guard.is_owner(dmail, actor):
            raise DmailPermissionError(f"User {actor.user_id} does not own dmail {dmail_id}")
        return dmail

    def show(self, actor: Actor, dmail_id: int, key: str | None = None) -> Dmail:
        """Return a copy the actor may view; owners viewing it mark it read."""
        dmail = self.get(dmail_id)
        if not self.guard.can_view(dmail, actor, key):
            raise DmailPermissionError(f"User {actor.user_id} may not view dmail {dmail_id}")
        if self.guard.is_owner(dmail, actor) and not dmail.is_read:
            self._set_flag(dmail, is_read=True)
        return dmail

    def mark_read(self, actor: Actor, dmail_id: int) -> Dmail:
        dmail = self.get_owned(actor, dmail_id)
        return self._set_flag(dmail, is_read=True)

    def mark_all_read(self, actor: Actor) -> int:
        """Mark every unread copy owned by ``actor`` read; return how many changed."""
        with UnitOfWork(self.db) as uow:
            changed = (
                self.db.query(Dmail)
                .filter(Dmail.owner_id == actor.user_id, Dmail.is_read.is_(False))
                .update({Dmail.is_read: True}, synchronize_session="fetch")
            )
            uow.after_commit(lambda: self.unread.resync(actor.user_id), "unread_resync")
        return int(changed or 0)

    def delete(self, actor: Actor, dmail_id: int) -> Dmail:
        dmail = self.get_owned(actor, dmail_id)
        return self._set_flag(dmail, is_deleted=True)

    def undelete(self, actor: Actor, dmail_id: int) -> Dmail:
        dmail = self.get_owned(actor, dmail_id)
        return self._set_flag(dmail, is_deleted=False)

    def _set_flag(self, dmail: Dmail, **flags: bool) -> Dmail:
        with UnitOfWork(self.db) as uow:
            for name, value in flags.items():
                setattr(dmail, name, value)
            owner_id = dmail.owner_id
            uow.after_commit(lambda: self.unread.resync(owner_id), "unread_resync")
        return dmail

    def search(self, actor: Actor, params: Mapping[str, Any] | None = None) -> list[Dmail]:
        """Return the actor's copies matching ``params``, newest first by default."""
        try:
            query = QueryCompiler(self.db).compile(actor, params)
        except ValueError as exc:
            raise DmailValidationError([str(exc)]) from exc
        return query.all()

    # Replies

    def build_response(
        self,
        actor: Actor,
        dmail_id: int,
        *,
        key: str | None = None,
        forward: bool = False,
    ) -> DmailDraft:
        """Return an unsent reply (or forward) to a copy the actor may view."""
        dmail = self.get(dmail_id)
        if not self.guard.can_view(dmail, actor, key):
            raise DmailPermissionError(f"User {actor.user_id} may not view dmail {dmail_id}")

        title = dmail.title if "Re:" in dmail.title else f"Re: {dmail.title}"
        return DmailDraft(
            title=title,
            body=quoted_body(dmail),
            from_id=dmail.to_id,
            to_id=None if forward else dmail.from_id,
        )


def quoted_body(dmail: Dmail) -> str:
    return f"[quote]\n{dmail.sender.pretty_name} said:\n\n{dmail.body}\n[/quote]\n\n"
