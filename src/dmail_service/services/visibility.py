"""Read access rules for dmail copies."""

from __future__ import annotations

from dmail_service.core.security import verify_dmail_key
from dmail_service.models import Dmail
from dmail_service.services.types import Actor


class VisibilityGuard:
    """Owners always see their copies; moderators need the copy's key."""

    @staticmethod
    def can_view(dmail: Dmail, actor: Actor, key: str | None = None) -> bool:
        if dmail.owner_id == actor.user_id:
            return True
        return actor.is_moderator and verify_dmail_key(dmail.title, dmail.body, key)

    @staticmethod
    def is_owner(dmail: Dmail, actor: Actor) -> bool:
        return dmail.owner_id == actor.user_id
