"""Value types passed between the dmail services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dmail_service.models.user import UserLevel

if TYPE_CHECKING:
    from dmail_service.models import Dmail, User


@dataclass(frozen=True)
class Actor:
    """Identity and privilege of the caller on whose behalf a service acts."""

    user_id: int
    level: int = UserLevel.MEMBER

    @classmethod
    def from_user(cls, user: User) -> Actor:
        return cls(user_id=user.id, level=user.level)

    @property
    def is_moderator(self) -> bool:
        return self.level >= UserLevel.MODERATOR


@dataclass(frozen=True)
class DmailDraft:
    """An unsent message."""

    title: str
    body: str
    from_id: int
    to_id: int | None


@dataclass
class SendResult:
    """Outcome of a send: the created copies, or the reasons nothing was written."""

    recipient_copy: Dmail | None = None
    sender_copy: Dmail | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
