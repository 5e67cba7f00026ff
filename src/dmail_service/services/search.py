"""Compile dmail search parameters into a query."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.orm import InstrumentedAttribute, Query, Session

from dmail_service.models import Dmail, User
from dmail_service.services.types import Actor
from dmail_service.utils.names import normalize_name

TRUTHY = re.compile(r"\A(?:true|t|yes|y|on|1)\Z", re.IGNORECASE)
FALSY = re.compile(r"\A(?:false|f|no|n|off|0)\Z", re.IGNORECASE)

SEARCH_PARAMS = (
    "title_matches",
    "message_matches",
    "to_name",
    "to_id",
    "from_name",
    "from_id",
    "is_spam",
    "is_read",
    "is_deleted",
    "read",
    "order",
)


def is_present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def parse_boolean(value: Any) -> bool:
    """Interpret ``value`` as a boolean.

    Raises:
        ValueError: If the value is neither truthy nor falsy.
    """
    if isinstance(value, bool):
        return value
    text = str(value).strip()
    if TRUTHY.match(text):
        return True
    if FALSY.match(text):
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def parse_id(name: str, value: Any) -> int:
    try:
        return int(str(value).strip())
    except ValueError as err:
        raise ValueError(f"Invalid {name}: {value!r}") from err


def like_pattern(value: str) -> str:
    """Translate a ``*`` wildcard query into an escaped LIKE pattern.

    Queries without a wildcard match anywhere in the text.
    """
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    if "*" in escaped:
        return escaped.replace("*", "%")
    return f"%{escaped}%"


def text_matches(column: InstrumentedAttribute[str], value: str):
    return column.ilike(like_pattern(value), escape="\\")


def user_id_for_name(name: str):
    return (
        select(User.id)
        .where(func.lower(User.name) == normalize_name(name))
        .scalar_subquery()
    )


class QueryCompiler:
    """Builds a query over the caller's own dmail copies.

    Every supplied criterion narrows the result (criteria are ANDed);
    blank or missing ones are ignored. Spam is excluded unless ``is_spam``
    is given explicitly.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def conditions(self, actor: Actor, params: Mapping[str, Any]) -> list[Any]:
        conditions: list[Any] = [Dmail.owner_id == actor.user_id]

        if is_present(params.get("title_matches")):
            conditions.append(text_matches(Dmail.title, str(params["title_matches"])))
        if is_present(params.get("message_matches")):
            conditions.append(text_matches(Dmail.body, str(params["message_matches"])))

        if is_present(params.get("to_name")):
            conditions.append(Dmail.to_id == user_id_for_name(str(params["to_name"])))
        if is_present(params.get("to_id")):
            conditions.append(Dmail.to_id == parse_id("to_id", params["to_id"]))
        if is_present(params.get("from_name")):
            conditions.append(Dmail.from_id == user_id_for_name(str(params["from_name"])))
        if is_present(params.get("from_id")):
            conditions.append(Dmail.from_id == parse_id("from_id", params["from_id"]))

        is_spam = params.get("is_spam")
        conditions.append(
            Dmail.is_spam.is_(parse_boolean(is_spam) if is_present(is_spam) else False)
        )
        if is_present(params.get("is_read")):
            conditions.append(Dmail.is_read.is_(parse_boolean(params["is_read"])))
        if is_present(params.get("is_deleted")):
            conditions.append(Dmail.is_deleted.is_(parse_boolean(params["is_deleted"])))

        read = params.get("read")
        if is_present(read):
            if parse_boolean(read):
                conditions.append(Dmail.is_read.is_(True))
            else:
                conditions.append(and_(Dmail.is_read.is_(False), Dmail.is_deleted.is_(False)))

        return conditions

    def compile(self, actor: Actor, params: Mapping[str, Any] | None = None) -> Query[Dmail]:
        """Return a query for the actor's copies matching ``params``.

        Raises:
            ValueError: If an id or boolean parameter cannot be parsed.
        """
        params = params or {}
        query = self.db.query(Dmail).filter(*self.conditions(actor, params))

        if params.get("order") == "id_asc":
            return query.order_by(Dmail.id.asc())
        return query.order_by(Dmail.created_at.desc(), Dmail.id.desc())
