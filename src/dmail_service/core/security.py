"""Token utilities: bearer JWTs and dmail capability keys."""
from __future__ import annotations

import hmac
import json
from datetime import UTC, datetime, timedelta

from jose import jws, jwt

from dmail_service.core.settings import settings

DMAIL_KEY_ALGORITHM = "HS256"


def derive_dmail_key(title: str, body: str) -> str:
    """Return the capability key for a dmail's content.

    The key is a compact JWS over the JSON array ``[title, body]`` signed
    with the process-wide dmail secret, so the same content always yields
    the same key and nobody without the secret can mint one. Encoding the
    pair keeps ``("a b", "c")`` and ``("a", "b c")`` apart.
    """
    payload = json.dumps([title, body], ensure_ascii=False).encode("utf-8")
    return jws.sign(payload, settings.capability_secret, algorithm=DMAIL_KEY_ALGORITHM)


def verify_dmail_key(title: str, body: str, presented: str | None) -> bool:
    """Return True if ``presented`` is the capability key for this content."""
    if not presented:
        return False
    expected = derive_dmail_key(title, body)
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


def create_access_token(user_id: int, extra_claims: dict[str, str] | None = None) -> str:
    """Create JWT access token for user authentication."""
    to_encode: dict[str, object] = {"sub": str(user_id)}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> int | None:
    """Return the user id carried by a bearer token, or None when absent.

    Raises:
        jose.JWTError: If the token signature or claims are invalid.
    """
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
    )
    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        return None
    return int(subject)
