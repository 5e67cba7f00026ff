"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from dmail_service.core.security import decode_access_token
from dmail_service.db.session import get_db
from dmail_service.models import User
from dmail_service.services import Actor, MessageStore

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        user_id = decode_access_token(credentials.credentials)
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_actor(current_user: CurrentUserDep) -> Actor:
    """Return the caller context for service calls."""
    return Actor.from_user(current_user)


def get_message_store(request: Request, db: SessionDep) -> MessageStore:
    """Return a message store bound to the request's session.

    The spam classifier and notification dispatcher are the app-scoped
    instances built at startup.
    """
    state = request.app.state
    return MessageStore(
        db,
        spam_classifier=getattr(state, "spam_classifier", None),
        notifier=getattr(state, "notifier", None),
    )


ActorDep = Annotated[Actor, Depends(get_actor)]
MessageStoreDep = Annotated[MessageStore, Depends(get_message_store)]
