# src/dmail_service/api/v1/endpoints/dmails.py
"""Dmail endpoints for the API."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import APIRouter, HTTPException, Query, status

from dmail_service.api.v1.dependencies import ActorDep, MessageStoreDep
from dmail_service.models import Dmail
from dmail_service.schemas.dmail import DmailCreate, DmailDraftResponse, DmailResponse
from dmail_service.services import (
    DmailNotFoundError,
    DmailPermissionError,
    DmailValidationError,
)

router = APIRouter(prefix="/dmails", tags=["dmails"])

# Handlers stay sync so blocking store and webhook I/O runs in the threadpool.


@contextmanager
def _service_errors() -> Iterator[None]:
    """Translate service exceptions into HTTP errors."""
    try:
        yield
    except DmailNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dmail not found") from exc
    except DmailPermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied") from exc
    except DmailValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"errors": exc.errors},
        ) from exc


@router.post("/", response_model=DmailResponse, status_code=status.HTTP_201_CREATED)
def create_dmail(
    dmail_data: DmailCreate,
    actor: ActorDep,
    store: MessageStoreDep,
) -> Dmail:
    """Send a dmail and return the sender's copy."""
    result = store.compose(
        actor,
        title=dmail_data.title,
        body=dmail_data.body,
        to_id=dmail_data.to_id,
        to_name=dmail_data.to_name,
    )
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"errors": result.errors},
        )
    return result.sender_copy


@router.get("/", response_model=list[DmailResponse])
def search_dmails(
    actor: ActorDep,
    store: MessageStoreDep,
    title_matches: str | None = Query(None, description="Title text; `*` is a wildcard"),
    message_matches: str | None = Query(None, description="Body text; `*` is a wildcard"),
    to_name: str | None = Query(None),
    to_id: str | None = Query(None),
    from_name: str | None = Query(None),
    from_id: str | None = Query(None),
    is_spam: str | None = Query(None, description="Defaults to excluding spam"),
    is_read: str | None = Query(None),
    is_deleted: str | None = Query(None),
    read: str | None = Query(None, description="Truthy for read, falsy for unread"),
    order: str | None = Query(None, description="`id_asc` for oldest first"),
) -> list[Dmail]:
    """List the caller's own dmail copies matching the given criteria."""
    params: dict[str, Any] = {
        "title_matches": title_matches,
        "message_matches": message_matches,
        "to_name": to_name,
        "to_id": to_id,
        "from_name": from_name,
        "from_id": from_id,
        "is_spam": is_spam,
        "is_read": is_read,
        "is_deleted": is_deleted,
        "read": read,
        "order": order,
    }
    with _service_errors():
        return store.search(actor, params)


@router.post("/mark_all_as_read")
def mark_all_as_read(actor: ActorDep, store: MessageStoreDep) -> dict[str, Any]:
    """Mark every unread copy owned by the caller as read."""
    count = store.mark_all_read(actor)
    return {"status": "marked_all_as_read", "count": count}


@router.get("/{dmail_id}", response_model=DmailResponse)
def show_dmail(
    dmail_id: int,
    actor: ActorDep,
    store: MessageStoreDep,
    key: str | None = Query(None, description="Capability key for non-owners"),
) -> Dmail:
    """Show one copy; owners viewing it mark it read."""
    with _service_errors():
        return store.show(actor, dmail_id, key)


@router.get("/{dmail_id}/response", response_model=DmailDraftResponse)
def build_response(
    dmail_id: int,
    actor: ActorDep,
    store: MessageStoreDep,
    forward: bool = Query(False),
    key: str | None = Query(None),
) -> Any:
    """Return a reply (or forward) draft quoting the given copy."""
    with _service_errors():
        return store.build_response(actor, dmail_id, key=key, forward=forward)


@router.put("/{dmail_id}/read", response_model=DmailResponse)
def mark_dmail_read(dmail_id: int, actor: ActorDep, store: MessageStoreDep) -> Dmail:
    """Mark one of the caller's copies as read."""
    with _service_errors():
        return store.mark_read(actor, dmail_id)


@router.delete("/{dmail_id}", response_model=DmailResponse)
def delete_dmail(dmail_id: int, actor: ActorDep, store: MessageStoreDep) -> Dmail:
    """Flag one of the caller's copies as deleted."""
    with _service_errors():
        return store.delete(actor, dmail_id)


@router.post("/{dmail_id}/undelete", response_model=DmailResponse)
def undelete_dmail(dmail_id: int, actor: ActorDep, store: MessageStoreDep) -> Dmail:
    """Restore one of the caller's deleted copies."""
    with _service_errors():
        return store.undelete(actor, dmail_id)
