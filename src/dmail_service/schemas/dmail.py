"""Dmail-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DmailCreate(BaseModel):
    """Schema for sending a new dmail."""

    title: str = Field("", description="Subject line")
    body: str = Field("", description="Message body")
    to_id: int | None = Field(None, description="Recipient user id")
    to_name: str | None = Field(None, description="Recipient user name, used when to_id is absent")


class DmailResponse(BaseModel):
    """Schema for one dmail copy returned by the API."""

    id: int
    owner_id: int
    from_id: int
    to_id: int
    title: str
    body: str
    is_read: bool
    is_deleted: bool
    is_spam: bool
    created_at: datetime
    key: str = Field(..., description="Capability key granting moderators read access")

    model_config = ConfigDict(from_attributes=True)


class DmailDraftResponse(BaseModel):
    """Schema for an unsent reply or forward."""

    title: str
    body: str
    from_id: int
    to_id: int | None

    model_config = ConfigDict(from_attributes=True)
