"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .dmail import DmailCreate, DmailDraftResponse, DmailResponse

__all__ = [
    "DmailCreate",
    "DmailDraftResponse",
    "DmailResponse",
]
