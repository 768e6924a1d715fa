from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SiteContentUpdate(BaseModel):
    key: str = Field(..., min_length=1, max_length=120)
    value: str = Field(..., max_length=200_000)

    @field_validator("key")
    @classmethod
    def validate_key(cls, value: str) -> str:
        trimmed = value.strip()
        if trimmed == "":
            raise ValueError("key is required")
        return trimmed


class BoardMemberSave(BaseModel):
    """
    Create or update a board member.

    With `id` and without `create` the row is updated; otherwise a new row is
    inserted (optionally with the caller-supplied id).
    """

    id: Optional[str] = None
    create: bool = False
    section: str = ""
    name: str = ""
    degrees: Optional[str] = None
    department: Optional[str] = None
    institution: Optional[str] = None
    location: Optional[str] = None
    email: Optional[str] = None
    order_index: Optional[int] = None


class BoardMemberDelete(BaseModel):
    id: str = ""


class BoardSectionAction(BaseModel):
    action: str = ""
    section: Optional[str] = None
    newSection: Optional[str] = None
