from typing import Optional

from pydantic import BaseModel, Field


class NotificationCreate(BaseModel):
    """
    In-app notification row as inserted.

    Append-only side channel; nothing in the review workflow depends on these
    rows existing.
    """

    user_id: str
    manuscript_id: Optional[str] = None
    title: str = Field(..., max_length=255)
    body: str = Field(..., max_length=2000)
