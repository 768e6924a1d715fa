from typing import Optional

from pydantic import BaseModel


class ProfileUpdateRequest(BaseModel):
    """Admin grant/revoke; at least one field must be set."""

    role: Optional[str] = None
    approved: Optional[bool] = None
