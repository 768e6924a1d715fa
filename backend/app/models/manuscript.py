from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ManuscriptStatus(str, Enum):
    """
    Manuscript lifecycle.

    submitted -> under_review (automatic, first reviewer assignment)
    under_review -> revisions_requested / accepted / rejected (editor)
    accepted -> published (publication compiler only)

    Editors may set any status in EDITOR_SETTABLE_STATUSES from any other; the
    transition table is intentionally not enforced.
    """

    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    REVISIONS_REQUESTED = "revisions_requested"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PUBLISHED = "published"


# Queue columns, in display order.
STATUS_ORDER: tuple[str, ...] = tuple(s.value for s in ManuscriptStatus)

EDITOR_SETTABLE_STATUSES: frozenset[str] = frozenset(
    {
        ManuscriptStatus.SUBMITTED.value,
        ManuscriptStatus.UNDER_REVIEW.value,
        ManuscriptStatus.REVISIONS_REQUESTED.value,
        ManuscriptStatus.ACCEPTED.value,
        ManuscriptStatus.REJECTED.value,
    }
)


class StatusUpdateRequest(BaseModel):
    manuscriptId: str = Field(..., min_length=1)
    status: str


class UploadRevisionRequest(BaseModel):
    fileName: str = ""
    contentBase64: str = ""
    contentType: Optional[str] = None


class CreateUploadRequest(BaseModel):
    filename: str = ""
    contentType: Optional[str] = None
    size: Optional[int] = None
    kind: str = ""


class ManuscriptNotifyRequest(BaseModel):
    manuscript_id: str = ""
    status: Optional[str] = None
    message: Optional[str] = None
