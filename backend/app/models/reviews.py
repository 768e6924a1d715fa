from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Recommendation(str, Enum):
    ACCEPT = "accept"
    MINOR_REVISIONS = "minor_revisions"
    MAJOR_REVISIONS = "major_revisions"
    REJECT = "reject"


RECOMMENDATIONS: frozenset[str] = frozenset(r.value for r in Recommendation)


class AssignReviewerRequest(BaseModel):
    manuscript_id: str = ""
    reviewer_id: Optional[str] = None
    reviewer_email: Optional[str] = None


class ReviewDecisionRequest(BaseModel):
    manuscript_id: str = ""
    recommendation: str = ""
    notes: Optional[str] = Field(None, max_length=20_000)
