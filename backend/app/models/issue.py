from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PublishIssueRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    title: str = ""
    volume: Optional[str] = None
    issue_number: Optional[int] = None
    published_at: Optional[datetime] = None
    cover_url: Optional[str] = None
    pdf_path: Optional[str] = None
    manuscript_ids: list[str] = Field(default_factory=list)


class IssueCoverUpdate(BaseModel):
    cover_url: Optional[str] = None
