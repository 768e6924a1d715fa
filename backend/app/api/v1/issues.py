from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from app.api.v1 import common
from app.core.roles import require_editor
from app.models.issue import IssueCoverUpdate, PublishIssueRequest

router = APIRouter(tags=["Issues"])


@router.get("/issues")
async def list_issues():
    return {"ok": True, "issues": common.publication_service().list_issues()}


@router.get("/issues/latest")
async def latest_issue():
    return {"ok": True, **common.publication_service().latest_issue()}


@router.get("/issues/{issue_id}")
async def get_issue(issue_id: str):
    return {"ok": True, **common.publication_service().get_issue(issue_id)}


@router.get("/articles/{article_id}")
async def get_article(article_id: str):
    return {"ok": True, **common.publication_service().get_article(article_id)}


@router.post("/admin/publish-issue")
async def publish_issue(payload: PublishIssueRequest, _profile: dict = Depends(require_editor)):
    """Compile manuscripts into a new issue and mark them published."""
    result = common.publication_service().publish_issue(payload)
    return {"ok": True, **result}


@router.post("/admin/upload-issue")
async def upload_issue(
    title: Optional[str] = Form(None),
    published_at: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    _profile: dict = Depends(require_editor),
):
    """Upload a whole-issue PDF and create the issue row in one step."""
    content = await file.read() if file is not None else b""
    result = common.publication_service().upload_issue_pdf(
        filename=(file.filename if file is not None else "") or "",
        content=content,
        content_type=file.content_type if file is not None else None,
        title=title or "",
        published_at=published_at,
    )
    return {"ok": True, **result}


@router.patch("/admin/issues/{issue_id}")
async def update_issue(issue_id: str, payload: IssueCoverUpdate, _profile: dict = Depends(require_editor)):
    issue = common.publication_service().update_issue_cover(issue_id=issue_id, cover_url=payload.cover_url)
    return {"ok": True, "issue": issue}
