import base64
import binascii
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile

from app.api.v1 import common
from app.core.auth_utils import get_current_user, optional_user
from app.core.errors import Forbidden, ValidationError
from app.core.roles import get_current_profile
from app.models.manuscript import CreateUploadRequest, ManuscriptNotifyRequest, UploadRevisionRequest
from app.services.manuscript_service import UploadedFile, owns_manuscript
from app.services.notification_fanout import SUBMISSION_RECEIVED, NotificationEvent

router = APIRouter(prefix="/submissions", tags=["Submissions"])


async def _read_upload(upload: Optional[UploadFile]) -> Optional[UploadedFile]:
    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    return UploadedFile(filename=upload.filename, content_type=upload.content_type, content=content)


@router.post("/create")
async def create_submission(
    background_tasks: BackgroundTasks,
    title: Optional[str] = Form(None),
    abstract: Optional[str] = Form(None),
    authors: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    word_file: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
):
    """
    Submit a new manuscript (multipart).

    `authors` may be a JSON array of `{name, email, affiliation}` or free text.
    """
    manuscript, version, event = common.manuscript_service().create_manuscript(
        title=title or "",
        abstract=abstract,
        authors=authors,
        pdf=await _read_upload(file),
        word=await _read_upload(word_file),
        user=current_user,
    )
    background_tasks.add_task(common.fanout().dispatch, event)
    return {"ok": True, "manuscript": manuscript, "version": version}


@router.post("/create-upload")
async def create_upload(
    payload: CreateUploadRequest,
    current_user: dict = Depends(get_current_user),
):
    """Signed URL for pushing a large file straight to storage."""
    target = common.manuscript_service().create_upload_target(
        kind=payload.kind,
        filename=payload.filename,
        content_type=payload.contentType,
        size=payload.size,
        user=current_user,
    )
    return {"ok": True, **target}


@router.get("/mine")
async def my_submissions(current_user: dict = Depends(get_current_user)):
    manuscripts = common.manuscript_service().list_for_author(str(current_user["id"]))
    return {"ok": True, "manuscripts": manuscripts}


@router.post("/notify")
async def notify_submission(
    payload: ManuscriptNotifyRequest,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(get_current_user),
):
    """Re-send the submission confirmation to the manuscript's authors."""
    if not payload.manuscript_id:
        raise ValidationError("Missing manuscript_id")
    manuscript = common.manuscript_service().get_manuscript(
        payload.manuscript_id, "id, author_id, submitter_id"
    )
    if not owns_manuscript(manuscript, str(current_user["id"])):
        raise Forbidden("Not allowed")
    background_tasks.add_task(
        common.fanout().dispatch,
        NotificationEvent(kind=SUBMISSION_RECEIVED, manuscript_id=payload.manuscript_id),
    )
    return {"ok": True}


@router.post("/{manuscript_id}/upload-revision")
async def upload_revision(
    manuscript_id: str,
    payload: UploadRevisionRequest,
    current_user: dict = Depends(get_current_user),
    profile: dict = Depends(get_current_profile),
):
    """New PDF version from a base64 body; author/submitter or editor-level only."""
    if not payload.fileName or not payload.contentBase64:
        raise ValidationError("Missing file")
    raw = payload.contentBase64
    if raw.startswith("data:") and "," in raw:
        raw = raw.split(",", 1)[1]
    try:
        content = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid base64 content")

    version = common.manuscript_service().upload_revision(
        manuscript_id=manuscript_id,
        upload=UploadedFile(filename=payload.fileName, content_type=payload.contentType, content=content),
        user=current_user,
        profile=profile,
    )
    return {"ok": True, "version": version}


@router.get("/{manuscript_id}/signed-url")
async def signed_url(
    manuscript_id: str,
    type: Optional[str] = Query(None),
    user: Optional[dict] = Depends(optional_user),
    profile: Optional[dict] = Depends(common.optional_profile),
):
    """
    Short-lived download URL for a manuscript (or version) PDF, or the Word
    original with `type=word`.
    """
    result = common.file_access_service().get_signed_url(manuscript_id, type, user=user, profile=profile)
    return {"ok": True, **result}
