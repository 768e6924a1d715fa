from fastapi import APIRouter, BackgroundTasks, Depends, Query

from app.api.v1 import common
from app.core.errors import ValidationError
from app.core.roles import require_editor, require_staff_or_reviewer
from app.models.manuscript import ManuscriptNotifyRequest, StatusUpdateRequest
from app.services.notification_fanout import MANUAL, NotificationEvent

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/list-manuscripts")
async def list_manuscripts(profile: dict = Depends(require_staff_or_reviewer)):
    """All manuscripts for editors; only assigned ones for reviewers."""
    manuscripts = common.manuscript_service().list_for_role(profile)
    return {"ok": True, "manuscripts": manuscripts, "role": profile.get("role")}


@router.get("/queue")
async def queue(profile: dict = Depends(require_staff_or_reviewer)):
    data = common.manuscript_service().queue_for_role(profile)
    return {"ok": True, **data}


@router.get("/submissions/{manuscript_id}")
async def submission_detail(manuscript_id: str, profile: dict = Depends(require_staff_or_reviewer)):
    data = common.manuscript_service().get_detail(manuscript_id, profile)
    return {"ok": True, **data}


@router.post("/update-manuscript-status")
async def update_manuscript_status(
    payload: StatusUpdateRequest,
    background_tasks: BackgroundTasks,
    _profile: dict = Depends(require_editor),
):
    manuscript, event = common.manuscript_service().update_status(
        manuscript_id=payload.manuscriptId, status=payload.status
    )
    background_tasks.add_task(common.fanout().dispatch, event)
    return {"ok": True, "manuscript": manuscript}


@router.post("/notify")
async def notify_authors(
    payload: ManuscriptNotifyRequest,
    background_tasks: BackgroundTasks,
    _profile: dict = Depends(require_editor),
):
    """Manual status email to a manuscript's authors, with an optional message."""
    if not payload.manuscript_id:
        raise ValidationError("Missing manuscript_id")
    common.manuscript_service().get_manuscript(payload.manuscript_id, "id")
    event = NotificationEvent(
        kind=MANUAL,
        manuscript_id=payload.manuscript_id,
        status=payload.status,
        message=(payload.message or "").strip() or None,
    )
    background_tasks.add_task(common.fanout().dispatch, event)
    return {"ok": True}


@router.get("/notifications")
async def list_notifications(
    limit: int = Query(8, ge=1, le=100),
    profile: dict = Depends(require_staff_or_reviewer),
):
    rows = common.notification_service().list_for_user(user_id=str(profile["id"]), limit=limit)
    return {"ok": True, "notifications": rows}


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(notification_id: str, profile: dict = Depends(require_staff_or_reviewer)):
    row = common.notification_service().mark_read(user_id=str(profile["id"]), notification_id=notification_id)
    return {"ok": True, "notification": row}
