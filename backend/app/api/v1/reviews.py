from fastapi import APIRouter, BackgroundTasks, Depends

from app.api.v1 import common
from app.core.roles import require_editor, require_reviewer
from app.models.reviews import AssignReviewerRequest, ReviewDecisionRequest

router = APIRouter(prefix="/admin/review", tags=["Reviews"])


@router.post("/assign")
async def assign_reviewer(
    payload: AssignReviewerRequest,
    background_tasks: BackgroundTasks,
    _profile: dict = Depends(require_editor),
):
    """
    Assign a reviewer by id or email.

    Assigning the same reviewer again returns the existing assignment and sends
    nothing.
    """
    review, event = common.review_service().assign_reviewer(
        manuscript_id=payload.manuscript_id,
        reviewer_id=payload.reviewer_id,
        reviewer_email=payload.reviewer_email,
    )
    if event is not None:
        background_tasks.add_task(common.fanout().dispatch, event)
    return {"ok": True, "review": review, "created": event is not None}


@router.post("/decision")
async def submit_decision(
    payload: ReviewDecisionRequest,
    background_tasks: BackgroundTasks,
    profile: dict = Depends(require_reviewer),
):
    review, event = common.review_service().submit_decision(
        manuscript_id=payload.manuscript_id,
        recommendation=payload.recommendation,
        notes=payload.notes,
        reviewer_id=str(profile["id"]),
    )
    background_tasks.add_task(common.fanout().dispatch, event)
    return {"ok": True, "review": review}
