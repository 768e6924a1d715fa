from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.errors import Forbidden, NotFound, ValidationError, raise_upstream
from app.core.roles import ROLE_REVIEWER
from app.lib.rows import first_row, is_unique_violation
from app.models.manuscript import ManuscriptStatus
from app.models.reviews import RECOMMENDATIONS
from app.services.notification_fanout import REVIEW_SUBMITTED, REVIEWER_ASSIGNED, NotificationEvent

logger = logging.getLogger("journal.reviews")

_REVIEW_COLUMNS = "id, manuscript_id, reviewer_id, recommendation, notes, created_at, decided_at"


@dataclass
class ReviewService:
    """Reviewer assignment and reviewer decisions."""

    supabase_admin: Any

    def _find_profile(self, column: str, value: str) -> Optional[dict]:
        try:
            res = (
                self.supabase_admin.table("profiles")
                .select("id, email, role, approved")
                .eq(column, value)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load reviewer profile")
        return first_row(res)

    def _resolve_reviewer(self, reviewer_id: Optional[str], reviewer_email: Optional[str]) -> tuple[str, Optional[str]]:
        reviewer_id = (reviewer_id or "").strip() or None
        reviewer_email = (reviewer_email or "").strip() or None

        if not reviewer_id and reviewer_email:
            profile = self._find_profile("email", reviewer_email)
            if not profile:
                raise NotFound("Reviewer not found")
            if profile.get("role") != ROLE_REVIEWER or profile.get("approved") is not True:
                raise ValidationError("Reviewer is not approved")
            return str(profile["id"]), profile.get("email")

        if not reviewer_id:
            raise ValidationError("Missing reviewer_id or reviewer_email")

        profile = self._find_profile("id", reviewer_id)
        if profile is not None:
            if profile.get("role") != ROLE_REVIEWER or profile.get("approved") is not True:
                raise ValidationError("Reviewer is not approved")
            return reviewer_id, profile.get("email") or reviewer_email
        return reviewer_id, reviewer_email

    def _existing(self, manuscript_id: str, reviewer_id: str) -> Optional[dict]:
        try:
            res = (
                self.supabase_admin.table("manuscript_reviews")
                .select(_REVIEW_COLUMNS)
                .eq("manuscript_id", manuscript_id)
                .eq("reviewer_id", reviewer_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load review assignment")
        return first_row(res)

    def _remove_assignment(self, review_id: str) -> None:
        try:
            self.supabase_admin.table("manuscript_reviews").delete().eq("id", review_id).execute()
        except Exception as e:
            logger.error("compensating delete failed table=manuscript_reviews id=%s: %s", review_id, e)

    def _require_manuscript(self, manuscript_id: str) -> dict:
        try:
            res = (
                self.supabase_admin.table("manuscripts")
                .select("id, status")
                .eq("id", manuscript_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load manuscript")
        row = first_row(res)
        if not row:
            raise NotFound("Manuscript not found")
        return row

    def assign_reviewer(
        self,
        *,
        manuscript_id: str,
        reviewer_id: Optional[str] = None,
        reviewer_email: Optional[str] = None,
    ) -> tuple[dict, Optional[NotificationEvent]]:
        """
        Assign a reviewer; idempotent per (manuscript, reviewer).

        Returns the assignment and, for a new assignment only, the event to fan
        out. Re-assigning returns the existing row unchanged.

        中文注释:
        1) 同一 (稿件, 审稿人) 只保留一条分配记录，重复分配直接返回已有记录。
        2) 仅首次分配把状态从 submitted 推进到 under_review。
        3) 状态推进失败时删除刚插入的分配，保证重试仍按首次分配处理并通知审稿人。
        """
        if not manuscript_id:
            raise ValidationError("Missing manuscript_id")
        rid, remail = self._resolve_reviewer(reviewer_id, reviewer_email)
        self._require_manuscript(manuscript_id)

        existing = self._existing(manuscript_id, rid)
        if existing:
            return existing, None

        try:
            res = (
                self.supabase_admin.table("manuscript_reviews")
                .insert({"manuscript_id": manuscript_id, "reviewer_id": rid})
                .execute()
            )
        except Exception as e:
            if is_unique_violation(e):
                # Lost a race with a concurrent assignment of the same pair.
                raced = self._existing(manuscript_id, rid)
                if raced:
                    return raced, None
            raise_upstream(e, context="Failed to assign reviewer")
        review = first_row(res)
        if not review:
            raise_upstream(RuntimeError("no row returned"), context="Failed to assign reviewer")

        # Conditional on status so only the first assignment advances it.
        try:
            (
                self.supabase_admin.table("manuscripts")
                .update({"status": ManuscriptStatus.UNDER_REVIEW.value})
                .eq("id", manuscript_id)
                .eq("status", ManuscriptStatus.SUBMITTED.value)
                .execute()
            )
        except Exception as e:
            # Drop the new row so a retry is treated as the first assignment again.
            self._remove_assignment(review["id"])
            raise_upstream(e, context="Failed to advance manuscript status")

        logger.info("reviewer assigned manuscript=%s reviewer=%s", manuscript_id, rid)
        event = NotificationEvent(
            kind=REVIEWER_ASSIGNED,
            manuscript_id=manuscript_id,
            reviewer_id=rid,
            reviewer_email=remail,
        )
        return review, event

    def submit_decision(
        self,
        *,
        manuscript_id: str,
        recommendation: str,
        notes: Optional[str],
        reviewer_id: str,
    ) -> tuple[dict, NotificationEvent]:
        """
        Record a reviewer's recommendation on their own assignment.

        A second call overwrites the first; decided_at moves to the latest call.
        """
        if not manuscript_id:
            raise ValidationError("Missing manuscript_id")
        if recommendation not in RECOMMENDATIONS:
            raise ValidationError("Invalid recommendation")

        assignment = self._existing(manuscript_id, reviewer_id)
        if not assignment:
            raise Forbidden("Not assigned to this manuscript")

        try:
            res = (
                self.supabase_admin.table("manuscript_reviews")
                .update(
                    {
                        "recommendation": recommendation,
                        "notes": notes if notes else None,
                        "decided_at": datetime.now(timezone.utc).isoformat(),
                    }
                )
                .eq("id", assignment["id"])
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to record decision")
        updated = first_row(res) or {**assignment, "recommendation": recommendation, "notes": notes}

        logger.info("review decision manuscript=%s reviewer=%s rec=%s", manuscript_id, reviewer_id, recommendation)
        return updated, NotificationEvent(
            kind=REVIEW_SUBMITTED,
            manuscript_id=manuscript_id,
            recommendation=recommendation,
            reviewer_id=reviewer_id,
        )
