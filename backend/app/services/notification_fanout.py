"""
Notification fan-out.

Workflow operations return a `NotificationEvent`; routers hand it to
`BackgroundTasks`, so `dispatch` runs only after the primary write has been
committed and the response produced. Nothing in here may raise: delivery
failures are logged and dropped, with no retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from app.core.mail import EmailService
from app.core.roles import EDITOR_ROLES
from app.lib.rows import first_row, rows_of
from app.models.authors import author_emails, normalize_authors
from app.services.notification_service import NotificationService

logger = logging.getLogger("journal.fanout")

SUBMISSION_RECEIVED = "submission_received"
STATUS_CHANGED = "status_changed"
REVIEWER_ASSIGNED = "reviewer_assigned"
REVIEW_SUBMITTED = "review_submitted"
MANUAL = "manual"


@dataclass(frozen=True)
class NotificationEvent:
    kind: str
    manuscript_id: str
    status: Optional[str] = None
    recommendation: Optional[str] = None
    reviewer_id: Optional[str] = None
    reviewer_email: Optional[str] = None
    message: Optional[str] = None


@dataclass
class Delivery:
    emails: set[str] = field(default_factory=set)
    user_ids: list[str] = field(default_factory=list)


@dataclass
class NotificationFanout:
    supabase_admin: Any
    email: EmailService
    notifications: Optional[NotificationService] = None

    def _notification_service(self) -> NotificationService:
        if self.notifications is None:
            self.notifications = NotificationService(supabase_admin=self.supabase_admin)
        return self.notifications

    def dispatch(self, event: NotificationEvent) -> None:
        try:
            self._dispatch(event)
        except Exception as e:
            logger.warning("fan-out failed kind=%s manuscript=%s: %s", event.kind, event.manuscript_id, e)

    def _dispatch(self, event: NotificationEvent) -> None:
        manuscript = self._load_manuscript(event.manuscript_id) or {"id": event.manuscript_id}
        title = manuscript.get("title") or "Manuscript"

        if event.kind == REVIEWER_ASSIGNED:
            self._deliver(
                event,
                self._reviewer_delivery(event),
                row_title="New review assigned",
                row_body="You have been assigned a new manuscript to review.",
                subject="Review request: new manuscript assigned",
                template="review_assigned.html",
                context={"title": manuscript.get("title"), "manuscript_id": event.manuscript_id},
            )
            return

        if event.kind == REVIEW_SUBMITTED:
            self._deliver(
                event,
                self._editor_delivery(),
                row_title="Review submitted",
                row_body=f"A reviewer submitted a recommendation: {event.recommendation}.",
                subject=f"Review submitted: {title}",
                template="review_submitted.html",
                context={
                    "title": manuscript.get("title"),
                    "manuscript_id": event.manuscript_id,
                    "recommendation": event.recommendation,
                },
            )
            return

        if event.kind == SUBMISSION_RECEIVED:
            self._deliver(
                event,
                self._author_delivery(manuscript),
                row_title="Submission received",
                row_body=f"Your manuscript \"{title}\" was received.",
                subject=f"Submission received: {title}",
                template="submission_received.html",
                context={"title": title, "manuscript_id": event.manuscript_id},
            )
            return

        if event.kind in (STATUS_CHANGED, MANUAL):
            status = event.status or manuscript.get("status") or "submitted"
            body = event.message or f"Your manuscript status is now {status}."
            self._deliver(
                event,
                self._author_delivery(manuscript),
                row_title="Manuscript status update",
                row_body=body,
                subject=f"Status update: {title}",
                template="status_update.html",
                context={
                    "title": title,
                    "status": status,
                    "message": body,
                    "manuscript_id": event.manuscript_id,
                },
            )
            return

        logger.warning("unknown notification event kind=%s", event.kind)

    def _deliver(
        self,
        event: NotificationEvent,
        delivery: Delivery,
        *,
        row_title: str,
        row_body: str,
        subject: str,
        template: str,
        context: dict,
    ) -> None:
        if delivery.user_ids:
            self._notification_service().create_many(
                [
                    {"user_id": uid, "manuscript_id": event.manuscript_id, "title": row_title, "body": row_body}
                    for uid in delivery.user_ids
                ]
            )
        # 中文注释: 每个地址单独发一封，避免编辑/作者之间互相看到邮箱。
        for address in sorted(delivery.emails):
            try:
                self.email.send_template_email(to=[address], subject=subject, template_name=template, context=context)
            except Exception as e:
                logger.warning("email delivery failed kind=%s to=%s: %s", event.kind, address, e)
        logger.info(
            "fan-out kind=%s manuscript=%s rows=%d emails=%d",
            event.kind,
            event.manuscript_id,
            len(delivery.user_ids),
            len(delivery.emails),
        )

    def _load_manuscript(self, manuscript_id: str) -> Optional[dict]:
        try:
            res = (
                self.supabase_admin.table("manuscripts")
                .select("id, title, status, authors, author_id, submitter_id")
                .eq("id", manuscript_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.warning("fan-out could not load manuscript=%s: %s", manuscript_id, e)
            return None
        return first_row(res)

    def _profiles(self, ids: list[str]) -> list[dict]:
        if not ids:
            return []
        try:
            res = self.supabase_admin.table("profiles").select("id, email").in_("id", ids).execute()
        except Exception as e:
            logger.warning("fan-out could not load profiles: %s", e)
            return []
        return rows_of(res)

    def _author_delivery(self, manuscript: dict) -> Delivery:
        """Free-form author list emails plus the owning profiles."""
        delivery = Delivery()
        delivery.emails.update(author_emails(normalize_authors(manuscript.get("authors"))))
        owner_ids = list(
            dict.fromkeys(str(x) for x in (manuscript.get("author_id"), manuscript.get("submitter_id")) if x)
        )
        delivery.user_ids = owner_ids
        for p in self._profiles(owner_ids):
            if p.get("email"):
                delivery.emails.add(p["email"])
        return delivery

    def _reviewer_delivery(self, event: NotificationEvent) -> Delivery:
        delivery = Delivery()
        if not event.reviewer_id:
            return delivery
        delivery.user_ids = [event.reviewer_id]
        if event.reviewer_email:
            delivery.emails.add(event.reviewer_email)
        else:
            for p in self._profiles([event.reviewer_id]):
                if p.get("email"):
                    delivery.emails.add(p["email"])
        return delivery

    def _editor_delivery(self) -> Delivery:
        delivery = Delivery()
        try:
            res = (
                self.supabase_admin.table("profiles")
                .select("id, email")
                .eq("approved", True)
                .in_("role", sorted(EDITOR_ROLES))
                .execute()
            )
        except Exception as e:
            logger.warning("fan-out could not load editors: %s", e)
            return delivery
        for p in rows_of(res):
            if p.get("id"):
                delivery.user_ids.append(str(p["id"]))
            if p.get("email"):
                delivery.emails.add(p["email"])
        return delivery
