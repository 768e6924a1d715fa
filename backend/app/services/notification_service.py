from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError

from app.core.errors import NotFound, raise_upstream
from app.lib.rows import first_row, rows_of
from app.models.notification import NotificationCreate

logger = logging.getLogger("journal.notifications")


@dataclass
class NotificationService:
    """
    Reads and writes of the notifications table.

    Inserts are best-effort: a failed insert is logged and reported as an
    empty result, never raised to the caller.
    """

    supabase_admin: Any

    def create_many(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        payload = [
            NotificationCreate(
                user_id=str(r["user_id"]),
                manuscript_id=r.get("manuscript_id"),
                title=str(r["title"])[:255],
                body=str(r["body"])[:2000],
            ).model_dump()
            for r in rows
            if r.get("user_id")
        ]
        if not payload:
            return []
        try:
            res = self.supabase_admin.table("notifications").insert(payload).execute()
            return rows_of(res)
        except APIError as e:
            # Orphan profiles (no auth.users row) trip the user_id foreign key;
            # nothing downstream cares, so keep it out of the warning log.
            text = str(e).lower()
            code = str(getattr(e, "code", "") or "")
            if code == "23503" or ("23503" in text and "foreign key" in text):
                logger.debug("notification insert skipped (fk): %s", e)
                return []
            logger.warning("notification insert failed: %s", e)
            return []
        except Exception as e:
            logger.warning("notification insert failed: %s", e)
            return []

    def create_notification(
        self,
        *,
        user_id: str,
        manuscript_id: Optional[str],
        title: str,
        body: str,
    ) -> Optional[Dict[str, Any]]:
        rows = self.create_many(
            [{"user_id": user_id, "manuscript_id": manuscript_id, "title": title, "body": body}]
        )
        return rows[0] if rows else None

    def list_for_user(self, *, user_id: str, limit: int = 8) -> List[Dict[str, Any]]:
        try:
            res = (
                self.supabase_admin.table("notifications")
                .select("id, title, body, manuscript_id, created_at, read_at")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load notifications")
        return rows_of(res)

    def mark_read(self, *, user_id: str, notification_id: str) -> Dict[str, Any]:
        try:
            res = (
                self.supabase_admin.table("notifications")
                .update({"read_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", notification_id)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to update notification")
        row = first_row(res)
        if row is None:
            # Either missing or someone else's notification.
            raise NotFound("Notification not found")
        return row
