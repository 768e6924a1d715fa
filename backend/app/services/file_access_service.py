from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.core.errors import Forbidden, NotFound, Unauthenticated, ValidationError, raise_upstream
from app.core.roles import ROLE_REVIEWER, can_edit, can_review
from app.lib.rows import first_row
from app.models.manuscript import ManuscriptStatus
from app.services.manuscript_service import owns_manuscript
from app.services.storage_service import StorageService

logger = logging.getLogger("journal.files")

SIGNED_URL_TTL_SECONDS = 60 * 60


@dataclass
class FileAccessService:
    """
    Mints short-lived signed URLs for manuscript files.

    URLs are never cached; every call re-mints. Word originals are for
    editors and admins only. PDFs follow manuscript visibility: anyone for the
    current version of a published manuscript, otherwise staff, assigned
    reviewers, and the manuscript's own author or submitter.

    中文注释:
    - 只存储对象路径，不存公开 URL；每次请求都重新签名。
    - 已发表稿件的旧版本仍然不公开。
    """

    supabase_admin: Any
    storage: StorageService
    ttl_seconds: int = SIGNED_URL_TTL_SECONDS

    def _one(self, table: str, columns: str, row_id: str) -> Optional[dict]:
        try:
            res = self.supabase_admin.table(table).select(columns).eq("id", row_id).limit(1).execute()
        except Exception as e:
            raise_upstream(e, context=f"Failed to load {table}")
        return first_row(res)

    def _has_assignment(self, manuscript_id: str, reviewer_id: str) -> bool:
        try:
            res = (
                self.supabase_admin.table("manuscript_reviews")
                .select("id")
                .eq("manuscript_id", manuscript_id)
                .eq("reviewer_id", reviewer_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load review assignment")
        return first_row(res) is not None

    def _word_path(self, manuscript_id: str, user: Optional[dict], profile: Optional[dict]) -> str:
        if user is None:
            raise Unauthenticated("Missing auth token")
        if not can_edit(profile):
            raise Forbidden()
        manuscript = self._one("manuscripts", "id, word_path", manuscript_id)
        if not manuscript:
            raise NotFound("Manuscript not found")
        if not manuscript.get("word_path"):
            raise NotFound("No Word file found")
        return manuscript["word_path"]

    def _pdf_path(self, target_id: str, user: Optional[dict], profile: Optional[dict]) -> str:
        manuscript_columns = "id, status, current_version, author_id, submitter_id"

        version = self._one("manuscript_versions", "id, file_path, manuscript_id", target_id)
        if version and version.get("file_path") and version.get("manuscript_id"):
            by_version = True
            manuscript = self._one("manuscripts", manuscript_columns, str(version["manuscript_id"]))
            if not manuscript:
                raise NotFound("Manuscript not found")
        else:
            by_version = False
            manuscript = self._one("manuscripts", manuscript_columns, target_id)
            if not manuscript:
                raise NotFound("Manuscript not found")
            if not manuscript.get("current_version"):
                raise NotFound("No version found for this manuscript")
            version = self._one("manuscript_versions", "id, file_path, manuscript_id", str(manuscript["current_version"]))
            if not version or not version.get("file_path"):
                raise NotFound("No file path found for current version")

        self._authorize_pdf(manuscript, version, by_version=by_version, user=user, profile=profile)
        return version["file_path"]

    def _authorize_pdf(
        self,
        manuscript: dict,
        version: dict,
        *,
        by_version: bool,
        user: Optional[dict],
        profile: Optional[dict],
    ) -> None:
        if user is None:
            if manuscript.get("status") != ManuscriptStatus.PUBLISHED.value:
                raise Unauthenticated("Missing auth token")
            # Older versions of a published manuscript stay private.
            if by_version and str(version.get("id")) != str(manuscript.get("current_version")):
                raise Forbidden()
            return

        if can_edit(profile):
            return
        if profile and profile.get("role") == ROLE_REVIEWER and can_review(profile):
            if not self._has_assignment(str(manuscript["id"]), str(user["id"])):
                raise Forbidden("Not assigned to this manuscript")
            return
        if not owns_manuscript(manuscript, str(user["id"])):
            raise Forbidden()

    def get_signed_url(
        self,
        target_id: str,
        kind: Optional[str],
        *,
        user: Optional[dict],
        profile: Optional[dict],
    ) -> dict:
        if not target_id:
            raise ValidationError("Missing id")
        kind = (kind or "pdf").strip().lower()
        if kind not in ("pdf", "word"):
            raise ValidationError("Invalid type")

        if kind == "word":
            path = self._word_path(target_id, user, profile)
        else:
            path = self._pdf_path(target_id, user, profile)

        signed = self.storage.create_signed_url(path=path, expires_in=self.ttl_seconds)
        logger.debug("signed url minted kind=%s id=%s", kind, target_id)
        return {
            "signedUrl": signed.url,
            "expiresAt": signed.expires_at.isoformat(),
            "expiresIn": signed.expires_in,
        }
