from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.config import app_config
from app.core.errors import Forbidden, NotFound, ValidationError, raise_upstream
from app.core.roles import ROLE_REVIEWER, can_edit, can_review
from app.lib.rows import first_row, rows_of
from app.models.authors import authors_payload, authors_to_column, normalize_authors
from app.models.manuscript import EDITOR_SETTABLE_STATUSES, STATUS_ORDER, ManuscriptStatus
from app.services.notification_fanout import STATUS_CHANGED, SUBMISSION_RECEIVED, NotificationEvent
from app.services.storage_service import StorageService, build_path, is_pdf, is_word

logger = logging.getLogger("journal.manuscripts")

_LIST_COLUMNS = "id, title, status, created_at, authors, submitter_id, author_id, current_version"
_DETAIL_COLUMNS = (
    "id, title, abstract, status, created_at, authors, submitter_id, author_id, "
    "current_version, file_storage_path, word_path"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: Optional[str]
    content: bytes


def owns_manuscript(manuscript: dict, user_id: str) -> bool:
    return bool(user_id) and user_id in {
        str(manuscript.get("author_id") or ""),
        str(manuscript.get("submitter_id") or ""),
    }


@dataclass
class ManuscriptService:
    """
    Manuscript and version records plus their files in object storage.

    Role gates that depend only on the caller's profile are applied by router
    dependencies; checks that need the manuscript row (ownership, reviewer
    assignment) live here.
    """

    supabase_admin: Any
    storage: StorageService
    max_upload_bytes: int = app_config.max_upload_bytes

    # --- reads -----------------------------------------------------------

    def get_manuscript(self, manuscript_id: str, columns: str = _DETAIL_COLUMNS) -> dict:
        try:
            res = (
                self.supabase_admin.table("manuscripts")
                .select(columns)
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

    def has_assignment(self, manuscript_id: str, reviewer_id: str) -> bool:
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

    def _assigned_ids(self, reviewer_id: str) -> list[str]:
        try:
            res = (
                self.supabase_admin.table("manuscript_reviews")
                .select("manuscript_id")
                .eq("reviewer_id", reviewer_id)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load review assignments")
        return list(dict.fromkeys(str(r["manuscript_id"]) for r in rows_of(res) if r.get("manuscript_id")))

    def list_for_role(self, profile: dict) -> list[dict]:
        """Editors see everything; reviewers only what they are assigned to."""
        ids: Optional[list[str]] = None
        if profile.get("role") == ROLE_REVIEWER:
            ids = self._assigned_ids(str(profile["id"]))
            if not ids:
                return []
        elif not can_edit(profile):
            raise Forbidden()

        query = self.supabase_admin.table("manuscripts").select(_LIST_COLUMNS)
        if ids is not None:
            query = query.in_("id", ids)
        try:
            res = query.order("created_at", desc=True).execute()
        except Exception as e:
            raise_upstream(e, context="Failed to list manuscripts")
        return rows_of(res)

    def queue_for_role(self, profile: dict) -> dict:
        manuscripts = self.list_for_role(profile)

        queue: dict[str, list[dict]] = {s: [] for s in STATUS_ORDER}
        for m in manuscripts:
            key = m.get("status") if m.get("status") in queue else ManuscriptStatus.SUBMITTED.value
            queue[key].append(m)

        assignments: dict[str, list[dict]] = {}
        reviewers: list[dict] = []
        ids = [str(m["id"]) for m in manuscripts if m.get("id")]
        if ids:
            try:
                res = (
                    self.supabase_admin.table("manuscript_reviews")
                    .select("id, manuscript_id, reviewer_id, recommendation, created_at, decided_at")
                    .in_("manuscript_id", ids)
                    .execute()
                )
            except Exception as e:
                raise_upstream(e, context="Failed to load review assignments")
            for r in rows_of(res):
                assignments.setdefault(str(r["manuscript_id"]), []).append(r)

            if can_edit(profile):
                try:
                    rres = (
                        self.supabase_admin.table("profiles")
                        .select("id, email")
                        .eq("approved", True)
                        .eq("role", ROLE_REVIEWER)
                        .execute()
                    )
                except Exception as e:
                    raise_upstream(e, context="Failed to load reviewers")
                reviewers = [{"id": p.get("id"), "email": p.get("email")} for p in rows_of(rres)]

        return {"role": profile.get("role"), "queue": queue, "assignments": assignments, "reviewers": reviewers}

    def list_for_author(self, user_id: str) -> list[dict]:
        rows: dict[str, dict] = {}
        for column in ("author_id", "submitter_id"):
            try:
                res = (
                    self.supabase_admin.table("manuscripts")
                    .select(_LIST_COLUMNS)
                    .eq(column, user_id)
                    .order("created_at", desc=True)
                    .execute()
                )
            except Exception as e:
                raise_upstream(e, context="Failed to list manuscripts")
            for r in rows_of(res):
                rows.setdefault(str(r["id"]), r)
        return sorted(rows.values(), key=lambda r: str(r.get("created_at") or ""), reverse=True)

    def get_detail(self, manuscript_id: str, profile: dict) -> dict:
        manuscript = self.get_manuscript(manuscript_id)

        if profile.get("role") == ROLE_REVIEWER:
            if not can_review(profile) or not self.has_assignment(manuscript_id, str(profile["id"])):
                raise Forbidden("Not assigned to this manuscript")
        elif not can_edit(profile):
            raise Forbidden()

        try:
            res = (
                self.supabase_admin.table("manuscript_reviews")
                .select("id, manuscript_id, reviewer_id, recommendation, notes, created_at, decided_at")
                .eq("manuscript_id", manuscript_id)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load reviews")
        reviews = rows_of(res)

        reviewer_ids = list(dict.fromkeys(str(r["reviewer_id"]) for r in reviews if r.get("reviewer_id")))
        reviewer_profiles: list[dict] = []
        if reviewer_ids:
            try:
                pres = (
                    self.supabase_admin.table("profiles")
                    .select("id, email, role")
                    .in_("id", reviewer_ids)
                    .execute()
                )
            except Exception as e:
                raise_upstream(e, context="Failed to load reviewer profiles")
            reviewer_profiles = rows_of(pres)

        return {
            "manuscript": manuscript,
            "authors": authors_payload(manuscript.get("authors")),
            "reviews": reviews,
            "reviewers": reviewer_profiles,
            "role": profile.get("role"),
        }

    # --- writes ----------------------------------------------------------

    def _check_file(self, upload: UploadedFile, *, kind: str) -> None:
        if not upload.content:
            raise ValidationError("Missing file")
        if len(upload.content) > self.max_upload_bytes:
            raise ValidationError("File too large")
        if kind == "pdf" and not is_pdf(upload.content_type, upload.filename):
            raise ValidationError("Only PDF files are accepted")
        if kind == "word" and not is_word(upload.content_type, upload.filename):
            raise ValidationError("Only Word (.doc/.docx) files are accepted")

    def _delete(self, table: str, row_id: str) -> None:
        try:
            self.supabase_admin.table(table).delete().eq("id", row_id).execute()
        except Exception as e:
            logger.error("compensating delete failed table=%s id=%s: %s", table, row_id, e)

    def _insert_version(self, *, manuscript_id: str, file_path: str, uploader_id: str, label: Optional[str]) -> dict:
        row = {"manuscript_id": manuscript_id, "file_path": file_path, "uploader_id": uploader_id}
        if label:
            row["version_label"] = label
        try:
            res = self.supabase_admin.table("manuscript_versions").insert(row).execute()
        except Exception as e:
            raise_upstream(e, context="Failed to create manuscript version")
        version = first_row(res)
        if not version:
            raise_upstream(RuntimeError("no row returned"), context="Failed to create manuscript version")
        return version

    def _point_current_version(self, manuscript_id: str, version_id: str) -> None:
        (
            self.supabase_admin.table("manuscripts")
            .update({"current_version": version_id, "updated_at": _now()})
            .eq("id", manuscript_id)
            .execute()
        )

    def create_manuscript(
        self,
        *,
        title: str,
        abstract: Optional[str],
        authors: Any,
        pdf: Optional[UploadedFile],
        word: Optional[UploadedFile],
        user: dict,
    ) -> tuple[dict, dict, NotificationEvent]:
        """
        Store the PDF (and optional Word file), then insert the manuscript, its
        first version and the current_version pointer.

        The store has no multi-row transaction, so a failed database write
        deletes the rows and stored files written before it, then raises.

        中文注释:
        - Supabase 没有跨表事务，这里用补偿删除代替回滚。
        - 上传到 Storage 的文件同样在失败时清理，避免留下孤儿文件。
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("Missing title")
        if pdf is None:
            raise ValidationError("Missing file")
        self._check_file(pdf, kind="pdf")
        if word is not None:
            self._check_file(word, kind="word")

        user_id = str(user["id"])
        pdf_path = self.storage.upload_bytes(
            path=build_path("manuscripts", user_id, pdf.filename),
            content=pdf.content,
            content_type="application/pdf",
        )
        word_path = None
        if word is not None:
            try:
                word_path = self.storage.upload_bytes(
                    path=build_path("manuscripts", user_id, word.filename),
                    content=word.content,
                    content_type=word.content_type or "application/msword",
                )
            except Exception:
                self.storage.remove([pdf_path])
                raise
        stored = [pdf_path, word_path]

        row = {
            "title": title,
            "abstract": (abstract or "").strip() or None,
            "authors": authors_to_column(normalize_authors(authors)),
            "author_id": user_id,
            "submitter_id": user_id,
            "status": ManuscriptStatus.SUBMITTED.value,
            "file_storage_path": pdf_path,
            "word_path": word_path,
        }
        try:
            res = self.supabase_admin.table("manuscripts").insert(row).execute()
        except Exception as e:
            self.storage.remove(stored)
            raise_upstream(e, context="Failed to create manuscript")
        manuscript = first_row(res)
        if not manuscript:
            self.storage.remove(stored)
            raise_upstream(RuntimeError("no row returned"), context="Failed to create manuscript")

        try:
            version = self._insert_version(
                manuscript_id=manuscript["id"], file_path=pdf_path, uploader_id=user_id, label="v1"
            )
        except Exception:
            self._delete("manuscripts", manuscript["id"])
            self.storage.remove(stored)
            raise

        try:
            self._point_current_version(manuscript["id"], version["id"])
        except Exception as e:
            self._delete("manuscript_versions", version["id"])
            self._delete("manuscripts", manuscript["id"])
            self.storage.remove(stored)
            raise_upstream(e, context="Failed to set current version")

        manuscript["current_version"] = version["id"]
        logger.info("manuscript created id=%s by=%s", manuscript["id"], user_id)
        return manuscript, version, NotificationEvent(kind=SUBMISSION_RECEIVED, manuscript_id=manuscript["id"])

    def create_upload_target(
        self,
        *,
        kind: str,
        filename: str,
        content_type: Optional[str],
        size: Optional[int],
        user: dict,
    ) -> dict:
        """Signed upload URL for clients that push large files straight to storage."""
        if not filename or not kind:
            raise ValidationError("Missing filename or kind")
        if kind not in ("pdf", "word"):
            raise ValidationError("Invalid kind")
        if size and int(size) > self.max_upload_bytes:
            raise ValidationError("File too large")
        allowed = is_pdf(content_type, filename) if kind == "pdf" else is_word(content_type, filename)
        if not allowed:
            raise ValidationError("Invalid file type")
        return self.storage.create_signed_upload_url(path=build_path("manuscripts", str(user["id"]), filename))

    def upload_revision(
        self,
        *,
        manuscript_id: str,
        upload: UploadedFile,
        user: dict,
        profile: Optional[dict],
    ) -> dict:
        manuscript = self.get_manuscript(manuscript_id, "id, author_id, submitter_id, status")
        if not owns_manuscript(manuscript, str(user["id"])) and not can_edit(profile):
            raise Forbidden("Not allowed to revise this manuscript")
        if not upload.filename:
            raise ValidationError("Missing file")
        self._check_file(upload, kind="pdf")

        path = self.storage.upload_bytes(
            path=build_path("manuscripts", manuscript_id, upload.filename),
            content=upload.content,
            content_type="application/pdf",
            upsert=True,
        )
        try:
            version = self._insert_version(
                manuscript_id=manuscript_id, file_path=path, uploader_id=str(user["id"]), label=None
            )
        except Exception:
            self.storage.remove([path])
            raise
        try:
            self._point_current_version(manuscript_id, version["id"])
        except Exception as e:
            self._delete("manuscript_versions", version["id"])
            self.storage.remove([path])
            raise_upstream(e, context="Failed to set current version")

        logger.info("revision uploaded manuscript=%s version=%s", manuscript_id, version["id"])
        return version

    def update_status(self, *, manuscript_id: str, status: str) -> tuple[dict, NotificationEvent]:
        if not manuscript_id:
            raise ValidationError("Missing or invalid manuscriptId")
        if status not in EDITOR_SETTABLE_STATUSES:
            raise ValidationError("Invalid status value")

        try:
            res = (
                self.supabase_admin.table("manuscripts")
                .update({"status": status, "updated_at": _now()})
                .eq("id", manuscript_id)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to update status")
        row = first_row(res)
        if not row:
            raise NotFound("Manuscript not found")

        logger.info("manuscript status id=%s -> %s", manuscript_id, status)
        return row, NotificationEvent(kind=STATUS_CHANGED, manuscript_id=manuscript_id, status=status)
