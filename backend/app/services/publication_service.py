from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.errors import NotFound, ValidationError, raise_upstream
from app.lib.rows import first_row, rows_of
from app.models.authors import authors_to_column, normalize_authors
from app.models.issue import PublishIssueRequest
from app.models.manuscript import ManuscriptStatus
from app.services.storage_service import StorageService, clean_filename, is_pdf

logger = logging.getLogger("journal.publishing")

_ISSUE_COLUMNS = "id, title, volume, issue_number, published_at, cover_url, pdf_path"


@dataclass
class PublicationService:
    """
    Issues and their articles.

    `publish_issue` compiles a set of manuscripts into a new issue. Issue and
    article inserts are two writes with no shared transaction; if the articles
    cannot be written the issue row is deleted again before the error is
    reported, so callers never see a half-published issue.

    中文注释:
    - issues 与 articles 两次写入没有共享事务，失败时删除已写入的 issue。
    - 旧版整期 PDF 上传在插入失败时同步删除已上传的文件。
    """

    supabase_admin: Any
    issues_storage: Optional[StorageService] = None

    def publish_issue(self, request: PublishIssueRequest) -> dict:
        title = (request.title or "").strip()
        manuscript_ids = list(dict.fromkeys(i for i in request.manuscript_ids if i))
        if not title or not manuscript_ids:
            raise ValidationError("Title and at least one manuscript are required")

        published_at = request.published_at or datetime.now(timezone.utc)
        issue_row = {
            "title": title,
            "volume": request.volume or None,
            "issue_number": request.issue_number,
            "published_at": published_at.isoformat(),
            "cover_url": request.cover_url or None,
            "pdf_path": request.pdf_path or None,
        }
        try:
            res = self.supabase_admin.table("issues").insert(issue_row).execute()
        except Exception as e:
            raise_upstream(e, context="Failed to create issue")
        issue = first_row(res)
        if not issue:
            raise_upstream(RuntimeError("no row returned"), context="Failed to create issue")

        try:
            articles = self._insert_articles(issue, manuscript_ids)
        except Exception as e:
            self._rollback_issue(issue["id"])
            raise_upstream(e, context="Failed to create articles")

        # No prior-status check: every listed manuscript becomes published.
        try:
            (
                self.supabase_admin.table("manuscripts")
                .update({"status": ManuscriptStatus.PUBLISHED.value})
                .in_("id", manuscript_ids)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Issue created but manuscripts could not be marked published")

        logger.info("issue published id=%s articles=%d", issue["id"], len(articles))
        return {"issue": issue, "articles": articles}

    def _insert_articles(self, issue: dict, manuscript_ids: list[str]) -> list[dict]:
        res = (
            self.supabase_admin.table("manuscripts")
            .select("id, title, abstract, authors")
            .in_("id", manuscript_ids)
            .execute()
        )
        by_id = {str(m["id"]): m for m in rows_of(res) if m.get("id")}

        # Unknown ids are skipped; order follows the request.
        article_rows = []
        for index, mid in enumerate(m for m in manuscript_ids if m in by_id):
            m = by_id[mid]
            article_rows.append(
                {
                    "issue_id": issue["id"],
                    "manuscript_id": mid,
                    "title": m.get("title") or f"Untitled article {index + 1}",
                    "abstract": m.get("abstract"),
                    "authors": authors_to_column(normalize_authors(m.get("authors"))),
                    "pdf_path": issue.get("pdf_path"),
                }
            )
        if not article_rows:
            return []
        inserted = self.supabase_admin.table("articles").insert(article_rows).execute()
        return rows_of(inserted)

    def _rollback_issue(self, issue_id: str) -> None:
        try:
            self.supabase_admin.table("articles").delete().eq("issue_id", issue_id).execute()
            self.supabase_admin.table("issues").delete().eq("id", issue_id).execute()
        except Exception as e:
            logger.error("issue rollback failed id=%s: %s", issue_id, e)

    def upload_issue_pdf(
        self,
        *,
        filename: str,
        content: bytes,
        content_type: Optional[str],
        title: str,
        published_at: Optional[str],
    ) -> dict:
        """Legacy path: store a whole-issue PDF and insert the issue row directly."""
        if not filename or not content:
            raise ValidationError("Missing file")
        if not (title or "").strip():
            raise ValidationError("Missing title")
        if not is_pdf(content_type, filename):
            raise ValidationError("Only PDF files are accepted")
        if self.issues_storage is None:
            raise ValidationError("Issue storage is not configured")

        path = f"issues/{int(datetime.now(timezone.utc).timestamp() * 1000)}-{clean_filename(filename)}"
        self.issues_storage.upload_bytes(path=path, content=content, content_type="application/pdf", upsert=True)
        public_url = self.issues_storage.public_url(path)

        try:
            res = (
                self.supabase_admin.table("issues")
                .insert(
                    {
                        "title": title.strip(),
                        "pdf_path": public_url,
                        "published_at": published_at or datetime.now(timezone.utc).isoformat(),
                    }
                )
                .execute()
            )
        except Exception as e:
            self.issues_storage.remove([path])
            raise_upstream(e, context="Failed to create issue")
        return {"publicUrl": public_url, "issue": first_row(res)}

    def update_issue_cover(self, *, issue_id: str, cover_url: Optional[str]) -> dict:
        try:
            res = (
                self.supabase_admin.table("issues")
                .update({"cover_url": (cover_url or "").strip() or None})
                .eq("id", issue_id)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to update issue")
        row = first_row(res)
        if not row:
            raise NotFound("Issue not found")
        return row

    # --- public reads ----------------------------------------------------

    def _articles_for(self, issue_id: str, columns: str) -> list[dict]:
        try:
            res = (
                self.supabase_admin.table("articles")
                .select(columns)
                .eq("issue_id", issue_id)
                .order("created_at", desc=False)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load articles")
        return rows_of(res)

    def get_issue(self, issue_id: str) -> dict:
        try:
            res = self.supabase_admin.table("issues").select(_ISSUE_COLUMNS).eq("id", issue_id).limit(1).execute()
        except Exception as e:
            raise_upstream(e, context="Failed to load issue")
        issue = first_row(res)
        if not issue:
            raise NotFound("Issue not found")
        articles = self._articles_for(issue_id, "id, title, abstract, authors, pdf_path, manuscript_id")
        return {"issue": issue, "articles": articles}

    def latest_issue(self) -> dict:
        try:
            res = (
                self.supabase_admin.table("issues")
                .select(_ISSUE_COLUMNS)
                .order("published_at", desc=True, nullsfirst=False)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load latest issue")
        issue = first_row(res)
        articles = self._articles_for(issue["id"], "id, title, authors, manuscript_id") if issue else []
        return {"issue": issue, "articles": articles}

    def list_issues(self) -> list[dict]:
        try:
            res = (
                self.supabase_admin.table("issues")
                .select(_ISSUE_COLUMNS)
                .order("published_at", desc=True, nullsfirst=False)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to list issues")
        return rows_of(res)

    def get_article(self, article_id: str) -> dict:
        try:
            res = (
                self.supabase_admin.table("articles")
                .select("id, title, abstract, authors, pdf_path, issue_id, manuscript_id, created_at")
                .eq("id", article_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load article")
        article = first_row(res)
        if not article:
            raise NotFound("Article not found")

        issue = None
        if article.get("issue_id"):
            try:
                ires = (
                    self.supabase_admin.table("issues")
                    .select("id, title, volume, issue_number, published_at")
                    .eq("id", article["issue_id"])
                    .limit(1)
                    .execute()
                )
            except Exception as e:
                raise_upstream(e, context="Failed to load issue")
            issue = first_row(ires)
        return {"article": article, "issue": issue}
