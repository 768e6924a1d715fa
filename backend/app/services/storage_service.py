from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from app.core.errors import raise_upstream

logger = logging.getLogger("journal.storage")

PDF_CONTENT_TYPES = {"application/pdf"}
WORD_CONTENT_TYPES = {
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def _normalize_signed_url(resp: object) -> str | None:
    if not isinstance(resp, dict):
        return None
    return str(resp.get("signedUrl") or resp.get("signedURL") or resp.get("signed_url") or "") or None


def clean_filename(name: str) -> str:
    return re.sub(r"[^\w.\-]", "_", name or "") or "file"


def build_path(prefix: str, owner: str, filename: str) -> str:
    """`<prefix>/<owner>/<epoch millis>-<clean name>`; fresh for every upload."""
    return f"{prefix}/{owner}/{int(time.time() * 1000)}-{clean_filename(filename)}"


def is_pdf(content_type: str | None, filename: str | None) -> bool:
    lower = (content_type or "").strip().lower()
    return lower in PDF_CONTENT_TYPES or (filename or "").strip().lower().endswith(".pdf")


def is_word(content_type: str | None, filename: str | None) -> bool:
    lower = (content_type or "").strip().lower()
    name = (filename or "").strip().lower()
    return lower in WORD_CONTENT_TYPES or name.endswith(".doc") or name.endswith(".docx")


@dataclass(frozen=True)
class SignedUrl:
    url: str
    expires_in: int
    expires_at: datetime


@dataclass
class StorageService:
    """Object storage for a single bucket, backed by Supabase Storage."""

    client: Any
    bucket: str

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload_bytes(self, *, path: str, content: bytes, content_type: str, upsert: bool = False) -> str:
        # 中文注释: storage3 要求 header 值为字符串，传 bool 会导致 httpx 报错。
        opts = {"content-type": content_type, "upsert": "true" if upsert else "false"}
        try:
            self._bucket().upload(path, content, opts)
        except Exception as e:
            raise_upstream(e, context="Storage upload failed")
        return path

    def remove(self, paths: list[Optional[str]]) -> None:
        """
        Best-effort cleanup of objects written before a failed database write.

        中文注释:
        - 清理失败只记录日志，不覆盖调用方原本要抛出的错误。
        """
        targets = [p for p in paths if p]
        if not targets:
            return
        try:
            self._bucket().remove(targets)
        except Exception as e:
            logger.error("storage cleanup failed bucket=%s paths=%s: %s", self.bucket, targets, e)

    def create_signed_url(self, *, path: str, expires_in: int) -> SignedUrl:
        try:
            signed = self._bucket().create_signed_url(path, expires_in)
        except Exception as e:
            raise_upstream(e, context="Failed to create signed url")
        url = _normalize_signed_url(signed)
        if not url:
            raise_upstream(RuntimeError("empty response"), context="Failed to create signed url")
        return SignedUrl(
            url=url,
            expires_in=expires_in,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )

    def create_signed_upload_url(self, *, path: str) -> dict:
        try:
            data = self._bucket().create_signed_upload_url(path)
        except Exception as e:
            raise_upstream(e, context="Failed to prepare upload")
        data = data if isinstance(data, dict) else {}
        return {
            "bucket": self.bucket,
            "path": data.get("path") or path,
            "token": data.get("token"),
            "signedUrl": data.get("signed_url") or data.get("signedUrl"),
        }

    def public_url(self, path: str) -> str:
        return self._bucket().get_public_url(path)
