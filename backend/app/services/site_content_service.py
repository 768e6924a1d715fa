from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import bleach

from app.core.errors import ValidationError, raise_upstream
from app.lib.rows import rows_of

logger = logging.getLogger("journal.cms")

# Rich-text whitelist for editable page blocks; no style or on* attributes.
ALLOWED_TAGS = [
    "p",
    "br",
    "strong",
    "b",
    "em",
    "i",
    "u",
    "s",
    "blockquote",
    "ul",
    "ol",
    "li",
    "h1",
    "h2",
    "h3",
    "h4",
    "hr",
    "a",
    "img",
    "span",
    "div",
]
ALLOWED_ATTRIBUTES = {
    "a": ["href", "title", "target", "rel"],
    "img": ["src", "alt", "title", "width", "height"],
    "div": ["class"],
    "span": ["class"],
}
ALLOWED_PROTOCOLS = ["http", "https", "mailto"]


def sanitize_html(value: str) -> str:
    return bleach.clean(
        value.strip(),
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
    )


@dataclass
class SiteContentService:
    """Key/value text blocks shown on the public pages."""

    supabase_admin: Any

    def get_all(self) -> dict[str, str]:
        try:
            res = self.supabase_admin.table("site_content").select("key, value").execute()
        except Exception as e:
            raise_upstream(e, context="Failed to load site content")
        return {str(r["key"]): r.get("value") or "" for r in rows_of(res) if r.get("key")}

    def update(self, *, key: str, value: str) -> dict:
        key = (key or "").strip()
        if not key or not (value or "").strip():
            raise ValidationError("Missing key or value")
        row = {"key": key, "value": sanitize_html(value)}
        try:
            self.supabase_admin.table("site_content").upsert(row, on_conflict="key").execute()
        except Exception as e:
            raise_upstream(e, context="Failed to save site content")
        logger.info("site content updated key=%s", key)
        return row
