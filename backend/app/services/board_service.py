from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.core.errors import ValidationError, raise_upstream
from app.lib.rows import first_row, rows_of
from app.models.cms import BoardMemberSave

logger = logging.getLogger("journal.boards")

BOARD_TABLES = ("advisory_board", "editorial_board")
_MEMBER_COLUMNS = "id, section, name, degrees, department, institution, location, email, order_index, active"


def _optional(value: Optional[str]) -> Optional[str]:
    trimmed = (value or "").strip()
    return trimmed or None


@dataclass
class BoardService:
    """
    Member lists for one board table.

    Removal is always a soft delete (`active = false`); public listings only
    show active rows.
    """

    supabase_admin: Any
    table: str

    def __post_init__(self) -> None:
        if self.table not in BOARD_TABLES:
            raise ValueError(f"unknown board table: {self.table}")

    def list_members(self) -> list[dict]:
        try:
            res = (
                self.supabase_admin.table(self.table)
                .select(_MEMBER_COLUMNS)
                .eq("active", True)
                .order("section", desc=False)
                .order("order_index", desc=False)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load board")
        return rows_of(res)

    def _next_order_index(self, section: str) -> int:
        try:
            res = (
                self.supabase_admin.table(self.table)
                .select("order_index")
                .eq("section", section)
                .order("order_index", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to load board")
        top = first_row(res)
        return int((top or {}).get("order_index") or 0) + 1

    def save_member(self, request: BoardMemberSave) -> Optional[dict]:
        section = request.section.strip()
        name = request.name.strip()
        if not section or not name:
            raise ValidationError("Missing required fields: section, name")

        payload: dict[str, Any] = {
            "section": section,
            "name": name,
            "degrees": _optional(request.degrees),
            "department": _optional(request.department),
            "institution": _optional(request.institution),
            "location": _optional(request.location),
            "email": _optional(request.email),
        }
        if request.order_index is not None:
            payload["order_index"] = request.order_index

        try:
            if request.id and not request.create:
                res = self.supabase_admin.table(self.table).update(payload).eq("id", request.id).execute()
            else:
                row = {
                    **payload,
                    "active": True,
                    "order_index": payload.get("order_index") or self._next_order_index(section),
                }
                if request.id:
                    row["id"] = request.id
                res = self.supabase_admin.table(self.table).insert(row).execute()
        except Exception as e:
            raise_upstream(e, context="Failed to save board member")
        return first_row(res)

    def deactivate_member(self, member_id: str) -> None:
        if not member_id:
            raise ValidationError("Missing id")
        try:
            self.supabase_admin.table(self.table).update({"active": False}).eq("id", member_id).execute()
        except Exception as e:
            raise_upstream(e, context="Failed to remove board member")

    def rename_section(self, section: Optional[str], new_section: Optional[str]) -> None:
        source = (section or "").strip()
        target = (new_section or "").strip()
        if not source or not target:
            raise ValidationError("Missing section or newSection")
        try:
            (
                self.supabase_admin.table(self.table)
                .update({"section": target})
                .eq("section", source)
                .eq("active", True)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to rename section")
        logger.info("board section renamed table=%s %r -> %r", self.table, source, target)

    def delete_section(self, section: Optional[str]) -> None:
        target = (section or "").strip()
        if not target:
            raise ValidationError("Missing section")
        try:
            (
                self.supabase_admin.table(self.table)
                .update({"active": False})
                .eq("section", target)
                .eq("active", True)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to delete section")

    def apply_section_action(self, action: str, section: Optional[str], new_section: Optional[str]) -> None:
        if action == "rename_section":
            self.rename_section(section, new_section)
        elif action == "delete_section":
            self.delete_section(section)
        else:
            raise ValidationError("Invalid action")
