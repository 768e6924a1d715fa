from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.core.roles import require_editor
from app.lib import api_client
from app.models.cms import BoardMemberDelete, BoardMemberSave, BoardSectionAction, SiteContentUpdate
from app.services.board_service import BoardService
from app.services.site_content_service import SiteContentService

logger = logging.getLogger("journal.cms")

router = APIRouter(tags=["CMS"])


def _site_content() -> SiteContentService:
    return SiteContentService(supabase_admin=api_client.supabase_admin)


def _board(table: str) -> BoardService:
    return BoardService(supabase_admin=api_client.supabase_admin, table=table)


@router.get("/site-content")
async def get_site_content():
    """All editable text blocks as `{key: value}` (public)."""
    return {"ok": True, "content": _site_content().get_all()}


@router.post("/site-content")
async def update_site_content(payload: SiteContentUpdate, profile: dict = Depends(require_editor)):
    row = _site_content().update(key=payload.key, value=payload.value)
    logger.info("site content key=%s by=%s", row["key"], profile.get("id"))
    return {"ok": True, **row}


def _register_board(path: str, table: str) -> None:
    """Public listing plus editor-level writes for one board table."""

    @router.get(path, name=f"list_{table}")
    async def list_members():
        return {"ok": True, "members": _board(table).list_members()}

    @router.post(path, name=f"save_{table}_member")
    async def save_member(payload: BoardMemberSave, _profile: dict = Depends(require_editor)):
        return {"ok": True, "member": _board(table).save_member(payload)}

    @router.delete(path, name=f"remove_{table}_member")
    async def remove_member(payload: BoardMemberDelete, _profile: dict = Depends(require_editor)):
        _board(table).deactivate_member(payload.id)
        return {"ok": True}

    @router.patch(path, name=f"update_{table}_section")
    async def section_action(payload: BoardSectionAction, _profile: dict = Depends(require_editor)):
        _board(table).apply_section_action(payload.action, payload.section, payload.newSection)
        return {"ok": True}


_register_board("/advisory-board", "advisory_board")
_register_board("/editorial-board", "editorial_board")
