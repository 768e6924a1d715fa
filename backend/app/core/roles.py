"""
Authorization policy: maps (role, approved) to the actions a caller may take.

There is no code-level owner bypass. The first approved admin is created by the
seed-admin bootstrap (`scripts/seed_admin.py`); every other grant goes through
`PATCH /admin/users/{id}` by an approved admin.
"""

import logging
from typing import Any, Callable, Iterable, Optional

from fastapi import Depends

from app.core.auth_utils import get_current_user
from app.core.errors import Forbidden, raise_upstream
from app.lib import api_client

logger = logging.getLogger("journal.roles")

ROLE_AUTHOR = "author"
ROLE_REVIEWER = "reviewer"
ROLE_EDITOR = "editor"
ROLE_ADMIN = "admin"

ALL_ROLES = (ROLE_AUTHOR, ROLE_REVIEWER, ROLE_EDITOR, ROLE_ADMIN)
EDITOR_ROLES = frozenset({ROLE_ADMIN, ROLE_EDITOR})
STAFF_OR_REVIEWER_ROLES = frozenset({ROLE_ADMIN, ROLE_EDITOR, ROLE_REVIEWER})


def _has_approved_role(profile: Optional[dict], roles: Iterable[str]) -> bool:
    if not profile:
        return False
    return profile.get("approved") is True and profile.get("role") in set(roles)


def can_edit(profile: Optional[dict]) -> bool:
    """Editor-level: approved admin or editor."""
    return _has_approved_role(profile, EDITOR_ROLES)


def can_review(profile: Optional[dict]) -> bool:
    """Reviewer-level: approved reviewer."""
    return _has_approved_role(profile, {ROLE_REVIEWER})


def is_staff_or_reviewer(profile: Optional[dict]) -> bool:
    return _has_approved_role(profile, STAFF_OR_REVIEWER_ROLES)


def is_admin(profile: Optional[dict]) -> bool:
    return _has_approved_role(profile, {ROLE_ADMIN})


def load_profile(user_id: str) -> Optional[dict]:
    try:
        resp = (
            api_client.supabase_admin.table("profiles")
            .select("id, email, role, approved")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise_upstream(e, context="Failed to load profile")
    rows = getattr(resp, "data", None) or []
    return rows[0] if rows else None


async def get_current_profile(current_user: dict = Depends(get_current_user)) -> dict:
    """
    Load the caller's profile, creating it on first sign-in.

    New profiles start as unapproved authors. A profile that already exists for
    the user id (pre-seeded by the bootstrap script or granted by an admin) is
    returned untouched.

    中文注释:
    1) 首次访问时自动创建 profiles 记录，默认 role=author、approved=False。
    2) 代码层面没有 owner 旁路；首个管理员只能通过 scripts/seed_admin.py 写入。
    3) 并发首访导致插入冲突时，回读另一请求写入的记录。
    """
    user_id = current_user["id"]
    email = current_user.get("email")

    existing = load_profile(user_id)
    if existing:
        return existing

    row = {"id": user_id, "email": email, "role": ROLE_AUTHOR, "approved": False}
    try:
        inserted = api_client.supabase_admin.table("profiles").insert(row).execute()
    except Exception as e:
        # Two first requests racing each other: the other one won.
        again = load_profile(user_id)
        if again:
            return again
        raise_upstream(e, context="Failed to create profile")
    logger.info("Created profile for user=%s", user_id)
    return (getattr(inserted, "data", None) or [row])[0]


def require_policy(check: Callable[[Optional[dict]], bool], *, detail: str = "Not authorized") -> Callable[..., Any]:
    # 中文注释: 权限校验在 handler 之前完成，被拒绝的请求不会触发任何写入或通知。
    async def _dep(profile: dict = Depends(get_current_profile)) -> dict:
        if not check(profile):
            raise Forbidden(detail)
        return profile

    return _dep


require_editor = require_policy(can_edit)
require_reviewer = require_policy(can_review)
require_staff_or_reviewer = require_policy(is_staff_or_reviewer)
require_admin = require_policy(is_admin, detail="Admin approval required")
