from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.core.errors import Forbidden, NotFound, ValidationError, raise_upstream
from app.core.roles import ALL_ROLES, ROLE_ADMIN, can_edit, can_review
from app.lib.rows import first_row, rows_of

logger = logging.getLogger("journal.users")


def _auth_users(response: Any) -> list:
    # list_users() returns a plain list on current supabase-py, an object with
    # `.users` on older releases.
    users = getattr(response, "users", response)
    return list(users or [])


def _attr(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


@dataclass
class UserService:
    supabase_admin: Any

    def list_profiles(self) -> list[dict]:
        try:
            res = (
                self.supabase_admin.table("profiles")
                .select("id, email, role, approved, created_at")
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            raise_upstream(e, context="Failed to list users")
        return rows_of(res)

    def update_profile(
        self,
        *,
        user_id: str,
        role: Optional[str],
        approved: Optional[bool],
        actor_id: str,
    ) -> dict:
        """Change a profile's role and/or approval. Caller must be an approved admin."""
        patch: dict[str, Any] = {}
        if role is not None:
            role = role.strip().lower()
            if role not in ALL_ROLES:
                raise ValidationError("Invalid role")
            patch["role"] = role
        if approved is not None:
            patch["approved"] = bool(approved)
        if not patch:
            raise ValidationError("Nothing to update")

        if user_id == actor_id and (patch.get("role", ROLE_ADMIN) != ROLE_ADMIN or patch.get("approved") is False):
            raise Forbidden("Admins cannot revoke their own admin access")

        try:
            res = self.supabase_admin.table("profiles").update(patch).eq("id", user_id).execute()
        except Exception as e:
            raise_upstream(e, context="Failed to update user")
        row = first_row(res)
        if not row:
            raise NotFound("User not found")
        logger.info("profile updated user=%s by=%s patch=%s", user_id, actor_id, patch)
        return row

    def _find_auth_user_id(self, email: str) -> Optional[str]:
        wanted = email.lower()
        for u in _auth_users(self.supabase_admin.auth.admin.list_users()):
            if str(_attr(u, "email") or "").lower() == wanted:
                return str(_attr(u, "id"))
        return None

    def seed_admin(self, email: str) -> dict:
        """
        Bootstrap the first approved admin.

        Finds the auth user for `email` (inviting it when absent) and upserts
        its profile as an approved admin. Idempotent.
        """
        email = (email or "").strip()
        if not email or "@" not in email:
            raise ValidationError("A valid email is required")

        try:
            user_id = self._find_auth_user_id(email)
            if not user_id:
                invited = self.supabase_admin.auth.admin.invite_user_by_email(email)
                user = _attr(invited, "user")
                user_id = str(_attr(user, "id") or "") or None
                if not user_id:
                    raise RuntimeError("invite returned no user")
                logger.info("invited %s as seed admin", email)
        except Exception as e:
            raise_upstream(e, context="Failed to resolve auth user")

        row = {"id": user_id, "email": email, "role": ROLE_ADMIN, "approved": True}
        try:
            res = self.supabase_admin.table("profiles").upsert(row, on_conflict="id").execute()
        except Exception as e:
            raise_upstream(e, context="Failed to save admin profile")
        logger.info("seed admin ready user=%s", user_id)
        return first_row(res) or row


def describe_profile(profile: dict) -> dict:
    """Profile plus the capability flags the portal UI keys off."""
    return {
        "id": profile.get("id"),
        "email": profile.get("email"),
        "role": profile.get("role"),
        "approved": profile.get("approved") is True,
        "isEditor": can_edit(profile),
        "isReviewer": can_review(profile),
    }
