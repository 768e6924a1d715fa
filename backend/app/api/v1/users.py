from fastapi import APIRouter, Depends

from app.core.roles import require_admin
from app.lib import api_client
from app.models.user import ProfileUpdateRequest
from app.services.user_service import UserService

router = APIRouter(prefix="/admin/users", tags=["Admin Users"])


def _service() -> UserService:
    return UserService(supabase_admin=api_client.supabase_admin)


@router.get("")
async def list_users(_profile: dict = Depends(require_admin)):
    return {"ok": True, "users": _service().list_profiles()}


@router.patch("/{user_id}")
async def update_user(user_id: str, payload: ProfileUpdateRequest, profile: dict = Depends(require_admin)):
    """Grant or revoke a role/approval. Admins cannot demote themselves."""
    updated = _service().update_profile(
        user_id=user_id,
        role=payload.role,
        approved=payload.approved,
        actor_id=str(profile["id"]),
    )
    return {"ok": True, "user": updated}
