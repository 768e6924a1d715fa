from fastapi import APIRouter, Depends

from app.core.roles import get_current_profile
from app.services.user_service import describe_profile

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.get("/me")
async def me(profile: dict = Depends(get_current_profile)):
    """Caller's profile (created on first sign-in) with capability flags."""
    return {"ok": True, "profile": describe_profile(profile)}
