import logging
import os
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from app.core.errors import Unauthenticated
from app.lib.api_client import supabase

logger = logging.getLogger("journal.auth")

# === Auth core config ===
# When the project still signs tokens with the HS256 JWT secret we verify
# locally; otherwise (asymmetric signing keys, or no secret configured) we ask
# Supabase Auth to introspect the token.
# 中文注释: 本地校验只在配置了 SUPABASE_JWT_SECRET 时启用，否则交给 Supabase Auth 验证。
ALGORITHM = "HS256"

# auto_error=False: a missing header must be 401, not FastAPI's default.
security = HTTPBearer(auto_error=False)


def _jwt_secret() -> str:
    return os.environ.get("SUPABASE_JWT_SECRET", "")


def resolve_token(token: str) -> dict:
    """
    Validate a bearer token and return `{"id", "email"}`.

    No caching: every request is re-validated.

    中文注释:
    - 过期、签名错误、格式错误统一返回 401，不暴露具体原因。
    """
    secret = _jwt_secret()
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        raise Unauthenticated("Invalid auth token")

    if header.get("alg") == ALGORITHM and secret:
        try:
            payload = jwt.decode(token, secret, algorithms=[ALGORITHM], audience="authenticated")
        except JWTError as e:
            logger.info("JWT verification failed: %s", e)
            raise Unauthenticated("Invalid auth token")
        user_id = payload.get("sub")
        if not user_id:
            raise Unauthenticated("Invalid auth token")
        return {"id": user_id, "email": payload.get("email")}

    try:
        response = supabase.auth.get_user(token)
        user = response.user if response else None
    except Exception as e:
        # Missing config or network trouble must not leak as a 500.
        logger.warning("Token introspection failed: %s", e)
        raise Unauthenticated("Invalid auth token")

    if not user:
        raise Unauthenticated("Invalid auth token")
    return {"id": user.id, "email": user.email}


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Identity gate for authenticated endpoints."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Missing auth token")
    return resolve_token(credentials.credentials)


async def optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[dict]:
    """
    Identity gate for endpoints that also serve anonymous callers.

    Anonymous is fine, but a token that is present and invalid is still 401.
    """
    if credentials is None or not credentials.credentials:
        return None
    return resolve_token(credentials.credentials)
