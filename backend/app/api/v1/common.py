"""
Service factories shared by the v1 routers.

Clients are looked up at call time so tests can swap `api_client.supabase_admin`
and `mail.email_service` without touching each router.
"""

from typing import Optional

from fastapi import Depends

from app.core import mail
from app.core.auth_utils import optional_user
from app.core.config import app_config
from app.core.roles import load_profile
from app.lib import api_client
from app.services.file_access_service import FileAccessService
from app.services.manuscript_service import ManuscriptService
from app.services.notification_fanout import NotificationFanout
from app.services.notification_service import NotificationService
from app.services.publication_service import PublicationService
from app.services.review_service import ReviewService
from app.services.storage_service import StorageService


def manuscript_storage() -> StorageService:
    return StorageService(client=api_client.supabase_admin, bucket=app_config.manuscripts_bucket)


def manuscript_service() -> ManuscriptService:
    return ManuscriptService(supabase_admin=api_client.supabase_admin, storage=manuscript_storage())


def review_service() -> ReviewService:
    return ReviewService(supabase_admin=api_client.supabase_admin)


def publication_service() -> PublicationService:
    return PublicationService(
        supabase_admin=api_client.supabase_admin,
        issues_storage=StorageService(client=api_client.supabase_admin, bucket=app_config.issues_bucket),
    )


def file_access_service() -> FileAccessService:
    return FileAccessService(
        supabase_admin=api_client.supabase_admin,
        storage=manuscript_storage(),
        ttl_seconds=app_config.signed_url_ttl,
    )


def notification_service() -> NotificationService:
    return NotificationService(supabase_admin=api_client.supabase_admin)


def fanout() -> NotificationFanout:
    return NotificationFanout(supabase_admin=api_client.supabase_admin, email=mail.email_service)


async def optional_profile(user: Optional[dict] = Depends(optional_user)) -> Optional[dict]:
    """Profile of the caller if signed in; never creates one."""
    if user is None:
        return None
    return load_profile(user["id"])
