import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Header, Query

from app.core.config import get_cron_secret
from app.core.errors import Unauthenticated, UpstreamFailure
from app.lib import api_client

logger = logging.getLogger("journal.system")

router = APIRouter(tags=["System"])

# Tables the keepalive query tries, in order; the first that answers wins.
KEEPALIVE_TABLES = ("issues", "profiles", "site_content")


@router.get("/health")
async def health():
    return {"ok": True, "status": "healthy"}


@router.api_route("/keepalive", methods=["GET", "HEAD"])
async def keepalive(
    x_cron_secret: Optional[str] = Header(None),
    secret: Optional[str] = Query(None),
):
    """
    Cheap query that keeps the hosted database from idling out.

    Guarded by the cron secret, sent as `x-cron-secret` or `?secret=`.
    """
    expected = get_cron_secret()
    if not expected:
        raise UpstreamFailure("Keepalive secret is not configured")
    provided = x_cron_secret or secret or ""
    if not secrets.compare_digest(provided.encode(), expected.encode()):
        raise Unauthenticated("Unauthorized")

    errors = []
    for table in KEEPALIVE_TABLES:
        try:
            api_client.supabase_admin.table(table).select("*").limit(1).execute()
            return {"ok": True, "table": table}
        except Exception as e:
            logger.warning("keepalive query failed table=%s: %s", table, e)
            errors.append(f"{table}: {e}")
    raise UpstreamFailure("Keepalive failed: " + "; ".join(errors))
