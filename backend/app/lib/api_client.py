"""
Process-wide Supabase clients.

Both are created on first use so the package imports without credentials;
tests swap `supabase_admin` (and `supabase` for token introspection) with
in-memory fakes.
"""

import os
from typing import Any, Callable, Optional

from supabase import Client, create_client

from app.core.config import app_config


def _anon_key() -> str:
    # Older deployments only set SUPABASE_KEY.
    return (os.environ.get("SUPABASE_ANON_KEY") or os.environ.get("SUPABASE_KEY") or "").strip()


def _service_key() -> str:
    return app_config.supabase_key or (os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or "").strip() or _anon_key()


class _LazyClient:
    def __init__(self, resolve_key: Callable[[], str], *, purpose: str):
        self._resolve_key = resolve_key
        self._purpose = purpose
        self._client: Optional[Client] = None

    def _connect(self) -> Client:
        if self._client is None:
            if not app_config.supabase_url:
                raise RuntimeError(f"SUPABASE_URL is required for the {self._purpose} client")
            key = self._resolve_key()
            if not key:
                raise RuntimeError(f"No Supabase key configured for the {self._purpose} client")
            self._client = create_client(app_config.supabase_url, key)
        return self._client

    def __getattr__(self, item: str) -> Any:
        return getattr(self._connect(), item)


# Anon client: bearer-token introspection only.
supabase: Client = _LazyClient(_anon_key, purpose="anon")  # type: ignore[assignment]

# Service-role client: every table and storage call goes through here.
supabase_admin: Client = _LazyClient(_service_key, purpose="service-role")  # type: ignore[assignment]
