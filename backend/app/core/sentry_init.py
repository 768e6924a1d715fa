import logging
from typing import Any

from app.core.config import SentryConfig

logger = logging.getLogger("journal.sentry")

_SENSITIVE_KEYS = {
    "password",
    "access_token",
    "refresh_token",
    "token",
    "jwt",
    "authorization",
    "cookie",
    "set-cookie",
    "x-cron-secret",
    "secret",
    "supabase_key",
    "service_role_key",
    "contentbase64",
}


def _looks_like_file_content(value: Any) -> bool:
    if isinstance(value, (bytes, bytearray)):
        return True
    # Long strings are usually base64 manuscript bodies.
    return isinstance(value, str) and len(value) > 5000


def _scrub(value: Any) -> Any:
    """
    Recursively drop secrets and manuscript content.

    中文注释:
    - 目标是保证不上传明文凭据与稿件内容，而不是完整还原请求。
    """
    if _looks_like_file_content(value):
        return "[Filtered]"

    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if str(k).strip().lower() in _SENSITIVE_KEYS:
                out[str(k)] = "[Filtered]"
                continue
            out[str(k)] = _scrub(v)
        return out

    if isinstance(value, (list, tuple)):
        return [_scrub(v) for v in value]

    return value


def _before_send(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    # 中文注释: 严格不上传请求体（multipart PDF、base64 修订稿），只保留诊断所需的字段。
    request = event.get("request")
    if isinstance(request, dict):
        headers = request.get("headers")
        if isinstance(headers, dict):
            request["headers"] = {
                k: v for k, v in headers.items() if str(k).strip().lower() not in _SENSITIVE_KEYS
            }
        for key in ("cookies", "data", "body"):
            if key in request:
                request[key] = "[Filtered]"
        if "query_string" in request and "secret=" in str(request["query_string"]):
            request["query_string"] = "[Filtered]"
        event["request"] = request

    for section in ("extra", "contexts"):
        obj = event.get(section)
        if isinstance(obj, dict):
            event[section] = _scrub(obj)

    return event


def init_sentry() -> bool:
    """
    Initialise Sentry when a DSN is configured.

    Returns False when disabled. Startup never depends on Sentry: callers wrap
    this in try/except.

    中文注释:
    - 零崩溃原则：Sentry 初始化失败只记录日志，不影响服务启动。
    - send_default_pii=False 且 max_request_body_size="never"，避免上传用户数据。
    """
    cfg = SentryConfig.from_env()
    if not cfg.enabled or not cfg.dsn:
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=cfg.dsn,
        environment=cfg.environment,
        traces_sample_rate=cfg.traces_sample_rate,
        integrations=[FastApiIntegration()],
        send_default_pii=False,
        max_request_body_size="never",
        before_send=_before_send,
    )
    logger.info("sentry enabled env=%s", cfg.environment)
    return True
