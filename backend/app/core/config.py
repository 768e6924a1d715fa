import os
from dataclasses import dataclass
from typing import Optional

_TRUTHY = frozenset({"1", "true", "yes", "y", "on"})


def _env_str(*keys: str, default: str = "") -> str:
    """First non-blank value among `keys`, stripped."""
    for key in keys:
        value = (os.environ.get(key) or "").strip()
        if value:
            return value
    return default


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _env_number(key: str, default, cast):
    raw = _env_str(key)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class AppConfig:
    """
    Deployment settings for storage and uploads.

    Services receive these values instead of reading os.environ themselves.
    """

    env: str  # development | staging | production
    supabase_url: str
    supabase_key: str
    manuscripts_bucket: str
    issues_bucket: str
    signed_url_ttl: int
    max_upload_bytes: int

    @staticmethod
    def from_env() -> "AppConfig":
        return AppConfig(
            env=_env_str("APP_ENV", default="development").lower(),
            supabase_url=_env_str("SUPABASE_URL"),
            supabase_key=_env_str("SUPABASE_SERVICE_ROLE_KEY"),
            manuscripts_bucket=_env_str("SUPABASE_BUCKET_MANUSCRIPTS", default="manuscripts"),
            issues_bucket=_env_str("SUPABASE_BUCKET_ISSUES", default="issues-pdfs"),
            signed_url_ttl=_env_number("SIGNED_URL_TTL_SECONDS", 60 * 60, int),
            max_upload_bytes=_env_number("MAX_UPLOAD_BYTES", 25 * 1024 * 1024, int),
        )


app_config = AppConfig.from_env()


@dataclass(frozen=True)
class SMTPConfig:
    """Fallback mail relay; None when SMTP_HOST is unset."""

    host: str
    port: int
    user: Optional[str]
    password: Optional[str]
    from_email: str
    use_starttls: bool

    @staticmethod
    def from_env() -> Optional["SMTPConfig"]:
        host = _env_str("SMTP_HOST")
        if not host:
            return None
        user = _env_str("SMTP_USER") or None
        return SMTPConfig(
            host=host,
            port=_env_number("SMTP_PORT", 587, int),
            user=user,
            password=_env_str("SMTP_PASSWORD") or None,
            from_email=_env_str("SMTP_FROM_EMAIL", default=user or "no-reply@journal.local"),
            use_starttls=_env_bool("SMTP_USE_STARTTLS", True),
        )


@dataclass(frozen=True)
class ResendConfig:
    """Primary transactional mail provider; None when RESEND_API_KEY is unset."""

    api_key: str
    sender: str

    @staticmethod
    def from_env() -> Optional["ResendConfig"]:
        api_key = _env_str("RESEND_API_KEY")
        if not api_key:
            return None
        return ResendConfig(
            api_key=api_key,
            sender=_env_str("RESEND_FROM_EMAIL", default="Editorial Office <no-reply@journal.local>"),
        )


@dataclass(frozen=True)
class SentryConfig:
    enabled: bool
    dsn: Optional[str]
    environment: str
    traces_sample_rate: float

    @staticmethod
    def from_env() -> "SentryConfig":
        dsn = _env_str("SENTRY_DSN") or None
        return SentryConfig(
            enabled=_env_bool("SENTRY_ENABLED", dsn is not None),
            dsn=dsn,
            environment=_env_str("SENTRY_ENVIRONMENT", "APP_ENV", default="development"),
            traces_sample_rate=_env_number("SENTRY_TRACES_SAMPLE_RATE", 0.0, float),
        )


def get_cron_secret() -> Optional[str]:
    """Shared secret expected from the hosting platform's keepalive cron."""
    return _env_str("CRON_SECRET", "KEEPALIVE_SECRET") or None
