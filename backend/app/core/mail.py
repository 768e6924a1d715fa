import logging
import smtplib
from functools import partial
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, Iterable

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import ResendConfig, SMTPConfig

logger = logging.getLogger("journal.mail")


class EmailService:
    """
    Transactional email, fire-and-forget.

    Every send is a single attempt: failures are logged and reported as False,
    never raised. Resend is used when configured, SMTP otherwise; with neither,
    sends are skipped.
    """

    _SENTINEL = object()

    def __init__(
        self,
        *,
        smtp_config: SMTPConfig | None | object = _SENTINEL,
        resend_config: ResendConfig | None | object = _SENTINEL,
    ):
        # 中文注释:
        # - smtp_config / resend_config 支持依赖注入，方便单测与不同环境切换。
        # - 调用方显式传 None 时视为禁用该 provider。
        if smtp_config is self._SENTINEL:
            smtp_config = SMTPConfig.from_env()
        if resend_config is self._SENTINEL:
            resend_config = ResendConfig.from_env()

        self.smtp_config: SMTPConfig | None = smtp_config  # type: ignore[assignment]
        self.resend_config: ResendConfig | None = resend_config  # type: ignore[assignment]

        if self.resend_config:
            resend.api_key = self.resend_config.api_key

        templates_dir = Path(__file__).resolve().parent / "templates"
        self._jinja = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def is_configured(self) -> bool:
        return bool(self.smtp_config or self.resend_config)

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        return self._jinja.get_template(template_name).render(**context)

    @staticmethod
    def _send_resend(cfg: ResendConfig, recipients: list[str], subject: str, html_body: str) -> None:
        resend.Emails.send(
            {
                "from": cfg.sender,
                "to": recipients,
                "subject": subject,
                "html": html_body,
            }
        )

    @staticmethod
    def _send_smtp(cfg: SMTPConfig, recipients: list[str], subject: str, html_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = cfg.from_email
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        with smtplib.SMTP(cfg.host, cfg.port) as server:
            if cfg.use_starttls:
                server.starttls()
            if cfg.user and cfg.password:
                server.login(cfg.user, cfg.password)
            server.sendmail(cfg.from_email, recipients, msg.as_string())

    def send_email(self, *, to: Iterable[str], subject: str, html_body: str) -> bool:
        """
        One delivery attempt through the first configured provider.

        中文注释:
        - Resend 优先，未配置时降级走 SMTP；两者都未配置则跳过。
        - 收件人会去重；隐私敏感的群发由调用方按收件人逐封发送。
        """
        recipients = sorted({addr.strip() for addr in to if addr and addr.strip()})
        if not recipients:
            return False

        if self.resend_config:
            provider, send = "Resend", partial(self._send_resend, self.resend_config)
        elif self.smtp_config:
            provider, send = "SMTP", partial(self._send_smtp, self.smtp_config)
        else:
            logger.info("[Email] no provider configured; skipped subject=%r to=%s", subject, recipients)
            return False

        try:
            send(recipients, subject, html_body)
        except Exception as e:
            logger.warning("[%s] send failed subject=%r: %s", provider, subject, e)
            return False
        logger.info("[%s] sent subject=%r recipients=%d", provider, subject, len(recipients))
        return True

    def send_template_email(
        self,
        *,
        to: Iterable[str],
        subject: str,
        template_name: str,
        context: Dict[str, Any],
    ) -> bool:
        if not self.is_configured():
            logger.info("[Email] no provider configured; skipped template=%s", template_name)
            return False
        try:
            html = self.render_template(template_name, context)
        except Exception as e:
            logger.warning("[Email] template render failed template=%s: %s", template_name, e)
            return False
        return self.send_email(to=to, subject=subject, html_body=html)


email_service = EmailService()
