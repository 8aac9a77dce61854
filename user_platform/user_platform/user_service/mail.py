"""
Transactional mail: account activation, email change confirmation and
password reset links.
"""
import html
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol
from urllib.parse import urlencode

from .errors import MailDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailTemplate:
    path: str
    subject: str
    title: str
    action_title: str


TEMPLATES = {
    "activation": MailTemplate(
        path="/confirm-email",
        subject="Verify Your Email Address",
        title="Email Address Verification",
        action_title="Verify Email",
    ),
    "confirm-new-email": MailTemplate(
        path="/confirm-new-email",
        subject="Confirm New Email Address",
        title="Confirm New Email Address",
        action_title="Confirm Email Address",
    ),
    "reset-password": MailTemplate(
        path="/password-change",
        subject="Reset Your Password",
        title="Reset Your Password",
        action_title="Reset Your Password",
    ),
}


class Mailer(Protocol):
    def send(self, to: str, purpose: str, context: dict) -> None: ...


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class SmtpMailer:
    """
    Renders a purpose template into a link email and sends it over SMTP.

    Without ``smtp_host`` the message is logged instead of sent (dev mode).
    """

    def __init__(
        self,
        *,
        frontend_domain: str,
        app_name: str,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        smtp_use_tls: bool = True,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        self.frontend_domain = frontend_domain.rstrip("/")
        self.app_name = app_name
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.from_email = from_email or smtp_user
        self.from_name = from_name or app_name

    @classmethod
    def from_settings(cls, settings) -> "SmtpMailer":
        return cls(
            frontend_domain=settings.FRONTEND_DOMAIN,
            app_name=settings.APP_NAME,
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            smtp_password=settings.SMTP_PASSWORD,
            smtp_use_tls=settings.SMTP_USE_TLS,
            from_email=settings.MAIL_FROM,
            from_name=settings.MAIL_FROM_NAME,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def build_url(self, purpose: str, context: dict) -> str:
        template = TEMPLATES[purpose]
        params = {"hash": context["hash"]}
        if "token_expires" in context:
            params["expires"] = context["token_expires"]
        return f"{self.frontend_domain}{template.path}?{urlencode(params)}"

    def render(self, purpose: str, context: dict) -> tuple:
        """Return ``(subject, text_body, html_body)`` for a purpose."""
        if purpose not in TEMPLATES:
            raise ValueError(f"Unknown mail purpose '{purpose}'")

        template = TEMPLATES[purpose]
        url = self.build_url(purpose, context)
        text_body = (
            f"{template.title}\n\n"
            f"{template.action_title}: {url}\n\n"
            f"If you did not request this, you can ignore this email.\n"
            f"-- {self.app_name}"
        )
        html_body = (
            f"<h2>{html.escape(template.title)}</h2>"
            f'<p><a href="{html.escape(url, quote=True)}">{html.escape(template.action_title)}</a></p>'
            f"<p>If you did not request this, you can ignore this email.</p>"
            f"<p>{html.escape(self.app_name)}</p>"
        )
        return template.subject, text_body, html_body

    def send(self, to: str, purpose: str, context: dict) -> None:
        subject, text_body, html_body = self.render(purpose, context)

        if not self.is_configured:
            logger.info("[DEV] Mail '%s' to %s: %s", purpose, redact_email(to), self.build_url(purpose, context))
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        context_ssl = ssl.create_default_context()
        try:
            if self.smtp_use_tls:
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                    server.starttls(context=context_ssl)
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.sendmail(self.from_email, [to], msg.as_string())
            else:
                with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context_ssl, timeout=30) as server:
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.sendmail(self.from_email, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail '%s' to %s failed: %s", purpose, redact_email(to), exc)
            raise MailDeliveryError("Failed to send email") from exc

        logger.info("Mail '%s' sent to %s", purpose, redact_email(to))
