import logging
from pathlib import Path
from typing import NamedTuple, Optional
from urllib.parse import urlencode

import aiosmtplib
from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from fastapi_mail.errors import ConnectionErrors
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import ValidationError

from .config import Settings
from .tokens import LIFETIMES, TokenKind

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates" / "email"

templates = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)

VERIFICATION_SUBJECT = "Verify your email address"
RESET_SUBJECT = "Reset your password"


class SendResult(NamedTuple):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def _hours(kind: TokenKind) -> int:
    return int(LIFETIMES[kind].total_seconds() // 3600)


def action_link(base_url: str, path: str, email: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/{path}?{urlencode({'token': token, 'email': email})}"


def render_verification_email(full_name: str, link: str) -> str:
    return templates.get_template("verification.html").render(
        full_name=full_name, link=link, hours=_hours(TokenKind.VERIFICATION)
    )


def render_reset_email(full_name: str, link: str) -> str:
    return templates.get_template("reset_password.html").render(
        full_name=full_name, link=link, hours=_hours(TokenKind.RESET)
    )


class Mailer:
    """Sends transactional mail through the configured SMTP relay."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client: Optional[FastMail] = None

    def _get_client(self) -> FastMail:
        if self._client is None:
            s = self.settings
            conf = ConnectionConfig(
                MAIL_USERNAME=s.mail_username,
                MAIL_PASSWORD=s.mail_password,
                MAIL_FROM=s.mail_from,
                MAIL_FROM_NAME=s.mail_from_name,
                MAIL_PORT=s.mail_port,
                MAIL_SERVER=s.mail_server,
                MAIL_STARTTLS=s.mail_starttls,
                MAIL_SSL_TLS=s.mail_ssl_tls,
                USE_CREDENTIALS=bool(s.mail_username),
            )
            self._client = FastMail(conf)
        return self._client

    async def send(self, to: str, subject: str, html: str) -> SendResult:
        try:
            message = MessageSchema(subject=subject, recipients=[to], body=html, subtype=MessageType.html)
            await self._get_client().send_message(message)
        except (ConnectionErrors, aiosmtplib.SMTPException, ValidationError) as e:
            logger.error("Failed to send '%s' to %s: %s", subject, to, e)
            return SendResult(success=False, error=str(e))
        logger.info("Sent '%s' to %s", subject, to)
        return SendResult(success=True)

    async def send_verification(self, email: str, full_name: str, token: str) -> SendResult:
        link = action_link(self.settings.public_url, "verify-email", email, token)
        return await self.send(email, VERIFICATION_SUBJECT, render_verification_email(full_name, link))

    async def send_password_reset(self, email: str, full_name: str, token: str) -> SendResult:
        link = action_link(self.settings.public_url, "reset-password", email, token)
        return await self.send(email, RESET_SUBJECT, render_reset_email(full_name, link))
