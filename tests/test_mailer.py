import asyncio

import aiosmtplib
from urllib.parse import parse_qs, urlparse

from fastapi_mail.errors import ConnectionErrors

from lookup_api.config import Settings
from lookup_api.mailer import (
    RESET_SUBJECT,
    VERIFICATION_SUBJECT,
    Mailer,
    action_link,
    render_reset_email,
    render_verification_email,
)


def test_action_link_carries_token_and_email():
    link = action_link("http://localhost:5173/", "verify-email", "a+b@example.com", "abc123")
    parsed = urlparse(link)
    assert parsed.path == "/verify-email"
    assert parse_qs(parsed.query) == {"token": ["abc123"], "email": ["a+b@example.com"]}


def test_templates_render_link_and_lifetime():
    html = render_verification_email("Jane", "http://x/verify-email?token=t1")
    assert "Jane" in html and "token=t1" in html and "24 hours" in html
    html = render_reset_email("Jane", "http://x/reset-password?token=t2")
    assert "token=t2" in html and "1 hour" in html


def test_templates_escape_names():
    html = render_verification_email("<b>Eve</b>", "http://x")
    assert "<b>Eve</b>" not in html


class _FakeFastMail:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    async def send_message(self, message):
        if self.error:
            raise self.error
        self.sent.append(message)


def _mailer(fake):
    m = Mailer(Settings(FRONTEND_URL="https://app.example.com,http://localhost:5173"))
    m._client = fake
    return m


def test_send_verification_uses_public_url():
    fake = _FakeFastMail()
    result = asyncio.run(_mailer(fake).send_verification("jane@example.com", "Jane", "tok"))
    assert result.success
    message = fake.sent[0]
    assert message.subject == VERIFICATION_SUBJECT
    assert "https://app.example.com/verify-email?token=tok" in message.body


def test_send_password_reset():
    fake = _FakeFastMail()
    result = asyncio.run(_mailer(fake).send_password_reset("jane@example.com", "Jane", "tok"))
    assert result.success
    assert fake.sent[0].subject == RESET_SUBJECT
    assert "reset-password?token=tok" in fake.sent[0].body


def test_send_failure_is_reported_not_raised():
    fake = _FakeFastMail(error=ConnectionErrors("relay down"))
    result = asyncio.run(_mailer(fake).send("jane@example.com", "Hi", "<p>hi</p>"))
    assert not result.success
    assert "relay down" in result.error


def test_invalid_recipient_is_reported():
    result = asyncio.run(_mailer(_FakeFastMail()).send("not-an-address", "Hi", "<p>hi</p>"))
    assert not result.success


def test_refused_recipient_is_reported_not_raised():
    refused = aiosmtplib.SMTPRecipientsRefused(
        [aiosmtplib.SMTPRecipientRefused(550, "no such user", "jane@example.com")]
    )
    result = asyncio.run(_mailer(_FakeFastMail(error=refused)).send_verification("jane@example.com", "Jane", "tok"))
    assert not result.success
    assert result.error
