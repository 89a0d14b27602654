"""Time-boxed verification and password-reset tokens.

Tokens live on the account row itself (``<kind>_token`` plus
``<kind>_token_expires``), so issuing a new one replaces the previous one.
Validation never tells the caller *why* a token was rejected.
"""
import hmac
import secrets
from datetime import datetime, timedelta
from enum import Enum
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from . import crud, models
from .utils import utcnow

TOKEN_BYTES = 32


class TokenKind(str, Enum):
    VERIFICATION = "verification"
    RESET = "reset"


LIFETIMES = {
    TokenKind.VERIFICATION: timedelta(hours=24),
    TokenKind.RESET: timedelta(hours=1),
}

_COLUMNS = {
    TokenKind.VERIFICATION: ("verification_token", "verification_token_expires"),
    TokenKind.RESET: ("reset_token", "reset_token_expires"),
}


class IssuedToken(NamedTuple):
    token: str
    expires_at: datetime


def issue(kind: TokenKind, now: Optional[datetime] = None) -> IssuedToken:
    now = now or utcnow()
    return IssuedToken(secrets.token_hex(TOKEN_BYTES), now + LIFETIMES[kind])


def attach(account: models.Account, kind: TokenKind, issued: IssuedToken) -> None:
    token_col, expires_col = _COLUMNS[kind]
    setattr(account, token_col, issued.token)
    setattr(account, expires_col, issued.expires_at)


def is_valid_for(account: models.Account, token: str, kind: TokenKind, now: Optional[datetime] = None) -> bool:
    token_col, expires_col = _COLUMNS[kind]
    stored = getattr(account, token_col)
    expires = getattr(account, expires_col)
    if not stored or not token or expires is None:
        return False
    if not hmac.compare_digest(stored.encode(), token.encode()):
        return False
    return expires > (now or utcnow())


def validate(db: Session, email: str, token: str, kind: TokenKind,
             now: Optional[datetime] = None) -> Optional[models.Account]:
    """Return the account when ``token`` is its live token of ``kind``, else None."""
    if not email or not token:
        return None
    account = crud.get_account_by_email(db, email)
    if account is None or not is_valid_for(account, token, kind, now):
        return None
    return account


def consume(account: models.Account, kind: TokenKind) -> None:
    """Clear the token; verification also flips the account to verified.

    The caller commits. A reset token only authorises the password change,
    which the caller applies alongside.
    """
    token_col, expires_col = _COLUMNS[kind]
    setattr(account, token_col, None)
    setattr(account, expires_col, None)
    if kind is TokenKind.VERIFICATION:
        account.is_verified = True
