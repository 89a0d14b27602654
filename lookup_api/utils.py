import re
from datetime import datetime, timezone
from typing import Optional
import bleach

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_PASSWORD_LENGTH = 6


def utcnow() -> datetime:
    """Naive UTC now, matching what DATETIME columns hand back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string before storing or mailing it.

    - Strips HTML tags using bleach.clean(..., strip=True)
    - Removes NULL bytes
    - Trims whitespace
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=[], strip=True)
    return val.strip()


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and EMAIL_RE.match(value) is not None


def is_valid_password(value: Optional[str]) -> bool:
    return bool(value) and len(value) >= MIN_PASSWORD_LENGTH
