from typing import Optional

from passlib.context import CryptContext

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs;
# bcrypt stays verifiable for hashes written by the previous Node backend.
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    # Google-only accounts have no hash and can never pass a password check
    if not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # unrecognised or malformed hash
        return False


def needs_rehash(hashed: str) -> bool:
    return pwd_context.needs_update(hashed)
