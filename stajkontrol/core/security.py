"""Security utilities: JWT, password hashing, roles."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from stajkontrol.config import settings
from stajkontrol.core.exceptions import Unauthenticated

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_COMPANY = "company"


class Role(str, Enum):
    """User roles. Roles are mutually exclusive."""

    STUDENT = "student"
    ADVISOR = "advisor"
    CAREER_CENTER = "career_center"
    ADMIN = "admin"


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def _encode(payload: dict, expires_delta: timedelta) -> str:
    to_encode = payload.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token for a user."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode({**data, "type": TOKEN_TYPE_ACCESS}, expires_delta)


def create_company_token(company_email: str, session_id: str) -> str:
    """Create a company session token bound to a verified OTP session."""
    return _encode(
        {"sub": company_email, "sid": session_id, "type": TOKEN_TYPE_COMPANY},
        timedelta(minutes=settings.COMPANY_SESSION_EXPIRE_MINUTES),
    )


def decode_token(token: str) -> dict:
    """Decode and verify JWT token.

    The caller decides what to do with the ``type`` claim: a well-formed
    token of the wrong kind is a Forbidden, not an Unauthenticated.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise Unauthenticated()

    if payload.get("type") not in (TOKEN_TYPE_ACCESS, TOKEN_TYPE_COMPANY) or not payload.get("sub"):
        raise Unauthenticated()
    return payload
