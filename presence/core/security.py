"""
Session JWT creation / verification and password hashing (bcrypt).

These tokens identify a logged-in user; they are unrelated to the
single-use QR presence tokens in ``presence.core.cipher``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from presence.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── JWT tokens ──────────────────────────────────────────────────────
def _encode(subject: str | Any, token_type: str, expires_delta: timedelta) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(
        {"exp": expire, "sub": str(subject), "type": token_type},
        _SECRET,
        algorithm=_ALGORITHM,
    )


def create_access_token(
    subject: str | Any,
    expires_delta: timedelta | None = None,
) -> str:
    return _encode(
        subject,
        "access",
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(subject: str | Any) -> str:
    return _encode(subject, "refresh", timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def _decode(token: str, token_type: str) -> dict | None:
    try:
        payload = jwt.decode(token, _SECRET, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != token_type:
        return None
    return payload


def decode_access_token(token: str) -> dict | None:
    """Return payload dict if *access* token is valid, else ``None``."""
    return _decode(token, "access")


def decode_refresh_token(token: str) -> dict | None:
    """Return payload dict if *refresh* token is valid, else ``None``."""
    return _decode(token, "refresh")
