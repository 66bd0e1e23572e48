"""
FastAPI dependencies: database session, injected services and auth guards.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from presence.core.cipher import TokenCipher
from presence.core.clock import Clock
from presence.core.security import decode_access_token
from presence.models.user import CORRECTION_ROLES, User
from presence.services.corrections import AttendanceCorrections
from presence.services.issuer import PresenceTokenIssuer
from presence.services.state_machine import AttendanceStateMachine
from presence.services.views import AttendanceViews

# auto_error=False so the HttpOnly cookie can be checked when the header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.database.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── App-scoped collaborators ────────────────────────────────────────
def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_cipher(request: Request) -> TokenCipher:
    return request.app.state.cipher


def get_state_machine(
    cipher: TokenCipher = Depends(get_cipher),
    clock: Clock = Depends(get_clock),
) -> AttendanceStateMachine:
    return AttendanceStateMachine(cipher, clock=clock)


def get_issuer(
    cipher: TokenCipher = Depends(get_cipher),
    clock: Clock = Depends(get_clock),
) -> PresenceTokenIssuer:
    return PresenceTokenIssuer(cipher, clock=clock)


def get_views(clock: Clock = Depends(get_clock)) -> AttendanceViews:
    return AttendanceViews(clock=clock)


def get_corrections(clock: Clock = Depends(get_clock)) -> AttendanceCorrections:
    return AttendanceCorrections(clock=clock)


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode JWT from Header OR Cookie, look up user."""

    # Priority: Header > Cookie
    final_token = token
    if not final_token and access_token:
        # auth.py stores the cookie as "Bearer <token>"
        final_token = access_token.removeprefix("Bearer ")

    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not final_token:
        raise credentials_exc

    payload = decode_access_token(final_token)
    if payload is None:
        raise credentials_exc

    user_id: str | None = payload.get("sub")
    if user_id is None or not user_id.isdigit():
        raise credentials_exc

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exc
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reject inactive accounts."""
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user account")
    return current_user


def _require_roles(*roles: str, detail: str):
    async def guard(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return current_user

    return guard


require_admin = _require_roles("admin", detail="Admin privileges required")
require_hr = _require_roles(*CORRECTION_ROLES, detail="HR privileges required")
require_manager = _require_roles("admin", "hr", "manager", detail="Manager privileges required")
# display surfaces that show the rolling QR code
require_issuer = _require_roles("admin", "hr", "kiosk", detail="Not allowed to issue QR codes")
