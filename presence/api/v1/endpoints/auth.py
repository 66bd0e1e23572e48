"""
Auth endpoints: login (OAuth2 password flow), refresh, logout, password
change and accounts.

Sessions are only needed for the staff side; the public kiosk check-in
never touches them.
"""

from __future__ import annotations

import logging

from fastapi import (APIRouter, Cookie, Depends, HTTPException, Request,
                     Response, status)
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from presence.api.v1.deps import (get_clock, get_current_active_user, get_db,
                                  require_admin)
from presence.core.clock import Clock
from presence.core.config import settings
from presence.core.limiter import limiter
from presence.core.security import (create_access_token, create_refresh_token,
                                    decode_refresh_token, get_password_hash,
                                    verify_password)
from presence.models.user import User
from presence.schemas.token import LogoutResponse, RefreshRequest, Token
from presence.schemas.user import (ChangePasswordRequest, ChangePasswordResponse,
                                   UserCreate, UserRead)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _issue_session(response: Response, user: User) -> Token:
    """Mint an access/refresh pair and mirror it into HttpOnly cookies."""
    access_token = create_access_token(user.id)
    refresh_token = create_refresh_token(user.id)

    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )
    return Token(access_token=access_token, refresh_token=refresh_token)


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
async def login_for_access_token(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Token:
    """Authenticate with email/password. Tokens come back in the body and as cookies."""
    result = await db.execute(
        select(User).where(User.email == form_data.username.lower().strip())
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(form_data.password, user.hashed_password):
        logger.warning("Failed login for %s", form_data.username.lower().strip())
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    user.last_login_at = clock()
    await db.commit()
    return _issue_session(response, user)


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
async def refresh_access_token_endpoint(
    request: Request,
    response: Response,
    body: RefreshRequest | None = None,
    refresh_token_cookie: str | None = Cookie(None, alias="refresh_token"),
    db: AsyncSession = Depends(get_db),
) -> Token:
    # Priority: Body > Cookie
    token_str = body.refresh_token if body and body.refresh_token else refresh_token_cookie
    if not token_str:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token missing",
        )

    payload = decode_refresh_token(token_str)
    user_id = payload.get("sub") if payload else None
    if user_id is None or not str(user_id).isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return _issue_session(response, user)


@router.post("/logout", response_model=LogoutResponse)
async def logout(response: Response) -> LogoutResponse:
    """Clear auth cookies and end the session."""
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    return LogoutResponse(message="Logged out")


# ── Accounts (admin-only) ──────────────────────────────────────────
@router.post("/users", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    """Create a login account; link it to an employee via the employee directory."""
    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=body.email,
        hashed_password=get_password_hash(body.password),
        full_name=body.full_name,
        role=body.role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User %s created with role %s", user.email, user.role)
    return user


@router.get("/me", response_model=UserRead)
async def read_current_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Return profile of the currently authenticated user."""
    return current_user


@router.post("/change-password", response_model=ChangePasswordResponse)
@limiter.limit("5/minute")
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ChangePasswordResponse:
    """Replace the caller's password after checking the current one."""
    if not verify_password(body.current_password, current_user.hashed_password):
        logger.warning("Wrong current password on change for user %d", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect",
        )
    current_user.hashed_password = get_password_hash(body.new_password)
    await db.commit()
    logger.info("User %d changed their password", current_user.id)
    return ChangePasswordResponse(message="Password changed successfully")
