"""Pydantic schemas for login session tokens."""

from __future__ import annotations

from pydantic import BaseModel


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutResponse(BaseModel):
    success: bool = True
    message: str
