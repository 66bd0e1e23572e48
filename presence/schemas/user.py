"""Pydantic schemas for login accounts."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_ROLES = {"admin", "hr", "manager", "employee", "kiosk"}


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    full_name: str | None = None
    role: str = "employee"

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str) -> str:
        if v not in VALID_ROLES:
            raise ValueError(f"Role must be one of: {sorted(VALID_ROLES)}")
        return v

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class UserRead(BaseModel):
    id: int
    email: str
    full_name: str | None
    role: str
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=72)
    new_password: str = Field(min_length=8, max_length=72)
    confirm_password: str

    @model_validator(mode="after")
    def _passwords_match(self) -> ChangePasswordRequest:
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class ChangePasswordResponse(BaseModel):
    success: bool = True
    message: str
