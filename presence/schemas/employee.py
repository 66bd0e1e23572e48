"""Pydantic schemas for the employee directory."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, field_validator

_CODE_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class EmployeeCreate(BaseModel):
    name: str
    employee_code: str
    email: str | None = None
    department: str | None = None
    position: str | None = None
    user_id: int | None = None

    @field_validator("employee_code")
    @classmethod
    def _code(cls, v: str) -> str:
        v = v.strip()
        if not _CODE_RE.match(v):
            raise ValueError("Employee code must be 1-64 letters, digits, '-' or '_'")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        if len(v) > 200:
            raise ValueError("Name must not exceed 200 characters")
        return v


class EmployeeUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    department: str | None = None
    position: str | None = None
    user_id: int | None = None
    is_active: bool | None = None


class EmployeeRead(BaseModel):
    id: int
    name: str
    employee_code: str
    email: str | None
    department: str | None
    position: str | None
    user_id: int | None
    is_active: bool
    created_at: datetime | None

    model_config = {"from_attributes": True}


class DeleteResponse(BaseModel):
    success: bool
    message: str
