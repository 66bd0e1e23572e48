"""Pydantic schemas for per-site office settings."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_OFFSET_RE = re.compile(r"^[+-]([01]\d|2[0-3]):[0-5]\d$")


class OfficeSettingsRead(BaseModel):
    site_id: str
    office_name: str
    timezone_offset: str
    qr_rotation_seconds: int
    office_start: str
    grace_minutes: int
    exact_start_band: str
    departure_grace_start: str
    departure_on_time_start: str
    departure_appreciated_start: str
    allow_reentry: bool
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class OfficeSettingsUpdate(BaseModel):
    office_name: str | None = Field(default=None, max_length=200)
    timezone_offset: str | None = None
    qr_rotation_seconds: int | None = Field(default=None, ge=5, le=3600)
    office_start: str | None = None
    grace_minutes: int | None = Field(default=None, ge=0, le=240)
    exact_start_band: str | None = None
    departure_grace_start: str | None = None
    departure_on_time_start: str | None = None
    departure_appreciated_start: str | None = None
    allow_reentry: bool | None = None

    @field_validator(
        "office_start",
        "departure_grace_start",
        "departure_on_time_start",
        "departure_appreciated_start",
    )
    @classmethod
    def _hhmm(cls, v: str | None) -> str | None:
        if v is not None and not _HHMM_RE.match(v):
            raise ValueError("Time must be HH:MM (24h)")
        return v

    @field_validator("timezone_offset")
    @classmethod
    def _offset(cls, v: str | None) -> str | None:
        if v is not None and not _OFFSET_RE.match(v):
            raise ValueError("Timezone offset must look like +05:30")
        return v

    @field_validator("exact_start_band")
    @classmethod
    def _exact_start(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.upper()
        if v not in {"PERFECT", "ON_TIME"}:
            raise ValueError("exact_start_band must be PERFECT or ON_TIME")
        return v

    @model_validator(mode="after")
    def _departure_order(self) -> OfficeSettingsUpdate:
        given = [
            t
            for t in (
                self.departure_grace_start,
                self.departure_on_time_start,
                self.departure_appreciated_start,
            )
            if t is not None
        ]
        # only checkable when all three move together
        if len(given) == 3 and not (given[0] < given[1] < given[2]):
            raise ValueError("Departure bands must be in increasing order")
        return self
