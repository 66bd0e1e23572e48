"""Pydantic schemas for QR issuing, check-in and attendance listings."""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from presence.services.classifier import ArrivalBand, DepartureBand

_CODE_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


# ── QR issuing ──────────────────────────────────────────────────────
class GenerateQRRequest(BaseModel):
    site_id: str | None = Field(default=None, max_length=50)


class GenerateQRResponse(BaseModel):
    success: bool = True
    token: str
    qr_code: str
    scan_url: str
    expires_in: int
    expires_at: datetime


# ── Check-in ────────────────────────────────────────────────────────
class _PresenceBase(BaseModel):
    token: str = Field(min_length=1, max_length=1024)
    device_id: str | None = Field(default=None, max_length=128)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    is_half_day: bool = False

    @field_validator("token")
    @classmethod
    def _token(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Token must not be empty")
        return v


class CheckInRequest(_PresenceBase):
    pass


class PublicCheckInRequest(_PresenceBase):
    employee_code: str

    @field_validator("employee_code")
    @classmethod
    def _code(cls, v: str) -> str:
        v = v.strip()
        if not _CODE_RE.match(v):
            raise ValueError("Employee code must be 1-64 letters, digits, '-' or '_'")
        return v


class CheckInResponse(BaseModel):
    success: bool = True
    action: str  # CHECK_IN | CHECK_OUT
    message: str
    attendance_id: int
    employee_id: int
    employee_name: str
    check_in_time: datetime
    check_out_time: datetime | None = None
    arrival_band: ArrivalBand
    departure_band: DepartureBand


class TodayStatusResponse(BaseModel):
    is_checked_in: bool
    attendance_id: int | None = None
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None
    arrival_band: ArrivalBand | None = None


# ── Listings ────────────────────────────────────────────────────────
class AttendanceRead(BaseModel):
    id: int
    employee_id: int
    employee_name: str | None = None
    site_id: str
    work_day: date
    check_in_time: datetime
    check_out_time: datetime | None
    check_in_local: str
    check_out_local: str | None
    status: str
    source: str
    is_half_day: bool
    arrival_band: ArrivalBand
    departure_band: DepartureBand
    device_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    notes: str | None = None
    corrected_by: int | None = None
    corrected_at: datetime | None = None


# ── Corrections ─────────────────────────────────────────────────────
class ForcedCheckoutRequest(BaseModel):
    attendance_id: int
    check_out_time: datetime


class ManualMarkRequest(BaseModel):
    employee_id: int
    site_id: str | None = Field(default=None, max_length=50)
    check_in_time: datetime
    check_out_time: datetime | None = None
    notes: str | None = Field(default=None, max_length=500)


class EditAttendanceRequest(BaseModel):
    attendance_id: int
    check_in_time: datetime
    check_out_time: datetime | None = None


class UpdateNotesRequest(BaseModel):
    attendance_id: int
    # length is checked by the service so the error carries its own code
    notes: str | None = None


class CorrectionResponse(BaseModel):
    success: bool = True
    message: str
    attendance: AttendanceRead


class PurgeResponse(BaseModel):
    success: bool = True
    deleted: int


# ── Holidays ────────────────────────────────────────────────────────
class HolidayCalendarRead(BaseModel):
    month: int
    year: int
    leave_days: list[int]
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class HolidayCalendarUpdate(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    leave_days: list[int] = Field(max_length=31)

    @model_validator(mode="after")
    def _days_in_month(self) -> HolidayCalendarUpdate:
        _, last = calendar.monthrange(self.year, self.month)
        bad = [d for d in self.leave_days if not 1 <= d <= last]
        if bad:
            raise ValueError(f"Days {bad} do not exist in {self.month}/{self.year}")
        self.leave_days = sorted(set(self.leave_days))
        return self


class HolidayCalendarResponse(BaseModel):
    success: bool = True
    message: str
    holidays: HolidayCalendarRead
