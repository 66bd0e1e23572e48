"""
Attendance endpoints: QR issuing, check-in/out, listings and HR corrections.

- POST /attendance/generate-qr is for display surfaces (admin, hr, kiosk).
- POST /attendance/check-in uses the caller's session to find the employee.
- POST /attendance/check-in-public is unauthenticated and rate limited; the
  person at the door types their employee code.
- Corrections and saving the holiday calendar require HR; listings of everyone
  require manager or above.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from presence.api.v1.deps import (get_clock, get_corrections, get_current_active_user,
                                  get_db, get_issuer, get_state_machine, get_views,
                                  require_admin, require_hr, require_issuer,
                                  require_manager)
from presence.core.clock import Clock, ensure_utc
from presence.core.config import settings
from presence.core.exceptions import EmployeeNotFound
from presence.core.limiter import limiter
from presence.models.employee import Employee
from presence.models.user import User
from presence.repositories.employees import EmployeeRef, EmployeeRepository
from presence.repositories.holidays import HolidayCalendarRepository
from presence.repositories.presence_tokens import PresenceTokenStore
from presence.schemas.attendance import (AttendanceRead, CheckInRequest,
                                         CheckInResponse, CorrectionResponse,
                                         EditAttendanceRequest,
                                         ForcedCheckoutRequest,
                                         GenerateQRRequest, GenerateQRResponse,
                                         HolidayCalendarRead,
                                         HolidayCalendarResponse,
                                         HolidayCalendarUpdate,
                                         ManualMarkRequest,
                                         PublicCheckInRequest, PurgeResponse,
                                         TodayStatusResponse,
                                         UpdateNotesRequest)
from presence.services.corrections import AttendanceCorrections
from presence.services.issuer import (PresenceTokenIssuer, render_qr_data_url,
                                      token_from_scan_url)
from presence.services.state_machine import (AttendanceStateMachine,
                                             PresenceEvent, PresenceOutcome)
from presence.services.views import AnnotatedRecord, AttendanceViews

router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = logging.getLogger(__name__)

_MESSAGES = {
    PresenceEvent.CHECK_IN: "Checked in successfully",
    PresenceEvent.CHECK_OUT: "Checked out successfully",
}


def _utc_or_none(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def _to_read(item: AnnotatedRecord) -> AttendanceRead:
    r = item.record
    return AttendanceRead(
        id=r.id,
        employee_id=r.employee_id,
        employee_name=item.employee_name,
        site_id=r.site_id,
        work_day=r.work_day,
        check_in_time=ensure_utc(r.check_in_time),
        check_out_time=_utc_or_none(r.check_out_time),
        check_in_local=item.check_in_local,
        check_out_local=item.check_out_local,
        status=r.status,
        source=r.source,
        is_half_day=r.is_half_day,
        arrival_band=item.arrival_band,
        departure_band=item.departure_band,
        device_id=r.device_id,
        latitude=r.latitude,
        longitude=r.longitude,
        notes=r.notes,
        corrected_by=r.corrected_by,
        corrected_at=_utc_or_none(r.corrected_at),
    )


def _to_check_in_response(outcome: PresenceOutcome) -> CheckInResponse:
    return CheckInResponse(
        action=outcome.event.value,
        message=_MESSAGES[outcome.event],
        attendance_id=outcome.record.id,
        employee_id=outcome.employee.id,
        employee_name=outcome.employee.name,
        check_in_time=ensure_utc(outcome.record.check_in_time),
        check_out_time=_utc_or_none(outcome.record.check_out_time),
        arrival_band=outcome.arrival_band,
        departure_band=outcome.departure_band,
    )


async def _own_employee(db: AsyncSession, user: User) -> Employee:
    employee = await EmployeeRepository().get_by_user(db, user.id)
    if employee is None:
        raise EmployeeNotFound("No employee profile is linked to this account")
    return employee


# ── QR issuing ──────────────────────────────────────────────────────
@router.post("/generate-qr", response_model=GenerateQRResponse)
async def generate_qr(
    body: GenerateQRRequest | None = Body(default=None),
    db: AsyncSession = Depends(get_db),
    issuer: PresenceTokenIssuer = Depends(get_issuer),
    _user: User = Depends(require_issuer),
) -> GenerateQRResponse:
    """Mint the next rolling token and its QR image."""
    site_id = (body.site_id if body else None) or settings.DEFAULT_SITE_ID
    issued = await issuer.rotate(db, site_id)
    return GenerateQRResponse(
        token=issued.cipher_text,
        qr_code=render_qr_data_url(issued.scan_url),
        scan_url=issued.scan_url,
        expires_in=issued.expires_in,
        expires_at=issued.expires_at,
    )


# ── Check-in / check-out ────────────────────────────────────────────
@router.post("/check-in", response_model=CheckInResponse)
async def check_in(
    body: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    machine: AttendanceStateMachine = Depends(get_state_machine),
    current_user: User = Depends(get_current_active_user),
) -> CheckInResponse:
    outcome = await machine.confirm_presence(
        db,
        token_from_scan_url(body.token) or body.token,
        EmployeeRef.by_user(current_user.id),
        device_id=body.device_id,
        latitude=body.latitude,
        longitude=body.longitude,
        is_half_day=body.is_half_day,
    )
    return _to_check_in_response(outcome)


@router.post("/check-in-public", response_model=CheckInResponse)
@limiter.limit("30/minute")
async def check_in_public(
    request: Request,
    body: PublicCheckInRequest,
    db: AsyncSession = Depends(get_db),
    machine: AttendanceStateMachine = Depends(get_state_machine),
) -> CheckInResponse:
    """Kiosk flow: no session, the employee code identifies the person."""
    outcome = await machine.confirm_presence(
        db,
        token_from_scan_url(body.token) or body.token,
        EmployeeRef.by_code(body.employee_code),
        device_id=body.device_id,
        latitude=body.latitude,
        longitude=body.longitude,
        is_half_day=body.is_half_day,
    )
    return _to_check_in_response(outcome)


# ── Views ───────────────────────────────────────────────────────────
@router.get("/today-checkin", response_model=TodayStatusResponse)
async def today_checkin(
    db: AsyncSession = Depends(get_db),
    views: AttendanceViews = Depends(get_views),
    current_user: User = Depends(get_current_active_user),
) -> TodayStatusResponse:
    employee = await _own_employee(db, current_user)
    status = await views.today_status(db, employee.id)
    return TodayStatusResponse(
        is_checked_in=status.is_checked_in,
        attendance_id=status.record_id,
        check_in_time=status.check_in_time,
        check_out_time=status.check_out_time,
        arrival_band=status.arrival_band,
    )


@router.get("/my-logs", response_model=list[AttendanceRead])
async def my_logs(
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
    views: AttendanceViews = Depends(get_views),
    current_user: User = Depends(get_current_active_user),
) -> list[AttendanceRead]:
    employee = await _own_employee(db, current_user)
    rows = await views.list_for_employee(db, employee.id, month=month, year=year)
    return [_to_read(r) for r in rows]


@router.get("/all-logs", response_model=list[AttendanceRead])
async def all_logs(
    day: date | None = Query(default=None),
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
    site_id: str | None = Query(default=None, max_length=50),
    db: AsyncSession = Depends(get_db),
    views: AttendanceViews = Depends(get_views),
    _user: User = Depends(require_manager),
) -> list[AttendanceRead]:
    """One day (today by default) or one month, across every employee or one site."""
    rows = await views.list_all(db, day=day, month=month, year=year, site_id=site_id)
    return [_to_read(r) for r in rows]


# ── Corrections (HR) ────────────────────────────────────────────────
@router.post("/forced-checkout", response_model=CorrectionResponse)
async def forced_checkout(
    body: ForcedCheckoutRequest,
    db: AsyncSession = Depends(get_db),
    corrections: AttendanceCorrections = Depends(get_corrections),
    views: AttendanceViews = Depends(get_views),
    hr_user: User = Depends(require_hr),
) -> CorrectionResponse:
    record = await corrections.forced_checkout(
        db, body.attendance_id, body.check_out_time, by_user=hr_user.id
    )
    return CorrectionResponse(
        message="Employee checked out",
        attendance=_to_read(await views.describe(db, record)),
    )


@router.post("/manual-mark", response_model=CorrectionResponse, status_code=201)
async def manual_mark(
    body: ManualMarkRequest,
    db: AsyncSession = Depends(get_db),
    corrections: AttendanceCorrections = Depends(get_corrections),
    views: AttendanceViews = Depends(get_views),
    hr_user: User = Depends(require_hr),
) -> CorrectionResponse:
    record = await corrections.manual_mark(
        db,
        body.employee_id,
        body.check_in_time,
        body.check_out_time,
        by_user=hr_user.id,
        notes=body.notes,
        site_id=body.site_id,
    )
    return CorrectionResponse(
        message="Attendance marked",
        attendance=_to_read(await views.describe(db, record)),
    )


@router.post("/edit-attendance", response_model=CorrectionResponse)
async def edit_attendance(
    body: EditAttendanceRequest,
    db: AsyncSession = Depends(get_db),
    corrections: AttendanceCorrections = Depends(get_corrections),
    views: AttendanceViews = Depends(get_views),
    hr_user: User = Depends(require_hr),
) -> CorrectionResponse:
    record = await corrections.edit_times(
        db, body.attendance_id, body.check_in_time, body.check_out_time, by_user=hr_user.id
    )
    return CorrectionResponse(
        message="Attendance updated",
        attendance=_to_read(await views.describe(db, record)),
    )


@router.post("/update-notes", response_model=CorrectionResponse)
async def update_notes(
    body: UpdateNotesRequest,
    db: AsyncSession = Depends(get_db),
    corrections: AttendanceCorrections = Depends(get_corrections),
    views: AttendanceViews = Depends(get_views),
    current_user: User = Depends(get_current_active_user),
) -> CorrectionResponse:
    """HR may annotate any record; everyone else only their own."""
    owner_id = None
    if not current_user.can_correct_attendance:
        owner_id = (await _own_employee(db, current_user)).id
    record = await corrections.update_notes(
        db, body.attendance_id, body.notes, by_user=current_user.id, owner_employee_id=owner_id
    )
    return CorrectionResponse(
        message="Notes updated",
        attendance=_to_read(await views.describe(db, record)),
    )


# ── Holidays ────────────────────────────────────────────────────────
_holidays = HolidayCalendarRepository()


@router.get("/holidays", response_model=HolidayCalendarRead)
async def get_holidays(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> HolidayCalendarRead:
    """Leave days of one month; an unsaved month has none."""
    entry = await _holidays.get(db, month, year)
    if entry is None:
        return HolidayCalendarRead(month=month, year=year, leave_days=[])
    return HolidayCalendarRead.model_validate(entry)


@router.post("/holidays", response_model=HolidayCalendarResponse)
async def save_holidays(
    body: HolidayCalendarUpdate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    hr_user: User = Depends(require_hr),
) -> HolidayCalendarResponse:
    entry = await _holidays.upsert(
        db, body.month, body.year, body.leave_days, by_user=hr_user.id, now=clock()
    )
    logger.info(
        "Holidays for %02d/%d set to %s by user %d",
        entry.month,
        entry.year,
        entry.leave_days,
        hr_user.id,
    )
    return HolidayCalendarResponse(
        message="Holidays updated successfully",
        holidays=HolidayCalendarRead.model_validate(entry),
    )


# ── Maintenance ─────────────────────────────────────────────────────
@router.delete("/tokens/expired", response_model=PurgeResponse)
async def purge_expired_tokens(
    older_than_minutes: int = Query(default=60, ge=0, le=60 * 24 * 365),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    _admin: User = Depends(require_admin),
) -> PurgeResponse:
    """Drop presence tokens that expired more than ``older_than_minutes`` ago."""
    cutoff = clock() - timedelta(minutes=older_than_minutes)
    deleted = await PresenceTokenStore().purge_expired(db, cutoff)
    return PurgeResponse(deleted=deleted)
