"""
Manual attendance corrections made by HR: forced check-out, manual marking,
time edits and notes.  Every change stamps who made it and when.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from presence.core.clock import Clock, ensure_utc, local_day, utcnow
from presence.core.config import settings
from presence.core.exceptions import (EmployeeNotFound, InvalidCorrection,
                                      PresenceConflict, RecordNotFound)
from presence.models.attendance import (SOURCE_MANUAL, STATUS_CLOSED,
                                        STATUS_OPEN, AttendanceRecord)
from presence.repositories.attendance import AttendanceRepository
from presence.repositories.employees import EmployeeRepository
from presence.repositories.office_settings import OfficeSettingsRepository
from presence.services.classifier import SitePolicy

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500


def _check_order(check_in: datetime, check_out: datetime | None) -> None:
    if check_out is not None and check_out < check_in:
        raise InvalidCorrection("Check-out time must not be before check-in time")


class AttendanceCorrections:
    def __init__(
        self,
        records: AttendanceRepository | None = None,
        employees: EmployeeRepository | None = None,
        offices: OfficeSettingsRepository | None = None,
        clock: Clock = utcnow,
        site_id: str | None = None,
    ) -> None:
        self.records = records or AttendanceRepository()
        self.employees = employees or EmployeeRepository()
        self.offices = offices or OfficeSettingsRepository()
        self.clock = clock
        self.site_id = site_id or settings.DEFAULT_SITE_ID

    async def _get_record(self, db: AsyncSession, record_id: int) -> AttendanceRecord:
        record = await self.records.get(db, record_id)
        if record is None:
            raise RecordNotFound()
        return record

    async def forced_checkout(
        self, db: AsyncSession, record_id: int, check_out_time: datetime, by_user: int
    ) -> AttendanceRecord:
        record = await self._get_record(db, record_id)
        check_out = ensure_utc(check_out_time)
        _check_order(ensure_utc(record.check_in_time), check_out)
        now = self.clock()

        closed = await self.records.close(
            db,
            record.id,
            check_out,
            corrected_by=by_user,
            corrected_at=now,
            updated_at=now,
        )
        if not closed:
            raise InvalidCorrection("Attendance record is already checked out")
        await db.refresh(record)
        logger.info("Forced checkout of record %d by user %d", record.id, by_user)
        return record

    async def manual_mark(
        self,
        db: AsyncSession,
        employee_id: int,
        check_in_time: datetime,
        check_out_time: datetime | None,
        by_user: int,
        notes: str | None = None,
        site_id: str | None = None,
    ) -> AttendanceRecord:
        employee = await self.employees.get(db, employee_id)
        if employee is None:
            raise EmployeeNotFound()

        check_in = ensure_utc(check_in_time)
        check_out = ensure_utc(check_out_time) if check_out_time else None
        _check_order(check_in, check_out)

        office = await self.offices.get_or_create(db, site_id or self.site_id)
        policy = SitePolicy.from_office(office)
        now = self.clock()
        record = AttendanceRecord(
            employee_id=employee.id,
            site_id=office.site_id,
            work_day=local_day(check_in, policy.tz),
            check_in_time=check_in,
            check_out_time=check_out,
            status=STATUS_CLOSED if check_out else STATUS_OPEN,
            source=SOURCE_MANUAL,
            notes=notes or None,
            corrected_by=by_user,
            corrected_at=now,
            created_at=now,
            updated_at=now,
        )
        try:
            record = await self.records.add(db, record)
        except IntegrityError as exc:
            await db.rollback()
            raise PresenceConflict("Employee already has an open record for that day") from exc
        logger.info("Manual attendance %d for employee %d by user %d", record.id, employee_id, by_user)
        return record

    async def edit_times(
        self,
        db: AsyncSession,
        record_id: int,
        check_in_time: datetime,
        check_out_time: datetime | None,
        by_user: int,
    ) -> AttendanceRecord:
        record = await self._get_record(db, record_id)
        check_in = ensure_utc(check_in_time)
        check_out = ensure_utc(check_out_time) if check_out_time else None
        _check_order(check_in, check_out)

        # the work day moves with the times, in the record's own site calendar
        policy = SitePolicy.from_office(await self.offices.get_or_create(db, record.site_id))
        now = self.clock()
        record.check_in_time = check_in
        record.check_out_time = check_out
        record.work_day = local_day(check_in, policy.tz)
        record.status = STATUS_CLOSED if check_out else STATUS_OPEN
        record.corrected_by = by_user
        record.corrected_at = now
        record.updated_at = now
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise PresenceConflict("Employee already has an open record for that day") from exc
        await db.refresh(record)
        logger.info("Edited attendance %d by user %d", record_id, by_user)
        return record

    async def update_notes(
        self,
        db: AsyncSession,
        record_id: int,
        notes: str | None,
        by_user: int,
        owner_employee_id: int | None = None,
    ) -> AttendanceRecord:
        """Replace a record's notes.

        With ``owner_employee_id`` set, only that employee's own records are
        reachable; anything else reads as missing.
        """
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise InvalidCorrection(f"Notes must be {MAX_NOTES_LENGTH} characters or less")
        record = await self._get_record(db, record_id)
        if owner_employee_id is not None and record.employee_id != owner_employee_id:
            raise RecordNotFound()
        record.notes = notes or None
        record.corrected_by = by_user
        record.updated_at = self.clock()
        await db.commit()
        await db.refresh(record)
        return record
