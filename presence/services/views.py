"""
Read-side attendance views.

Bands are derived here, at read time, from the stored UTC instants and the
*current* policy of the site each record was made at; nothing
classification-related is persisted.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from presence.core.clock import Clock, ensure_utc, format_local, local_day, utcnow
from presence.core.config import settings
from presence.models.attendance import STATUS_OPEN, AttendanceRecord
from presence.repositories.attendance import AttendanceRepository
from presence.repositories.employees import EmployeeRepository
from presence.repositories.office_settings import OfficeSettingsRepository
from presence.services.classifier import (ArrivalBand, DepartureBand,
                                          SitePolicy, arrival_band,
                                          departure_band)


@dataclass(frozen=True)
class AnnotatedRecord:
    record: AttendanceRecord
    arrival_band: ArrivalBand
    departure_band: DepartureBand
    check_in_local: str
    check_out_local: str | None
    employee_name: str | None = None


@dataclass(frozen=True)
class TodayStatus:
    is_checked_in: bool
    record_id: int | None = None
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None
    arrival_band: ArrivalBand | None = None


def month_window(month: int, year: int) -> tuple[date, date]:
    _, last = calendar.monthrange(year, month)
    return date(year, month, 1), date(year, month, last)


def annotate(
    record: AttendanceRecord, policy: SitePolicy, employee_name: str | None = None
) -> AnnotatedRecord:
    check_in = ensure_utc(record.check_in_time)
    check_out = ensure_utc(record.check_out_time) if record.check_out_time else None
    return AnnotatedRecord(
        record=record,
        arrival_band=arrival_band(check_in, policy.tz, policy.punctuality),
        departure_band=departure_band(check_out, policy.tz, policy.punctuality),
        check_in_local=format_local(check_in, policy.tz) or "",
        check_out_local=format_local(check_out, policy.tz),
        employee_name=employee_name,
    )


class AttendanceViews:
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
        # site whose calendar decides "today" when the caller names none
        self.site_id = site_id or settings.DEFAULT_SITE_ID

    async def _policy(self, db: AsyncSession, site_id: str) -> SitePolicy:
        return SitePolicy.from_office(await self.offices.get_or_create(db, site_id))

    async def _policies(
        self, db: AsyncSession, records: list[AttendanceRecord]
    ) -> dict[str, SitePolicy]:
        return {
            site_id: await self._policy(db, site_id)
            for site_id in {r.site_id for r in records}
        }

    async def list_for_employee(
        self,
        db: AsyncSession,
        employee_id: int,
        month: int | None = None,
        year: int | None = None,
    ) -> list[AnnotatedRecord]:
        """Most recent first; the whole history unless both month and year are given."""
        day_from = day_to = None
        if month and year:
            day_from, day_to = month_window(month, year)
        rows = await self.records.list_for_employee(db, employee_id, day_from, day_to)
        policies = await self._policies(db, rows)
        return [annotate(r, policies[r.site_id]) for r in rows]

    async def list_all(
        self,
        db: AsyncSession,
        day: date | None = None,
        month: int | None = None,
        year: int | None = None,
        site_id: str | None = None,
    ) -> list[AnnotatedRecord]:
        """Every employee's records for one day, or one month; today by default.

        "Today" is read off the calendar of ``site_id``, or of the default
        site when listing across all sites.
        """
        if month and year:
            day_from, day_to = month_window(month, year)
        else:
            if day is None:
                policy = await self._policy(db, site_id or self.site_id)
                day = local_day(self.clock(), policy.tz)
            day_from = day_to = day

        rows = await self.records.list_between(db, day_from, day_to, site_id=site_id)
        policies = await self._policies(db, rows)
        names = await self.employees.names_by_id(db, {r.employee_id for r in rows})
        return [
            annotate(r, policies[r.site_id], names.get(r.employee_id, "Unknown")) for r in rows
        ]

    async def describe(self, db: AsyncSession, record: AttendanceRecord) -> AnnotatedRecord:
        policy = await self._policy(db, record.site_id)
        names = await self.employees.names_by_id(db, {record.employee_id})
        return annotate(record, policy, names.get(record.employee_id, "Unknown"))

    async def today_status(self, db: AsyncSession, employee_id: int) -> TodayStatus:
        """Advisory projection for the check-in screen's next-action label.

        The employee's latest record counts when it falls on today's date in
        the calendar of the site it was made at.  The state machine never
        reads this; it decides for itself.
        """
        record = await self.records.get_latest(db, employee_id)
        if record is None:
            return TodayStatus(is_checked_in=False)
        policy = await self._policy(db, record.site_id)
        if record.work_day != local_day(self.clock(), policy.tz):
            return TodayStatus(is_checked_in=False)

        check_in = ensure_utc(record.check_in_time)
        check_out = ensure_utc(record.check_out_time) if record.check_out_time else None
        if record.status != STATUS_OPEN:
            return TodayStatus(
                is_checked_in=False,
                record_id=record.id,
                check_in_time=check_in,
                check_out_time=check_out,
            )
        return TodayStatus(
            is_checked_in=True,
            record_id=record.id,
            check_in_time=check_in,
            check_out_time=None,
            arrival_band=arrival_band(check_in, policy.tz, policy.punctuality),
        )
