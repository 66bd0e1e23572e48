"""
Attendance record repository.

Closing an OPEN record is a conditional UPDATE on ``status``; opening one
relies on the partial unique index, so a losing concurrent insert surfaces
as ``IntegrityError`` rather than a second OPEN row.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from presence.models.attendance import (STATUS_CLOSED, STATUS_OPEN,
                                        AttendanceRecord)


class AttendanceRepository:
    async def get(self, db: AsyncSession, record_id: int) -> AttendanceRecord | None:
        result = await db.execute(
            select(AttendanceRecord).where(AttendanceRecord.id == record_id)
        )
        return result.scalar_one_or_none()

    async def get_open_for_day(
        self, db: AsyncSession, employee_id: int, work_day: date
    ) -> AttendanceRecord | None:
        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.work_day == work_day,
                AttendanceRecord.status == STATUS_OPEN,
            )
        )
        return result.scalar_one_or_none()

    async def get_latest_for_day(
        self, db: AsyncSession, employee_id: int, work_day: date
    ) -> AttendanceRecord | None:
        result = await db.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.work_day == work_day,
            )
            .order_by(AttendanceRecord.check_in_time.desc(), AttendanceRecord.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_latest(self, db: AsyncSession, employee_id: int) -> AttendanceRecord | None:
        result = await db.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.employee_id == employee_id)
            .order_by(AttendanceRecord.check_in_time.desc(), AttendanceRecord.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def add(self, db: AsyncSession, record: AttendanceRecord) -> AttendanceRecord:
        db.add(record)
        await db.commit()
        await db.refresh(record)
        return record

    async def close(
        self,
        db: AsyncSession,
        record_id: int,
        check_out_time: datetime,
        **extra: object,
    ) -> bool:
        """OPEN → CLOSED; ``False`` if the record was not OPEN any more."""
        result = await db.execute(
            update(AttendanceRecord)
            .where(AttendanceRecord.id == record_id, AttendanceRecord.status == STATUS_OPEN)
            .values(
                {
                    "check_out_time": check_out_time,
                    "status": STATUS_CLOSED,
                    "updated_at": check_out_time,
                    **extra,
                }
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount == 1

    async def list_for_employee(
        self,
        db: AsyncSession,
        employee_id: int,
        day_from: date | None = None,
        day_to: date | None = None,
    ) -> list[AttendanceRecord]:
        query = select(AttendanceRecord).where(AttendanceRecord.employee_id == employee_id)
        if day_from is not None:
            query = query.where(AttendanceRecord.work_day >= day_from)
        if day_to is not None:
            query = query.where(AttendanceRecord.work_day <= day_to)
        result = await db.execute(
            query.order_by(AttendanceRecord.check_in_time.desc(), AttendanceRecord.id.desc())
        )
        return list(result.scalars().all())

    async def list_between(
        self, db: AsyncSession, day_from: date, day_to: date, site_id: str | None = None
    ) -> list[AttendanceRecord]:
        query = select(AttendanceRecord).where(
            AttendanceRecord.work_day >= day_from, AttendanceRecord.work_day <= day_to
        )
        if site_id is not None:
            query = query.where(AttendanceRecord.site_id == site_id)
        result = await db.execute(
            query.order_by(AttendanceRecord.check_in_time.desc(), AttendanceRecord.id.desc())
        )
        return list(result.scalars().all())
