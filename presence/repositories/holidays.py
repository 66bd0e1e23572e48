"""
Holiday calendar repository: one leave-day list per month, saved by upsert.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from presence.models.holiday import HolidayCalendar


class HolidayCalendarRepository:
    async def get(self, db: AsyncSession, month: int, year: int) -> HolidayCalendar | None:
        result = await db.execute(
            select(HolidayCalendar).where(
                HolidayCalendar.month == month, HolidayCalendar.year == year
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        db: AsyncSession,
        month: int,
        year: int,
        leave_days: list[int],
        by_user: int,
        now: datetime,
    ) -> HolidayCalendar:
        """Replace the month's leave days, creating the row on first save."""
        entry = await self.get(db, month, year)
        if entry is None:
            entry = HolidayCalendar(month=month, year=year, created_at=now)
            db.add(entry)
        entry.leave_days = leave_days
        entry.updated_by = by_user
        entry.updated_at = now
        try:
            await db.commit()
        except IntegrityError:
            # another request created the month first
            await db.rollback()
            entry = await self.get(db, month, year)
            if entry is None:
                raise
            entry.leave_days = leave_days
            entry.updated_by = by_user
            entry.updated_at = now
            await db.commit()
        await db.refresh(entry)
        return entry
