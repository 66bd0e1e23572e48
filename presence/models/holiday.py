"""
HolidayCalendar model: the leave days of one calendar month.

One row per (month, year).  ``leave_days`` holds day-of-month numbers, e.g.
``[2, 15, 31]``; the row is replaced wholesale on every save.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, UniqueConstraint

from presence.db.base import Base


class HolidayCalendar(Base):
    __tablename__ = "holiday_calendars"
    __table_args__ = (UniqueConstraint("month", "year", name="uq_holiday_month_year"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    month: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    year: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    leave_days: list[int] = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    updated_by: int | None = Column(Integer, ForeignKey("users.id"), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
