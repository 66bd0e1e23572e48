"""
AttendanceRecord model: one continuous presence interval of one employee.

``work_day`` is the calendar date of the check-in in the record's own site
(``site_id``).  The partial unique index guarantees at most one OPEN record
per employee per work day, whatever the interleaving of concurrent scans.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (Boolean, Column, Date, DateTime, Float, ForeignKey,
                        Index, Integer, String, text)
from sqlalchemy.orm import relationship

from presence.db.base import Base

STATUS_OPEN = "OPEN"
STATUS_CLOSED = "CLOSED"

SOURCE_QR = "QR"
SOURCE_MANUAL = "MANUAL"


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        Index("ix_attendance_employee_day", "employee_id", "work_day"),
        Index(
            "uq_attendance_open_per_day",
            "employee_id",
            "work_day",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'"),
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    # office whose clock and punctuality rules apply to this record
    site_id: str = Column(  # type: ignore[assignment]
        String(50), nullable=False, default="default", server_default="default", index=True
    )
    work_day: date = Column(Date, nullable=False, index=True)  # type: ignore[assignment]
    check_in_time: datetime = Column(DateTime(timezone=True), nullable=False, index=True)  # type: ignore[assignment]
    check_out_time: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    status: str = Column(String(10), nullable=False, default=STATUS_OPEN)  # type: ignore[assignment]
    # OPEN | CLOSED
    is_half_day: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    source: str = Column(String(10), nullable=False, default=SOURCE_QR)  # type: ignore[assignment]
    # QR | MANUAL

    latitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    longitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    check_out_latitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    check_out_longitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    device_id: str | None = Column(String(128), nullable=True)  # type: ignore[assignment]
    notes: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]

    corrected_by: int | None = Column(Integer, ForeignKey("users.id"), nullable=True)  # type: ignore[assignment]
    corrected_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    employee = relationship("Employee", back_populates="attendance_records")
