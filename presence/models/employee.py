"""
Employee model: the identity a presence event is recorded against.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from presence.db.base import Base


class Employee(Base):
    __tablename__ = "employees"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    employee_code: str = Column(String(64), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    email: str | None = Column(String(320), nullable=True)  # type: ignore[assignment]
    department: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    position: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    # login account used by the session-based check-in flow
    user_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id"), unique=True, nullable=True
    )
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    attendance_records = relationship(
        "AttendanceRecord",
        back_populates="employee",
        order_by="AttendanceRecord.check_in_time.desc()",
    )
