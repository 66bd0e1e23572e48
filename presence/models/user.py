"""
User model: a login account for staff, kiosks and employees.

Roles gate who may display QR codes (kiosk), read everyone's logs (manager)
and correct attendance (hr).  An employee account is linked to its
:class:`~presence.models.employee.Employee` row through ``Employee.user_id``.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from presence.db.base import Base

CORRECTION_ROLES = ("admin", "hr")


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    full_name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="employee",
        server_default="employee",
    )  # admin | hr | manager | employee | kiosk
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    last_login_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def can_correct_attendance(self) -> bool:
        return self.role in CORRECTION_ROLES
