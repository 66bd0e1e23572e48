"""
Office settings model: per-site punctuality rules and QR rotation.

One row per site.  Rows are created on first use from the environment
defaults in ``presence.core.config`` and then edited through the settings API;
the issuer, the state machine and the views all read it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from presence.db.base import Base


class OfficeSettings(Base):
    __tablename__ = "office_settings"

    site_id: str = Column(String(50), primary_key=True)  # type: ignore[assignment]
    office_name: str = Column(String(200), nullable=False, default="Default Office")  # type: ignore[assignment]
    timezone_offset: str = Column(String(6), nullable=False, default="+05:30")  # type: ignore[assignment]
    qr_rotation_seconds: int = Column(Integer, nullable=False, default=30)  # type: ignore[assignment]
    office_start: str = Column(String(5), nullable=False, default="10:00")  # type: ignore[assignment]
    grace_minutes: int = Column(Integer, nullable=False, default=15)  # type: ignore[assignment]
    exact_start_band: str = Column(String(10), nullable=False, default="PERFECT")  # type: ignore[assignment]
    # PERFECT | ON_TIME
    departure_grace_start: str = Column(String(5), nullable=False, default="18:15")  # type: ignore[assignment]
    departure_on_time_start: str = Column(String(5), nullable=False, default="18:25")  # type: ignore[assignment]
    departure_appreciated_start: str = Column(String(5), nullable=False, default="19:00")  # type: ignore[assignment]
    allow_reentry: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
