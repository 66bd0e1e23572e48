"""
Office settings repository: singleton-per-site rows.

If no row exists for a site, one is created with the environment defaults on
first read.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from presence.core.config import settings
from presence.models.office_settings import OfficeSettings

logger = logging.getLogger(__name__)


def _defaults(site_id: str) -> OfficeSettings:
    return OfficeSettings(
        site_id=site_id,
        office_name="Default Office",
        timezone_offset=settings.OFFICE_TIMEZONE_OFFSET,
        qr_rotation_seconds=settings.QR_ROTATION_SECONDS,
        office_start=settings.OFFICE_START,
        grace_minutes=settings.GRACE_MINUTES,
        exact_start_band=settings.EXACT_START_BAND,
        departure_grace_start=settings.DEPARTURE_GRACE_START,
        departure_on_time_start=settings.DEPARTURE_ON_TIME_START,
        departure_appreciated_start=settings.DEPARTURE_APPRECIATED_START,
        allow_reentry=settings.ALLOW_REENTRY,
    )


class OfficeSettingsRepository:
    async def get_or_create(self, db: AsyncSession, site_id: str) -> OfficeSettings:
        result = await db.execute(
            select(OfficeSettings).where(OfficeSettings.site_id == site_id)
        )
        office = result.scalar_one_or_none()
        if office is not None:
            return office

        office = _defaults(site_id)
        db.add(office)
        try:
            await db.commit()
        except IntegrityError:
            # another request created it first
            await db.rollback()
            result = await db.execute(
                select(OfficeSettings).where(OfficeSettings.site_id == site_id)
            )
            return result.scalar_one()
        await db.refresh(office)
        logger.info("Created default office settings for site %s", site_id)
        return office

    async def update(
        self, db: AsyncSession, site_id: str, changes: dict[str, object]
    ) -> OfficeSettings:
        office = await self.get_or_create(db, site_id)
        for field, value in changes.items():
            setattr(office, field, value)
        await db.commit()
        await db.refresh(office)
        return office
