"""
Office settings endpoints: admin-configurable punctuality rules per site.

GET returns a site's row, creating it from the environment defaults on first
read; PUT applies a partial update.  Changes take effect on the next scan and
on every listing, since bands are computed at read time.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from presence.api.v1.deps import get_db, require_admin
from presence.core.config import settings as app_settings
from presence.models.office_settings import OfficeSettings
from presence.models.user import User
from presence.repositories.office_settings import OfficeSettingsRepository
from presence.schemas.settings import OfficeSettingsRead, OfficeSettingsUpdate

router = APIRouter(tags=["settings"])
logger = logging.getLogger(__name__)

_offices = OfficeSettingsRepository()


@router.get("/settings", response_model=OfficeSettingsRead)
async def get_settings(
    site_id: str = Query(default=app_settings.DEFAULT_SITE_ID, max_length=50),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> OfficeSettings:
    return await _offices.get_or_create(db, site_id)


@router.put("/settings", response_model=OfficeSettingsRead)
async def update_settings(
    body: OfficeSettingsUpdate,
    site_id: str = Query(default=app_settings.DEFAULT_SITE_ID, max_length=50),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> OfficeSettings:
    changes = body.model_dump(exclude_unset=True)
    office = await _offices.update(db, site_id, changes)
    logger.info("Office settings for site %s updated: %s", site_id, changes)
    return office
