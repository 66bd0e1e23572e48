"""
Health check: public, used by load balancers and the stress script.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from presence.api.v1.deps import get_db
from presence.core.config import settings
from presence.schemas.system import HealthResponse

router = APIRouter(tags=["system"])
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Public health check: DB connectivity."""
    result = HealthResponse(db=False, version=settings.VERSION)
    try:
        await db.execute(select(1))
        result.db = True
    except SQLAlchemyError as e:
        logger.error("Health check DB failure: %s", e)
    return result
