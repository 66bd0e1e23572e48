"""
Presence token store: issue, look up and consume single-use QR tokens.

``consume`` is the one hard concurrency contract here: it is a single
conditional UPDATE, so of any number of racing callers exactly one sees
``True``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from presence.models.presence_token import PresenceToken

logger = logging.getLogger(__name__)


class PresenceTokenStore:
    async def issue(
        self,
        db: AsyncSession,
        raw_value: str,
        cipher_text: str,
        site_id: str,
        ttl: timedelta,
        now: datetime,
    ) -> PresenceToken:
        token = PresenceToken(
            raw_value=raw_value,
            cipher_text=cipher_text,
            site_id=site_id,
            issued_at=now,
            expires_at=now + ttl,
            used=False,
        )
        db.add(token)
        await db.commit()
        await db.refresh(token)
        return token

    async def lookup_by_raw_value(
        self, db: AsyncSession, raw_value: str
    ) -> PresenceToken | None:
        result = await db.execute(
            select(PresenceToken).where(PresenceToken.raw_value == raw_value)
        )
        return result.scalar_one_or_none()

    async def consume(self, db: AsyncSession, token_id: int, now: datetime) -> bool:
        """Mark the token used; ``False`` means somebody else already did."""
        result = await db.execute(
            update(PresenceToken)
            .where(PresenceToken.id == token_id, PresenceToken.used.is_(False))
            .values(used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount == 1

    async def purge_expired(self, db: AsyncSession, older_than: datetime) -> int:
        """Delete tokens that expired before ``older_than``; returns the count."""
        result = await db.execute(
            delete(PresenceToken)
            .where(PresenceToken.expires_at < older_than)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        logger.info("Purged %d presence tokens expired before %s", result.rowcount, older_than)
        return result.rowcount
