"""
Presence token issuer: mints the rolling QR token for a site.

A display surface calls ``rotate`` every ``qr_rotation_seconds``; each call
produces a fresh encrypted token valid for exactly one rotation window, plus
the scan URL the QR code should carry.
"""

from __future__ import annotations

import base64
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from io import BytesIO
from urllib.parse import parse_qs, quote, urlsplit

import qrcode
from sqlalchemy.ext.asyncio import AsyncSession

from presence.core.cipher import TokenCipher
from presence.core.clock import Clock, utcnow
from presence.core.config import settings
from presence.repositories.office_settings import OfficeSettingsRepository
from presence.repositories.presence_tokens import PresenceTokenStore

logger = logging.getLogger(__name__)

RANDOM_BYTES = 12  # 96 bits on top of the timestamp prefix


@dataclass(frozen=True)
class IssuedToken:
    cipher_text: str
    raw_value: str
    expires_in: int
    expires_at: datetime
    scan_url: str


def new_raw_value(now: datetime) -> str:
    return f"{int(now.timestamp() * 1000)}-{secrets.token_hex(RANDOM_BYTES)}"


def build_scan_url(cipher_text: str, base_url: str | None = None, path: str | None = None) -> str:
    base = (base_url or settings.PUBLIC_BASE_URL).rstrip("/")
    return f"{base}{path or settings.QR_SCAN_PATH}?token={quote(cipher_text, safe='')}"


def token_from_scan_url(scanned: str) -> str | None:
    """Pull the cipher text back out of whatever the scanner read.

    Accepts the full scan URL or a bare ``ivHex:cipherHex`` string.
    """
    scanned = scanned.strip()
    if "token=" not in scanned:
        return scanned or None
    values = parse_qs(urlsplit(scanned).query).get("token")
    return values[0] if values else None


def render_qr_data_url(payload: str) -> str:
    """PNG QR code for ``payload`` as a ``data:`` URL the display can show directly."""
    img = qrcode.make(payload)
    buf = BytesIO()
    img.save(buf)
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


class PresenceTokenIssuer:
    def __init__(
        self,
        cipher: TokenCipher,
        store: PresenceTokenStore | None = None,
        offices: OfficeSettingsRepository | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.cipher = cipher
        self.store = store or PresenceTokenStore()
        self.offices = offices or OfficeSettingsRepository()
        self.clock = clock

    async def rotate(self, db: AsyncSession, site_id: str) -> IssuedToken:
        office = await self.offices.get_or_create(db, site_id)
        ttl_seconds = office.qr_rotation_seconds or settings.QR_ROTATION_SECONDS

        now = self.clock()
        raw_value = new_raw_value(now)
        cipher_text = self.cipher.encrypt(raw_value)

        token = await self.store.issue(
            db,
            raw_value=raw_value,
            cipher_text=cipher_text,
            site_id=site_id,
            ttl=timedelta(seconds=ttl_seconds),
            now=now,
        )
        logger.info("Issued presence token %d for site %s (ttl %ss)", token.id, site_id, ttl_seconds)

        return IssuedToken(
            cipher_text=cipher_text,
            raw_value=raw_value,
            expires_in=ttl_seconds,
            expires_at=now + timedelta(seconds=ttl_seconds),
            scan_url=build_scan_url(cipher_text),
        )
