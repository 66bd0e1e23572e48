"""
PresenceToken model: a short-lived, single-use QR credential.

``raw_value`` is what the cipher text decrypts to; the row is found by it.
``used`` flips false → true exactly once through a conditional UPDATE.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from presence.db.base import Base


class PresenceToken(Base):
    __tablename__ = "presence_tokens"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    raw_value: str = Column(String(64), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    cipher_text: str = Column(String(256), nullable=False)  # type: ignore[assignment]
    site_id: str = Column(String(50), nullable=False, index=True)  # type: ignore[assignment]
    issued_at: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    expires_at: datetime = Column(DateTime(timezone=True), nullable=False, index=True)  # type: ignore[assignment]
    used: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    used_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
