"""Pydantic schemas for the health check."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    db: bool
    version: str
