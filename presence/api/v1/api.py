"""
V1 API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from presence.api.v1.endpoints import attendance, auth, employees, settings, system

api_router = APIRouter()

# Auth (login, refresh, accounts)
api_router.include_router(auth.router)

# QR issuing, check-in/out, listings, corrections
api_router.include_router(attendance.router)

# Employee directory
api_router.include_router(employees.router)

# Per-site office settings
api_router.include_router(settings.router)

# Health
api_router.include_router(system.router)
