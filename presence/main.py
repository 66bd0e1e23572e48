"""
QR presence service: application entry point.

This is the **only** file that assembles the app.  Business logic lives in
``services/``; ``api/`` only translates HTTP to service calls.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import select

from presence.api.v1.api import api_router
from presence.core.cipher import TokenCipher
from presence.core.clock import Clock, utcnow
from presence.core.config import settings
from presence.core.exceptions import register_exception_handlers
from presence.core.limiter import limiter
from presence.core.security import get_password_hash
from presence.db.session import Database
from presence.models.user import User

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_admin(database: Database) -> None:
    """Create the first admin account if it does not exist yet."""
    async with database.session_factory() as session:
        result = await session.execute(
            select(User).where(User.email == settings.FIRST_ADMIN_EMAIL)
        )
        if result.scalar_one_or_none() is not None:
            return
        session.add(
            User(
                email=settings.FIRST_ADMIN_EMAIL,
                hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                full_name="System Administrator",
                role="admin",
            )
        )
        await session.commit()
        logger.info(
            "Default admin created: %s (password: <redacted>)",
            settings.FIRST_ADMIN_EMAIL,
        )


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    database: Database = app.state.database
    await database.create_all()
    logger.info("Database tables initialised")
    await seed_admin(database)

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await database.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app(database: Database | None = None, clock: Clock | None = None) -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Rolling QR presence tokens and check-in/check-out attendance",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.state.database = database or Database(settings.DATABASE_URL)
    application.state.cipher = TokenCipher(settings.ENCRYPTION_KEY)
    application.state.clock = clock or utcnow

    # Rate limiting (login, refresh, public check-in)
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    application.include_router(api_router, prefix=settings.API_V1_PREFIX)
    return application


app = create_app()
