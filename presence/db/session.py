"""
Async SQLAlchemy engine & session factory.

The engine lives inside a :class:`Database` handle that the app factory
creates and parks on ``app.state``; nothing here is a module-level global,
so tests can build as many isolated databases as they like.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from presence.db.base import Base


class Database:
    def __init__(self, url: str, **engine_kwargs: Any) -> None:
        engine_args: dict[str, Any] = {
            "echo": False,
            "pool_pre_ping": True,
        }
        if "postgresql" in url:
            engine_args.update(
                {
                    "pool_size": 20,
                    "max_overflow": 10,
                    "pool_recycle": 300,
                }
            )
        engine_args.update(engine_kwargs)

        self.url = url
        self.engine = create_async_engine(url, **engine_args)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        # models must be imported so the metadata knows every table
        from presence.models import (  # noqa: F401
            attendance,
            employee,
            holiday,
            office_settings,
            presence_token,
            user,
        )

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
