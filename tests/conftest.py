"""
Shared test fixtures for the QR presence test suite.

Every test gets its own file-backed SQLite database (aiosqlite) so that
concurrent sessions really are separate connections, and a frozen clock the
test can move by hand.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-session-jwts-0123456789"
os.environ["ENCRYPTION_KEY"] = "test-qr-encryption-key-32-bytes!"
os.environ["PUBLIC_BASE_URL"] = "https://presence.test"
os.environ["OFFICE_TIMEZONE_OFFSET"] = "+05:30"
os.environ["ALLOW_REENTRY"] = "true"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

from presence.core.cipher import TokenCipher
from presence.core.config import settings
from presence.core.security import create_access_token
from presence.db.session import Database
from presence.main import create_app
from presence.models.employee import Employee
from presence.models.user import User

IST = timezone(timedelta(hours=5, minutes=30))


def ist(year: int, month: int, day: int, hour: int, minute: int, second: int = 0) -> datetime:
    """A wall-clock time at the default office, as an aware UTC instant."""
    return datetime(year, month, day, hour, minute, second, tzinfo=IST).astimezone(timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture
def clock() -> FrozenClock:
    # 09:50 at the office
    return FrozenClock(ist(2026, 10, 19, 9, 50))


@pytest.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'presence.db'}", poolclass=NullPool)
    await db.create_all()
    yield db
    await db.drop_all()
    await db.dispose()


@pytest.fixture
def app(database: Database, clock: FrozenClock):
    return create_app(database=database, clock=clock)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def cipher() -> TokenCipher:
    return TokenCipher(settings.ENCRYPTION_KEY)


# ── Data helpers ────────────────────────────────────────────────────
@pytest.fixture
def make_user(database: Database):
    async def _make(role: str = "employee", email: str | None = None) -> User:
        async with database.session_factory() as session:
            user = User(
                email=email or f"{role}-{os.urandom(4).hex()}@example.com",
                # never used to log in; auth tests hash their own
                hashed_password="!",
                full_name=role.title(),
                role=role,
                is_active=True,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _make


@pytest.fixture
def make_employee(database: Database):
    async def _make(
        code: str = "EMP-001", name: str = "Asha Rao", user_id: int | None = None
    ) -> Employee:
        async with database.session_factory() as session:
            employee = Employee(name=name, employee_code=code, user_id=user_id, is_active=True)
            session.add(employee)
            await session.commit()
            await session.refresh(employee)
            return employee

    return _make


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
async def admin_headers(make_user) -> dict[str, str]:
    return auth_headers(await make_user("admin"))


@pytest.fixture
async def hr_headers(make_user) -> dict[str, str]:
    return auth_headers(await make_user("hr"))


@pytest.fixture
async def kiosk_headers(make_user) -> dict[str, str]:
    return auth_headers(await make_user("kiosk"))
