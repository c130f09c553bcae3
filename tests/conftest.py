from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from agri_rental.main import app
from agri_rental.database import Base, get_db
from agri_rental.api.deps import get_password_hash, create_access_token
from agri_rental.models import User, Equipment, EquipmentCategory
from tests.factories import (
    UserFactory,
    AdminUserFactory,
    EquipmentCategoryFactory,
    EquipmentFactory,
)

TEST_PASSWORD = "testpassword123"  # noqa: S105
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest.fixture
def today() -> date:
    return date.today()


@pytest.fixture
def future(today):
    """``future(n)`` is the date ``n`` days from today."""

    def _future(days: int) -> date:
        return today + timedelta(days=days)

    return _future


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Create test database (SQLite file per test) and tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_maker):
    """Session used by fixtures to seed data."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def service_db(session_maker):
    """Separate session handed to the code under test."""
    async with session_maker() as session:
        yield session


async def _save(session: AsyncSession, obj):
    session.add(obj)
    await session.commit()
    await session.refresh(obj)
    return obj


@pytest_asyncio.fixture
async def farmer(test_db: AsyncSession) -> User:
    return await _save(test_db, User(**UserFactory(hashed_password=TEST_PASSWORD_HASH)))


@pytest_asyncio.fixture
async def other_farmer(test_db: AsyncSession) -> User:
    return await _save(test_db, User(**UserFactory()))


@pytest_asyncio.fixture
async def admin(test_db: AsyncSession) -> User:
    return await _save(test_db, User(**AdminUserFactory(hashed_password=TEST_PASSWORD_HASH)))


@pytest_asyncio.fixture
async def category(test_db: AsyncSession) -> EquipmentCategory:
    return await _save(test_db, EquipmentCategory(**EquipmentCategoryFactory(name="Tractors")))


@pytest_asyncio.fixture
async def equipment(test_db: AsyncSession, category: EquipmentCategory) -> Equipment:
    """Tractor at 1500.00/day with 500.00 delivery and 2000.00 deposit."""
    return await _save(
        test_db,
        Equipment(
            **EquipmentFactory(
                category_id=category.id,
                daily_rate=Decimal("1500.00"),
                delivery_fee=Decimal("500.00"),
                security_deposit=Decimal("2000.00"),
            )
        ),
    )


@pytest_asyncio.fixture
async def client(session_maker):
    """Create test client; each request gets its own session like in production."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def farmer_headers(farmer: User) -> dict:
    return auth_headers(farmer)


@pytest.fixture
def other_farmer_headers(other_farmer: User) -> dict:
    return auth_headers(other_farmer)


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return auth_headers(admin)
