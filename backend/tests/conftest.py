"""
Centralized Test Configuration.
"""

import itertools
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from backend.app.main import app
from backend.app.core.dependencies import get_notification_dispatcher
from backend.app.core.jwt import create_access_token
from backend.app.db.session import get_db, Base
from backend.app.models.enums import ApprovalStatus, UserRole
from backend.app.models.freight import Freight
from backend.app.models.freight_enums import FreightStatus, PricingType, ServiceCategory
from backend.app.models.tracking_consent import TrackingConsent
from backend.app.models.user import User
from backend.app.services.notification_dispatcher import NotificationDispatcher

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


class RecordingDispatcher(NotificationDispatcher):
    """Keeps dispatched events in memory."""

    def __init__(self):
        self.events = []

    def dispatch(self, event):
        self.events.append(event)

    def types(self):
        return [e.type for e in self.events]


@pytest.fixture
def notifications():
    return RecordingDispatcher()


@pytest.fixture(autouse=True)
def apply_overrides(notifications):
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: notifications
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    return TestingSessionLocal


# Data factories

@pytest.fixture
def make_user():
    counter = itertools.count(1)

    async def _make_user(
        role: UserRole = UserRole.DRIVER,
        approved: bool = True,
        location_enabled: bool = True,
        company_id=None,
        is_active: bool = True,
    ) -> User:
        n = next(counter)
        async with TestingSessionLocal() as session:
            user = User(
                email=f"user{n}@example.com",
                username=f"user{n}",
                role=role,
                approval_status=ApprovalStatus.APPROVED if approved else ApprovalStatus.PENDING,
                location_enabled=location_enabled,
                company_id=company_id,
                is_active=is_active,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_freight(make_user):
    async def _make_freight(producer: User = None, **overrides) -> Freight:
        if producer is None:
            producer = await make_user(role=UserRole.PRODUCER)
        values = {
            "status": FreightStatus.OPEN,
            "required_trucks": 1,
            "accepted_trucks": 0,
            "pricing_type": PricingType.FIXED,
            "price": Decimal("1000.00"),
            "service_category": ServiceCategory.CARGA,
            "origin_city": "Rio Verde",
            "destination_city": "Santos",
        }
        values.update(overrides)
        async with TestingSessionLocal() as session:
            freight = Freight(producer_id=producer.id, **values)
            session.add(freight)
            await session.commit()
            await session.refresh(freight)
        return freight

    return _make_freight


@pytest.fixture
def grant_consent():
    async def _grant_consent(freight: Freight, driver: User) -> None:
        async with TestingSessionLocal() as session:
            session.add(TrackingConsent(freight_id=freight.id, driver_id=driver.id))
            await session.commit()

    return _grant_consent


@pytest.fixture
def ready_driver(make_user, grant_consent):
    """Approved driver with location on and tracking consent for the freight."""
    async def _ready_driver(freight: Freight, role: UserRole = UserRole.DRIVER, company_id=None) -> User:
        driver = await make_user(role=role, company_id=company_id)
        await grant_consent(freight, driver)
        return driver

    return _ready_driver


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        token = create_access_token(
            data={"sub": user.username, "user_id": user.id, "role": user.role.value}
        )
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
