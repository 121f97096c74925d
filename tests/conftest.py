"""Fixtures communes / Shared fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import routezy.models  # noqa: F401
from routezy.database import Base, get_db
from routezy.main import app
from routezy.models.fleet_vehicle import FleetVehicle, VehicleType
from routezy.models.user import AppRole, Profile, User, UserRole
from routezy.rate_limit import limiter
from routezy.utils.auth import create_access_token, hash_password
from routezy.utils.seed import seed_all

# Pas de limite de debit en test / No rate limiting under test
limiter.enabled = False

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await seed_all(session)
    return factory


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


async def create_user(session_factory, email: str, *roles: AppRole, full_name: str | None = None) -> User:
    async with session_factory() as session:
        user = User(email=email, hashed_password=PASSWORD_HASH, is_active=True)
        user.roles = [UserRole(role=r) for r in roles]
        user.profile = Profile(full_name=full_name)
        session.add(user)
        await session.commit()
        return user


@pytest.fixture
async def manager(session_factory):
    return await create_user(session_factory, "manager@routezy.app", AppRole.MANAGER, full_name="Meera Manager")


@pytest.fixture
async def sender(session_factory):
    return await create_user(session_factory, "sender@routezy.app", AppRole.SENDER, full_name="Sanjay Sender")


@pytest.fixture
async def driver(session_factory):
    return await create_user(session_factory, "driver@routezy.app", AppRole.DRIVER, full_name="Divya Driver")


@pytest.fixture
async def truck(session_factory, driver):
    """Camion diesel affecte au chauffeur / Diesel truck assigned to the driver."""
    async with session_factory() as session:
        vehicle = FleetVehicle(
            vehicle_number="MH12AB1234",
            vehicle_type=VehicleType.TRUCK,
            fuel_type="DIESEL",
            current_driver_id=driver.id,
        )
        session.add(vehicle)
        await session.commit()
        return vehicle
