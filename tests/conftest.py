import os
import tempfile
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import game_settings
from app.database import get_db
from app.main import app
from app.models.base import Base
from app.models.building import Building, BuildingType
from app.models.player import Nation, Player
from app.models.plot import Plot, ResourceType
from app.services.plot_service import create_plot

NOW = datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture
async def db_engine():
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)
    test_db_url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_async_engine(test_db_url, connect_args={"check_same_thread": False})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Factory for sweeps, which open one session per entity."""
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client() -> AsyncClient:
    """HTTP client that does NOT override the DB (for endpoints that don't need DB)."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_client(db_session: AsyncSession) -> AsyncClient:
    """HTTP client with DB dependency overridden to use the test SQLite DB."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def restore_game_settings():
    original = game_settings.current
    yield
    game_settings._current = original


@pytest.fixture
def make_plot(db_session: AsyncSession):
    """Create a player with a plot whose timers start at NOW.

    Keyword arguments beyond the player fields are set on the plot, and
    ``buildings`` lists operational building types to add.
    """
    counter = {"n": 0}

    async def _make(
        nation: Nation = Nation.union,
        specialization: ResourceType = ResourceType.manpower,
        is_ai: bool = False,
        buildings: list[BuildingType] | None = None,
        **plot_fields,
    ) -> Plot:
        counter["n"] += 1
        n = counter["n"]
        player = Player(
            email=f"player{n}@example.com",
            username=f"player{n}",
            hashed_password="x",
            nation=nation,
            is_ai=is_ai,
        )
        db_session.add(player)
        await db_session.flush()
        plot = await create_plot(db_session, player, nation, specialization=specialization)
        plot.last_resource_update = NOW
        plot.last_population_update = NOW
        for field, value in plot_fields.items():
            setattr(plot, field, value)
        for building_type in buildings or []:
            db_session.add(Building(
                plot_id=plot.id,
                type=building_type,
                name=building_type.value.title(),
                level=1,
                is_under_construction=False,
            ))
        await db_session.commit()
        return plot

    return _make
