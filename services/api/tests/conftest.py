"""Shared fixtures for the Party Mode API tests."""
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from shade.config import Settings, get_settings
from shade.db.connection import init_db
from shade.dependencies import get_storage, set_storage
from shade.main import create_app
from shade.services.party import PartyService
from shade.storage import InMemoryStorage, SQLStorage


ADMIN_PASSWORD = "let-me-in"


@pytest.fixture
def settings():
    """Settings with defaults, isolated from any local .env file."""
    return Settings(_env_file=None, admin_password=ADMIN_PASSWORD)


@pytest.fixture
def admin_headers():
    return {"password": ADMIN_PASSWORD}


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def party(storage, settings):
    return PartyService(storage, settings)


@pytest.fixture
async def sql_storage(tmp_path):
    """SQLStorage backed by a throwaway SQLite file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'party.db'}")
    await init_db(engine)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    yield SQLStorage(factory)
    await engine.dispose()


@pytest.fixture
async def client(storage, settings):
    """HTTP client talking to the app in-process, backed by in-memory storage."""
    app = create_app()
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_settings] = lambda: settings
    set_storage(storage)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    set_storage(None)


@pytest.fixture
def play_round(party):
    """Start a round, submit (player_id, name, score, time) tuples and end it."""
    async def _play(room_id, scores):
        await party.start_round(room_id)
        for player_id, name, score, time_taken in scores:
            await party.submit_score(room_id, player_id, name, score, time_taken)
        return await party.end_round(room_id)

    return _play
