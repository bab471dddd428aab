import asyncio
import os

# Settings are cached on first import, so the environment goes first
WRITE_KEY = "test-write-key"
PUBLIC_KEY = "test-public-key"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["API_KEY"] = WRITE_KEY
os.environ["PUBLIC_API_KEY"] = PUBLIC_KEY
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["TRANSLATION_API_KEY"] = ""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from mvdb.client.api_client import CatalogClient
from mvdb.client.config import ProjectConfig, ProjectConfigStore
from mvdb.db.database import get_db, init_db
from mvdb.main import app
from mvdb.services.kv_store import KVStore

WRITE_HEADERS = {"Authorization": f"Bearer {WRITE_KEY}"}


def make_engine(path):
    # NullPool: no connection outlives the event loop that opened it
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


def session_override(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    return override_get_db


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def write_headers():
    return dict(WRITE_HEADERS)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "catalog.db"


@pytest.fixture
async def session(db_path):
    engine = make_engine(db_path)
    await init_db(bind=engine)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
async def store(session):
    return KVStore(session)


@pytest.fixture
def client(db_path):
    engine = make_engine(db_path)
    asyncio.run(init_db(bind=engine))
    app.dependency_overrides[get_db] = session_override(engine)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
async def catalog_client(db_path):
    engine = make_engine(db_path)
    await init_db(bind=engine)
    app.dependency_overrides[get_db] = session_override(engine)

    config_store = ProjectConfigStore(
        ProjectConfig(project_id="test", anon_key=WRITE_KEY, function_url="http://testserver/api/v1")
    )
    catalog = CatalogClient(config_store, transport=httpx.ASGITransport(app=app))
    yield catalog

    await catalog.close()
    app.dependency_overrides.clear()
    await engine.dispose()
