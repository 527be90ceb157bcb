from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from src.api.deps import get_db_session
from src.api.main import app
from src.core.config import get_settings
from src.infrastructure.db.base import Base
from src.infrastructure.db.session import build_engine

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


async def _create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture()
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = build_engine(TEST_DATABASE_URL)
    await _create_schema(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as db_session:
        yield db_session


@pytest.fixture()
def test_client() -> Iterator[TestClient]:
    engine = build_engine(TEST_DATABASE_URL)
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async def override_db_session() -> AsyncIterator[AsyncSession]:
        async with factory() as db_session:
            yield db_session

    app.dependency_overrides[get_db_session] = override_db_session
    with TestClient(app) as client:
        # Schema setup runs on the client's own loop, the same one the routes use
        client.portal.call(_create_schema, engine)
        client.session_factory = factory  # type: ignore[attr-defined]
        yield client
        client.portal.call(engine.dispose)
    app.dependency_overrides.pop(get_db_session, None)


@pytest.fixture(autouse=True)
def _no_llm_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests offline: writing scores degrade unless a test injects a client."""
    monkeypatch.setattr(get_settings(), "llm_api_key", "")
