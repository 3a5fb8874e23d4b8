"""
Shared fixtures for BKDocs backend tests.

The app is driven through httpx's ASGITransport with every service
dependency overridden by an in-memory fake, so no database, object
storage or Gemini key is needed.  ASGITransport does not run the
lifespan, which is what would otherwise connect to Postgres.
"""
from __future__ import annotations

import uuid
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.database import get_db
from app.dependencies.services import get_assistant_service, get_catalog, get_gemini_client
from app.main import app
from app.services.gemini_client import GeminiClient
from tests.fakes import FakeCatalog, FakeLLM, FakeStorage, build_assistant

TEST_USER_ID = str(uuid.UUID("11111111-2222-3333-4444-555555555555"))

AUTH_HEADERS = {"X-User-Id": TEST_USER_ID}


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def db_session() -> AsyncMock:
    """Stand-in AsyncSession; only ``execute`` is used by the health check."""
    return AsyncMock()


@pytest_asyncio.fixture
async def client(
    catalog: FakeCatalog,
    llm: FakeLLM,
    storage: FakeStorage,
    db_session: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the catalog, assistant
    and DB dependencies overridden by the per-test fakes.
    """

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_gemini_client] = lambda: GeminiClient(api_key="test-key")
    app.dependency_overrides[get_assistant_service] = lambda: build_assistant(catalog, llm, storage)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
