"""Pytest configuration and fixtures for staygenie.

HTTP tests run against staygenie.main:app over ASGITransport with the
search pipeline swapped for one built from fakes (no network, no Redis).
"""

from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient

from staygenie.agents.search_pipeline import get_search_pipeline
from staygenie.main import app

from .fakes import build_pipeline


@pytest.fixture
def today() -> date:
    return date(2026, 6, 10)


@pytest.fixture
def pipeline():
    """Pipeline of fakes: three hotels scoring 95, 82, 70."""
    return build_pipeline()


@pytest.fixture
def app_with_pipeline(pipeline):
    app.dependency_overrides[get_search_pipeline] = lambda: pipeline
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app_with_pipeline) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI)."""
    transport = ASGITransport(app=app_with_pipeline, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
