"""
Pytest configuration and fixtures for compile authority tests.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ.setdefault("TESTING", "true")

from uuid import uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from backend.auth import create_jwt  # noqa: E402
from backend.main import app  # noqa: E402
from backend.models.preview import Project  # noqa: E402
from backend.routes.ws import room_manager  # noqa: E402
from backend.services.project_store import project_store  # noqa: E402

REACT_FILES = {
    "package.json": '{"name": "demo"}',
    "src/App.tsx": 'export default function App() {\n  return (<h1 className="title">Hello</h1>);\n}\n',
    "src/index.css": "body { margin: 0; }",
}


@pytest.fixture(autouse=True)
def clean_state():
    """Fresh in-memory store and rooms for every test."""
    project_store.clear()
    room_manager.clear()
    yield
    project_store.clear()
    room_manager.clear()


@pytest.fixture
def test_user_id() -> str:
    return str(uuid4())


@pytest.fixture
def second_user_id() -> str:
    return str(uuid4())


@pytest.fixture
def token(test_user_id: str) -> str:
    return create_jwt(test_user_id)


@pytest.fixture
def project(test_user_id: str) -> Project:
    """A React project owned by the test user."""
    return project_store.create(test_user_id, REACT_FILES)


@pytest.fixture
def client():
    """Return a synchronous TestClient for WS testing."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client():
    """Async HTTP client against the ASGI app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
