from __future__ import annotations

import pytest

from preview_engine.kernel.types import PreviewSession
from preview_engine.runtime import sync
from preview_engine.runtime.tests.fakes import FakeServer


@pytest.fixture(autouse=True)
def clear_open_channels():
    yield
    sync._open_channels.clear()


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def session() -> PreviewSession:
    return PreviewSession(project_id="proj-1", user_id="user-1")
