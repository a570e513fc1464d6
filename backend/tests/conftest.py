"""Shared fixtures: in-memory services, an ASGI client and image payloads."""

from __future__ import annotations

import io
from collections.abc import AsyncIterator, Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from furnicraft.analysis.analyzers import Analyzer, HeuristicAnalyzer
from furnicraft.config import Settings
from furnicraft.services import Services, build_services
from furnicraft.store.memory import InMemoryDesignStore
from furnicraft.utils.storage import InMemoryImageStorage


def make_image_bytes(fmt: str = "PNG", size: tuple[int, int] = (64, 48)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, "saddlebrown").save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return make_image_bytes


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        use_database=False,
        analysis_backend="heuristic",
        flowise_api_url="https://flowise.test",
        flowise_chatflow_id="chatflow-123",
        poll_initial_delay_seconds=0.0,
        poll_interval_seconds=0.0,
        poll_max_attempts=3,
        max_upload_bytes=1024 * 1024,
        environment="development",
    )


@pytest.fixture
def store() -> InMemoryDesignStore:
    return InMemoryDesignStore()


@pytest.fixture
def storage() -> InMemoryImageStorage:
    return InMemoryImageStorage()


@pytest.fixture
def flowise_handler() -> Callable[[httpx.Request], httpx.Response]:
    """Default Flowise upstream: 404 for everything. Override per test."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="not mocked")

    return handler


@pytest.fixture
def analyzer() -> Analyzer:
    return HeuristicAnalyzer(seed=42)


@pytest.fixture
async def services(
    test_settings: Settings,
    store: InMemoryDesignStore,
    storage: InMemoryImageStorage,
    analyzer: Analyzer,
    flowise_handler: Callable[[httpx.Request], httpx.Response],
) -> AsyncIterator[Services]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(flowise_handler))
    svc = build_services(
        test_settings, store=store, storage=storage, analyzer=analyzer, http=http
    )
    yield svc
    await svc.close()


@pytest.fixture
async def client(services: Services) -> AsyncIterator[AsyncClient]:
    """ASGI client against the app with in-memory services installed."""
    from furnicraft.main import app

    app.state.services = services
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.state.services = None
