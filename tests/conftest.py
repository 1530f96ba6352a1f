"""Test configuration and shared fixtures for Moodsticker service tests.

Uses a mocked classifier connector and a manual clock so tests run without
network access and timeouts/TTL/rate limits are deterministic.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from moodsticker_service.config import MoodstickerSettings
from moodsticker_service.services.connector import ConnectorError
from moodsticker_service.services.result_cache import ResultCache


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_settings(**overrides) -> MoodstickerSettings:
    defaults = {
        "cache_path": None,
        "cache_version_path": None,
        "hot_cache_capacity": 100,
        "persisted_cache_capacity": 1000,
        "cache_ttl_days": 7,
        "labels_version": 1,
        "min_request_interval_ms": 10000,
        "session_timeout_ms": 60000,
        "label_store_path": None,
        "allowed_labels_path": None,
        "strict_label_matching": False,
        "llm_base_url": None,
        "llm_api_key": None,
        "service_token": None,
        "precompute_on_startup": False,
    }
    defaults.update(overrides)
    return MoodstickerSettings(**defaults)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


# 3-d toy embeddings: axis 0 ~ joy, axis 1 ~ sadness, axis 2 ~ anger
LABEL_VECTORS = {
    "happy": [1.0, 0.0, 0.0],
    "excited": [0.9, 0.1, 0.0],
    "joy": [0.95, 0.05, 0.0],
    "calm": [0.5, 0.5, 0.0],
    "sad": [0.0, 1.0, 0.0],
    "crying": [0.0, 0.95, 0.05],
    "tired": [0.1, 0.8, 0.1],
    "angry": [0.0, 0.0, 1.0],
    "cat": [0.2, 0.2, 0.2],
}

SAMPLE_LIBRARY = {
    "happy/sunny.png": ["happy", "joy"],
    "normal/cat.png": ["normal", "cat", "calm"],
    "poor/rain.png": ["poor", "sad", "crying"],
    "ill/mad.gif": ["angry"],
}


def _embed(label: str) -> list[float]:
    if label not in LABEL_VECTORS:
        raise ConnectorError(f"unknown label {label!r}")
    return list(LABEL_VECTORS[label])


def make_mock_connector(response: str = "excited, happy"):
    connector = AsyncMock()
    connector.classify = AsyncMock(return_value=response)
    connector.embed = AsyncMock(side_effect=_embed)
    connector.close = AsyncMock()
    return connector


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return _make_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_connector():
    return make_mock_connector()


@pytest.fixture
def cache(clock):
    return ResultCache(clock=clock)


@pytest_asyncio.fixture
async def app_no_services():
    """FastAPI app with no pipeline wired. Services unavailable (503)."""
    from moodsticker_service.main import app

    app.state.settings = _make_settings()
    app.state.cache = None
    app.state.connector = None
    app.state.matcher = None
    app.state.mood_state = None
    app.state.broker = None
    app.state.resolver = None
    app.state.coordinator = None
    yield app


@pytest_asyncio.fixture
async def app_with_services():
    """FastAPI app with the real pipeline and a mocked classifier connector."""
    from moodsticker_service.main import app, build_services

    settings = _make_settings(min_request_interval_ms=0)
    services = build_services(settings, connector=make_mock_connector())
    services["matcher"].load_library(SAMPLE_LIBRARY)

    app.state.settings = settings
    for name, service in services.items():
        setattr(app.state, name, service)
    yield app


@pytest_asyncio.fixture
async def client_no_services(app_no_services):
    """AsyncClient hitting the app with nothing wired."""
    transport = ASGITransport(app=app_no_services)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def client(app_with_services):
    """AsyncClient hitting the app with the pipeline wired."""
    transport = ASGITransport(app=app_with_services)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
