"""
Global test configuration and fixtures for the session layer

This module provides shared fixtures: a controllable clock, in-memory and
SQLite-backed session stores, settings pointing at a temporary database, and
an API client wired to those settings.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from httpsession.api.sessions import get_settings
from httpsession.core.config import ConnectionProfile, Settings
from httpsession.core.limiter import limiter
from httpsession.main import app
from httpsession.stores import InMemorySessionStore, RelationalSessionStore
from httpsession.stores.registry import dispose_engines, reset_memory_store


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Callable returning a settable Unix time"""

    def __init__(self, now: int = 1_700_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture(scope="function")
def clock():
    return FakeClock()


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def sqlite_profile(tmp_path: Path) -> ConnectionProfile:
    """Connection profile for a throwaway SQLite file"""
    return ConnectionProfile(driver="sqlite", database=str(tmp_path / "sessions.db"))


@pytest.fixture(scope="function")
def memory_store(clock):
    store = InMemorySessionStore(clock=clock)
    store.open()
    yield store
    store.close()


@pytest.fixture(scope="function")
def relational_store(sqlite_profile, clock):
    store = RelationalSessionStore(profile=sqlite_profile, clock=clock)
    store.open()
    yield store
    store.close()


@pytest.fixture(scope="function", params=["memory", "relational"])
def store(request):
    """Every open backend in turn, for contract tests"""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture(scope="function", autouse=True)
def clean_shared_backends():
    """Isolate tests sharing the process-wide in-memory backend and engines"""
    reset_memory_store()
    yield
    reset_memory_store()
    dispose_engines()


# ============================================================================
# Settings and Application Client Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def test_settings(sqlite_profile) -> Settings:
    """Settings selecting the relational backend on a temporary database"""
    return Settings(
        session_store_backend="relational",
        session_connection="default",
        connection_profiles={"default": sqlite_profile},
        session_gc_maxlifetime=1440,
    )


@pytest.fixture(scope="function")
def reset_limiter():
    """Clear rate limit counters so tests don't affect each other"""
    if hasattr(limiter, "_storage"):
        limiter._storage.storage.clear()
    yield
    if hasattr(limiter, "_storage"):
        limiter._storage.storage.clear()


@pytest.fixture(scope="function")
def client(test_settings, reset_limiter):
    """Create FastAPI test client bound to the test settings"""
    app.dependency_overrides[get_settings] = lambda: test_settings

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# Test Markers and Configuration
# ============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "unit: fast tests without external services"
    )
    config.addinivalue_line(
        "markers", "integration: tests exercising the HTTP API"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on file location"""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
