# tests/conftest.py
# Shared fixtures: an in-memory store with a controllable clock, and the
# store / history / hub / service objects wired the same way AppContext does.

import pytest
from fastapi.testclient import TestClient

from clipshare.config import Settings
from clipshare.main_fastapi import create_app
from clipshare.realtime.hub import RoomHub
from clipshare.services.clipboard_service import ClipboardService
from clipshare.store.entries import EntryStore
from clipshare.store.history import HistoryIndex
from clipshare.store.memory_backend import MemoryBackend
from clipshare.store.resilience import CircuitBreaker, StoreGuard
from fakes import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return MemoryBackend(clock=clock)


@pytest.fixture
def guard(clock):
    breaker = CircuitBreaker("test-store", failure_threshold=2, recovery_timeout=10, clock=clock)
    return StoreGuard(breaker, timeout=1.0)


@pytest.fixture
def entries(backend, guard):
    return EntryStore(backend, guard, ttl_seconds=86400, viewer_ttl_seconds=3600)


@pytest.fixture
def history(backend, guard, entries):
    return HistoryIndex(backend, guard, entries, ttl_seconds=30 * 86400, max_items=100)


@pytest.fixture
def hub(entries):
    return RoomHub(entries)


@pytest.fixture
def service(backend, guard, entries, history, hub):
    return ClipboardService(backend, guard, entries, history, hub)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        STORE_BACKEND="memory",
        STORE_EVENTS_ENABLED=False,
        TRACING_ENABLED=False,
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
