# tests/integration/conftest.py
# Pytest fixtures to start Redis via TestContainers.
# - Provides the connection URL via a fixture and REDIS_URL for the app under test.
# - Skips the whole directory when Docker is not reachable.
# - Cleans up the container after the test session.

import os
from typing import Iterator

import pytest  # type: ignore[import-not-found]
import pytest_asyncio
from redis.asyncio import from_url as redis_from_url  # type: ignore

from clipshare.store.redis_backend import RedisBackend
from containers import start_redis_or_skip


@pytest.fixture(scope="session")
def redis_url() -> Iterator[str]:
    container = start_redis_or_skip("redis:7-alpine")
    try:
        host = container.get_container_host_ip()
        port = container.get_exposed_port(6379)
        yield f"redis://{host}:{port}/0"
    finally:
        container.stop()


@pytest.fixture(scope="session", autouse=True)
def inject_env(redis_url: str):
    """Point the app under test at the container instead of local services."""
    old_redis = os.environ.get("REDIS_URL")
    os.environ["REDIS_URL"] = redis_url
    yield
    if old_redis is None:
        os.environ.pop("REDIS_URL", None)
    else:
        os.environ["REDIS_URL"] = old_redis


@pytest_asyncio.fixture
async def redis_client(redis_url: str):
    client = redis_from_url(redis_url, decode_responses=True)
    try:
        yield client
    finally:
        # Ensure DB is clean per test
        await client.flushdb()
        await client.aclose()


@pytest_asyncio.fixture
async def redis_backend(redis_url: str, redis_client):
    backend = RedisBackend(redis_url, socket_timeout=2.0)
    await backend.connect()
    try:
        yield backend
    finally:
        await backend.close()
