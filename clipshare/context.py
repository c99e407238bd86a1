# clipshare/context.py
# Owns every long-lived object: store backend, guard, hub, relay.
# Created in the FastAPI lifespan, reached by handlers through app.state.

from __future__ import annotations

import logging
from typing import Optional

from clipshare.config import Settings
from clipshare.realtime.hub import RoomHub
from clipshare.realtime.relay import StoreEventRelay
from clipshare.services.clipboard_service import ClipboardService
from clipshare.store.backend import StoreBackend
from clipshare.store.entries import EntryStore
from clipshare.store.history import HistoryIndex
from clipshare.store.memory_backend import MemoryBackend
from clipshare.store.redis_backend import RedisBackend
from clipshare.store.resilience import CircuitBreaker, StoreGuard, retry_with_backoff

logger = logging.getLogger(__name__)


def build_backend(settings: Settings) -> StoreBackend:
    if settings.STORE_BACKEND == "memory":
        return MemoryBackend()
    return RedisBackend(settings.REDIS_URL, socket_timeout=settings.STORE_TIMEOUT)


class AppContext:
    """Wires the store, history, hub and service for one process."""

    def __init__(self, settings: Settings, backend: Optional[StoreBackend] = None):
        self.settings = settings
        self.backend = backend or build_backend(settings)
        self.breaker = CircuitBreaker(
            name=f"store:{self.backend.name}",
            failure_threshold=settings.STORE_FAILURE_THRESHOLD,
            recovery_timeout=settings.STORE_RECOVERY_TIMEOUT,
        )
        self.guard = StoreGuard(
            self.breaker,
            timeout=settings.STORE_TIMEOUT,
            unavailable_errors=self.backend.unavailable_errors,
        )
        self.entries = EntryStore(
            self.backend,
            self.guard,
            ttl_seconds=settings.DATA_EXPIRY,
            viewer_ttl_seconds=settings.VIEWER_EXPIRY,
            code_length=settings.CODE_LENGTH,
            max_attempts=settings.CODE_MAX_ATTEMPTS,
        )
        self.history = HistoryIndex(
            self.backend,
            self.guard,
            self.entries,
            ttl_seconds=settings.HISTORY_EXPIRY,
            max_items=settings.HISTORY_MAX_ITEMS,
            preview_length=settings.PREVIEW_LENGTH,
        )
        self.hub = RoomHub(self.entries)
        self.relay = StoreEventRelay(self.backend, self.hub)
        self.service = ClipboardService(
            self.backend, self.guard, self.entries, self.history, self.hub
        )

    async def start(self) -> None:
        """Connect to the store; keep serving (with 503s) if it is down."""
        connect = retry_with_backoff(
            max_retries=self.settings.STORE_CONNECT_RETRIES,
            base_delay=0.5,
            max_delay=5.0,
            exceptions=self.backend.unavailable_errors,
        )(self.backend.connect)
        try:
            await connect()
        except self.backend.unavailable_errors as e:
            logger.error(
                f"Store unreachable at startup ({type(e).__name__}: {e}); "
                f"serving 503 until it recovers"
            )
            self.breaker.trip()

        if self.settings.STORE_EVENTS_ENABLED:
            self.relay.start()
        logger.info(f"Context started with {self.backend.name} backend")

    async def close(self) -> None:
        await self.relay.stop()
        self.hub.close()
        await self.backend.close()
        logger.info("Context closed")
