# clipshare/services/clipboard_service.py

import time
from typing import Any, Dict, List, Optional

from clipshare.errors import ServiceUnavailableError, ValidationError
from clipshare.models.entry import Entry, HistoryItem
from clipshare.observability.logger import log_info
from clipshare.observability.metrics import CLIPS_CREATED, CLIPS_RETRIEVED, CLIPS_UPDATED
from clipshare.realtime.hub import RoomHub
from clipshare.store.backend import StoreBackend
from clipshare.store.entries import EntryStore
from clipshare.store.history import HistoryIndex
from clipshare.store.resilience import StoreGuard


class ClipboardService:
    """Validates and sequences the client-facing commands.

    Every command fails fast with ServiceUnavailableError while the store
    circuit is open, before any input is looked at.
    """

    def __init__(
        self,
        backend: StoreBackend,
        guard: StoreGuard,
        entries: EntryStore,
        history: HistoryIndex,
        hub: RoomHub,
    ):
        self._backend = backend
        self._guard = guard
        self._entries = entries
        self._history = history
        self._hub = hub

    async def create(self, content: Optional[str], client_id: Optional[str] = None) -> str:
        self._guard.ensure_available()
        if not content:
            raise ValidationError("Content is required")

        code = await self._entries.create(content, owner_id=client_id or None)
        if client_id:
            await self._history.append(client_id, code)

        CLIPS_CREATED.inc()
        log_info(f"Clipboard created code={code} owned={bool(client_id)}")
        return code

    async def fetch(self, code: str) -> Entry:
        self._guard.ensure_available()
        entry = await self._entries.get(code)
        CLIPS_RETRIEVED.inc()
        await self._hub.notify_retrieved(code, entry.retrieval_count)
        return entry

    async def list_history(self, client_id: Optional[str]) -> List[HistoryItem]:
        self._guard.ensure_available()
        if not client_id:
            return []
        return await self._history.items(client_id)

    async def update(self, code: str, content: Optional[str], client_id: Optional[str]) -> None:
        self._guard.ensure_available()
        if not content:
            raise ValidationError("Content is required")
        if not client_id:
            raise ValidationError("User ID is required")

        remaining = await self._entries.update(code, content, client_id)
        CLIPS_UPDATED.inc()
        log_info(f"Clipboard updated code={code} ttl_left={remaining}")
        await self._hub.notify_updated(code, updated_by=client_id, timestamp=int(time.time() * 1000))

    async def health(self) -> Dict[str, Any]:
        """Ping the store through the guard; never raises."""
        try:
            connected = bool(await self._guard.call(self._backend.ping))
        except ServiceUnavailableError:
            connected = False
        return {
            "status": "ok" if connected else "error",
            "storeConnected": connected,
            "backend": self._backend.name,
        }
