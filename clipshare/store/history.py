# clipshare/store/history.py
# Per-client history of created codes (weak references, filtered on read)

from __future__ import annotations

from typing import List, Sequence

from clipshare.models.entry import HistoryItem
from clipshare.store.backend import StoreBackend
from clipshare.store.entries import EntryStore
from clipshare.store.resilience import StoreGuard


class HistoryIndex:
    """Most-recent-first code lists with a sliding expiry and a length cap."""

    def __init__(
        self,
        backend: StoreBackend,
        guard: StoreGuard,
        entries: EntryStore,
        *,
        ttl_seconds: int = 30 * 86400,
        max_items: int = 100,
        preview_length: int = 50,
    ):
        self._backend = backend
        self._guard = guard
        self._entries = entries
        self.ttl_seconds = ttl_seconds
        self.max_items = max_items
        self.preview_length = preview_length

    async def append(self, client_id: str, code: str) -> None:
        await self._guard.call(
            self._backend.push_history, client_id, code, self.ttl_seconds, self.max_items
        )

    async def list(self, client_id: str) -> List[str]:
        return await self._guard.call(self._backend.read_history, client_id)

    async def resolve(self, codes: Sequence[str]) -> List[HistoryItem]:
        # Expired entries are skipped, not reported
        entries = await self._entries.peek_many(codes)
        return [
            HistoryItem(
                code=entry.code,
                preview=entry.preview(self.preview_length),
                retrieval_count=entry.retrieval_count,
                created_at=entry.created_at,
            )
            for entry in entries
            if entry is not None
        ]

    async def items(self, client_id: str) -> List[HistoryItem]:
        codes = await self.list(client_id)
        if not codes:
            return []
        return await self.resolve(codes)
