# clipshare/store/memory_backend.py
# In-process store backend for single-worker deployments, demos and tests.
#
# Keys expire lazily: every access checks the deadline first, and a periodic
# purge on the write path drops keys nobody touched again.

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence, Set

from clipshare.models.entry import Entry, UpdateOutcome, UpdateStatus
from clipshare.store.backend import StoreBackend, entry_key, history_key

PURGE_EVERY_WRITES = 1000


class KeyedLock:
    """One asyncio.Lock per key, dropped once no task holds or awaits it."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class _Record:
    content: str
    count: int
    created_at: int
    owner_id: Optional[str]
    expires_at: float


@dataclass
class _History:
    codes: List[str] = field(default_factory=list)
    expires_at: float = 0.0


class MemoryBackend(StoreBackend):
    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._locks = KeyedLock()
        self._entries: Dict[str, _Record] = {}
        # code -> {client_id -> presence deadline}
        self._viewers: Dict[str, Dict[str, float]] = {}
        self._history: Dict[str, _History] = {}
        self._subscribers: Set[asyncio.Queue] = set()
        self._writes = 0

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._subscribers.clear()

    # --- expiry helpers ---

    def _live_entry(self, code: str) -> Optional[_Record]:
        record = self._entries.get(code)
        if record is None:
            return None
        if record.expires_at <= self._clock():
            del self._entries[code]
            self._viewers.pop(code, None)
            return None
        return record

    def _live_history(self, client_id: str) -> Optional[_History]:
        history = self._history.get(client_id)
        if history is not None and history.expires_at <= self._clock():
            del self._history[client_id]
            return None
        return history

    def _after_write(self) -> None:
        self._writes += 1
        if self._writes % PURGE_EVERY_WRITES == 0:
            self.purge_expired()

    def purge_expired(self) -> int:
        """Drop every expired key; returns how many were removed."""
        now = self._clock()
        dead = [c for c, r in self._entries.items() if r.expires_at <= now]
        for code in dead:
            del self._entries[code]
            self._viewers.pop(code, None)
        stale_history = [k for k, h in self._history.items() if h.expires_at <= now]
        for client_id in stale_history:
            del self._history[client_id]
        return len(dead) + len(stale_history)

    def _publish(self, code: str) -> None:
        for queue in self._subscribers:
            queue.put_nowait(code)

    @staticmethod
    def _to_entry(code: str, record: _Record) -> Entry:
        return Entry(
            code=code,
            content=record.content,
            retrieval_count=record.count,
            created_at=record.created_at,
            owner_id=record.owner_id,
        )

    # --- entries ---

    async def insert_entry(self, code, content, created_at, owner_id, ttl) -> bool:
        async with self._locks.hold(entry_key(code)):
            if self._live_entry(code) is not None:
                return False
            self._entries[code] = _Record(
                content=content,
                count=0,
                created_at=created_at,
                owner_id=owner_id or None,
                expires_at=self._clock() + ttl,
            )
        self._publish(code)
        self._after_write()
        return True

    async def fetch_and_count(self, code: str) -> Optional[Entry]:
        async with self._locks.hold(entry_key(code)):
            record = self._live_entry(code)
            if record is None:
                return None
            record.count += 1
            return self._to_entry(code, record)

    async def read_entries(self, codes: Sequence[str]) -> List[Optional[Entry]]:
        result: List[Optional[Entry]] = []
        for code in codes:
            record = self._live_entry(code)
            result.append(self._to_entry(code, record) if record else None)
        return result

    async def replace_content(self, code: str, content: str, requester_id: str) -> UpdateOutcome:
        async with self._locks.hold(entry_key(code)):
            record = self._live_entry(code)
            if record is None:
                return UpdateOutcome(UpdateStatus.NOT_FOUND)
            if not record.owner_id or record.owner_id != requester_id:
                return UpdateOutcome(UpdateStatus.FORBIDDEN)
            # Deadline is left untouched: the remaining TTL carries over
            record.content = content
            remaining = record.expires_at - self._clock()
        self._publish(code)
        return UpdateOutcome(UpdateStatus.UPDATED, ttl=remaining)

    async def set_owner_if_absent(self, code: str, owner_id: str) -> bool:
        async with self._locks.hold(entry_key(code)):
            record = self._live_entry(code)
            if record is None or record.owner_id:
                return False
            record.owner_id = owner_id
            return True

    async def entry_ttl(self, code: str) -> Optional[float]:
        record = self._live_entry(code)
        if record is None:
            return None
        return record.expires_at - self._clock()

    async def touch_viewer(self, code: str, client_id: str, ttl: int) -> Optional[int]:
        async with self._locks.hold(entry_key(code)):
            if self._live_entry(code) is None:
                self._viewers.pop(code, None)
                return None
            now = self._clock()
            viewers = self._viewers.setdefault(code, {})
            viewers[client_id] = now + ttl
            for member in [m for m, deadline in viewers.items() if deadline <= now]:
                del viewers[member]
            return len(viewers)

    # --- history ---

    async def push_history(self, client_id: str, code: str, ttl: int, max_items: int) -> None:
        async with self._locks.hold(history_key(client_id)):
            history = self._live_history(client_id)
            if history is None:
                history = self._history[client_id] = _History()
            history.codes.insert(0, code)
            if max_items:
                del history.codes[max_items:]
            history.expires_at = self._clock() + ttl
        self._after_write()

    async def read_history(self, client_id: str) -> List[str]:
        history = self._live_history(client_id)
        return list(history.codes) if history else []

    # --- events ---

    async def content_mutations(self) -> AsyncIterator[str]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)

