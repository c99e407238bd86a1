"""Presence & notification hub for realtime clipboard rooms.

A room is the set of live connections subscribed to one code. Rooms exist
only in memory: the first join creates one, the last leave or disconnect
discards it, and nothing is persisted or replayed.

Concurrency:
    All room-table mutations are synchronous (no await between read and
    write), so on a single event loop they cannot interleave. Broadcasts
    iterate over a snapshot and deliver concurrently with asyncio.gather();
    a connection whose send fails is dropped from every room.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Protocol, Set

from clipshare.constants import (
    EVENT_CONTENT_RETRIEVED,
    EVENT_CONTENT_UPDATED,
    EVENT_VIEWERS_UPDATED,
)
from clipshare.observability.metrics import ACTIVE_CONNECTIONS, ACTIVE_ROOMS, BROADCASTS
from clipshare.store.entries import EntryStore

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """Anything that can push a JSON frame to one client (e.g. a WebSocket)."""

    async def send_json(self, data: Any) -> None: ...


def make_event(event: str, data: dict) -> dict:
    return {"event": event, "data": data}


class RoomHub:
    """Tracks room membership and fans events out to subscribers."""

    def __init__(self, entries: EntryStore) -> None:
        self._entries = entries
        # code -> connections subscribed to it
        self._rooms: Dict[str, Set[Connection]] = {}
        # connection -> codes it joined, for disconnect cleanup
        self._memberships: Dict[Connection, Set[str]] = {}

    # --- membership ---

    def join(self, conn: Connection, code: str) -> int:
        """Add conn to code's room; returns the room size."""
        room = self._rooms.get(code)
        if room is None:
            room = self._rooms[code] = set()
            logger.debug(f"Room opened: {code}")
        room.add(conn)
        self._memberships.setdefault(conn, set()).add(code)
        self._update_gauges()
        return len(room)

    def leave(self, conn: Connection, code: str) -> None:
        room = self._rooms.get(code)
        if room is not None:
            room.discard(conn)
            if not room:
                del self._rooms[code]
                logger.debug(f"Room closed: {code}")
        codes = self._memberships.get(conn)
        if codes is not None:
            codes.discard(code)
            if not codes:
                del self._memberships[conn]
        self._update_gauges()

    def disconnect(self, conn: Connection) -> None:
        """Leave every room conn was a member of."""
        for code in list(self._memberships.get(conn, ())):
            self.leave(conn, code)
        self._memberships.pop(conn, None)
        self._update_gauges()

    def room_size(self, code: str) -> int:
        return len(self._rooms.get(code, ()))

    def rooms_of(self, conn: Connection) -> Set[str]:
        return set(self._memberships.get(conn, ()))

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def close(self) -> None:
        """Drop all room state (process shutdown)."""
        self._rooms.clear()
        self._memberships.clear()
        self._update_gauges()

    def _update_gauges(self) -> None:
        ACTIVE_ROOMS.set(len(self._rooms))
        ACTIVE_CONNECTIONS.set(len(self._memberships))

    # --- presence ---

    async def announce(self, code: str, client_id: str) -> Optional[int]:
        """Record client_id as present on code and broadcast the viewer count.

        Returns the count, or None when the code does not exist.
        """
        count = await self._entries.record_viewer(code, client_id)
        if count is None:
            return None
        await self.broadcast(code, EVENT_VIEWERS_UPDATED, {"count": count})
        return count

    # --- notifications ---

    async def notify_retrieved(self, code: str, count: int) -> int:
        return await self.broadcast(code, EVENT_CONTENT_RETRIEVED, {"count": count})

    async def notify_updated(
        self,
        code: str,
        updated_by: Optional[str] = None,
        timestamp: Optional[int] = None,
        from_store_event: bool = False,
    ) -> int:
        payload: Dict[str, Any] = {
            "timestamp": timestamp if timestamp is not None else int(time.time() * 1000),
        }
        if updated_by:
            payload["updatedBy"] = updated_by
        if from_store_event:
            payload["fromStoreEvent"] = True
        return await self.broadcast(code, EVENT_CONTENT_UPDATED, payload)

    async def broadcast(self, code: str, event: str, data: dict) -> int:
        """Send one event to every connection in code's room.

        Best-effort, at most once: returns how many sends succeeded.
        """
        connections = list(self._rooms.get(code, ()))
        if not connections:
            return 0

        message = make_event(event, data)
        results = await asyncio.gather(
            *[self._safe_send(conn, message) for conn in connections],
            return_exceptions=True,
        )
        BROADCASTS.labels(event).inc()

        delivered = 0
        for conn, ok in zip(connections, results):
            if ok is True:
                delivered += 1
            else:
                self.disconnect(conn)
        return delivered

    async def _safe_send(self, conn: Connection, message: dict) -> bool:
        try:
            await conn.send_json(message)
            return True
        except Exception as e:
            logger.info(f"Dropping connection after failed send: {type(e).__name__}: {e}")
            return False
