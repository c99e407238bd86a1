# clipshare/realtime/relay.py
# Forwards raw store content writes to room subscribers as content-updated.
# Writes made through the update command are announced twice (once here,
# once by the command); subscribers treat the event as idempotent.

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from clipshare.observability.logger import log_exception
from clipshare.realtime.hub import RoomHub
from clipshare.store.backend import StoreBackend

logger = logging.getLogger(__name__)


class StoreEventRelay:
    """Background task consuming StoreBackend.content_mutations()."""

    def __init__(self, backend: StoreBackend, hub: RoomHub, retry_delay: float = 5.0):
        self._backend = backend
        self._hub = hub
        self._retry_delay = retry_delay
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="store-event-relay")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                async for code in self._backend.content_mutations():
                    await self._hub.notify_updated(code, from_store_event=True)
            except self._backend.unavailable_errors as e:
                logger.warning(
                    f"Store event stream lost ({type(e).__name__}: {e}); "
                    f"resubscribing in {self._retry_delay:.1f}s"
                )
            except Exception as e:
                # Keep the relay alive; a bad event must not stop later ones
                log_exception(e, "StoreEventRelay")
            await asyncio.sleep(self._retry_delay)
