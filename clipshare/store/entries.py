# clipshare/store/entries.py
# Entry Store: expiring clipboard entries keyed by short codes

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Sequence

from clipshare.errors import ForbiddenError, InternalError, NotFoundError, ValidationError
from clipshare.models.entry import Entry, UpdateStatus
from clipshare.store.backend import StoreBackend
from clipshare.store.resilience import StoreGuard
from clipshare.utils.codes import MAX_CODE_LENGTH, generate_code, is_valid_code

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class EntryStore:
    """Create, read and update entries; every store call goes through the guard.

    Codes that could never have been generated are treated as absent, so
    reads and writes against them behave like any missing code.
    """

    def __init__(
        self,
        backend: StoreBackend,
        guard: StoreGuard,
        *,
        ttl_seconds: int = 86400,
        viewer_ttl_seconds: int = 3600,
        code_length: int = 6,
        max_attempts: int = 5,
        code_factory: Optional[Callable[[int], str]] = None,
    ):
        if not 0 < code_length <= MAX_CODE_LENGTH:
            raise ValueError(f"code_length must be between 1 and {MAX_CODE_LENGTH}")
        self._backend = backend
        self._guard = guard
        self.ttl_seconds = ttl_seconds
        self.viewer_ttl_seconds = viewer_ttl_seconds
        self._code_length = code_length
        self._max_attempts = max_attempts
        self._code_factory = code_factory or generate_code

    async def create(self, content: str, owner_id: Optional[str] = None) -> str:
        """Store content under a fresh code and return the code."""
        if not content:
            raise ValidationError("Content is required")

        created_at = _now_ms()
        for attempt in range(1, self._max_attempts + 1):
            code = self._code_factory(self._code_length)
            inserted = await self._guard.call(
                self._backend.insert_entry, code, content, created_at, owner_id, self.ttl_seconds
            )
            if inserted:
                return code
            logger.warning(f"Code collision on attempt {attempt}, retrying")

        raise InternalError("Could not allocate a unique code")

    async def get(self, code: str) -> Entry:
        """Return the entry and count this retrieval."""
        if not is_valid_code(code):
            raise NotFoundError()
        entry = await self._guard.call(self._backend.fetch_and_count, code)
        if entry is None:
            raise NotFoundError()
        return entry

    async def update(self, code: str, content: str, requester_id: str) -> Optional[float]:
        """Replace content for the owner; returns the remaining lifetime carried over."""
        if not content:
            raise ValidationError("Content is required")
        if not is_valid_code(code):
            raise NotFoundError()
        outcome = await self._guard.call(self._backend.replace_content, code, content, requester_id)
        if outcome.status == UpdateStatus.NOT_FOUND:
            raise NotFoundError()
        if outcome.status == UpdateStatus.FORBIDDEN:
            raise ForbiddenError()
        return outcome.ttl

    async def register_owner(self, code: str, owner_id: str) -> bool:
        """Attach an owner to an unowned entry. False if absent or already owned."""
        if not is_valid_code(code) or not owner_id:
            return False
        return await self._guard.call(self._backend.set_owner_if_absent, code, owner_id)

    async def ttl(self, code: str) -> Optional[float]:
        if not is_valid_code(code):
            return None
        return await self._guard.call(self._backend.entry_ttl, code)

    async def peek_many(self, codes: Sequence[str]) -> List[Optional[Entry]]:
        """Read entries without touching their retrieval counts."""
        valid = [c for c in codes if is_valid_code(c)]
        found = await self._guard.call(self._backend.read_entries, valid) if valid else []
        by_code = {entry.code: entry for entry in found if entry is not None}
        return [by_code.get(code) for code in codes]

    async def record_viewer(self, code: str, client_id: str) -> Optional[int]:
        """Mark client_id as viewing code; returns distinct live viewers or None."""
        if not is_valid_code(code) or not client_id:
            return None
        return await self._guard.call(
            self._backend.touch_viewer, code, client_id, self.viewer_ttl_seconds
        )
