# clipshare/store/backend.py
# Storage primitives the entry store and history index are built on.
#
# Every method is atomic per key: a backend either runs it as one server-side
# script (Redis) or under that key's lock (memory). Expired keys must behave
# exactly like keys that never existed.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional, Sequence, Tuple, Type

from clipshare.models.entry import Entry, UpdateOutcome

ENTRY_PREFIX = "clip:"
VIEWERS_SUFFIX = ":viewers"
HISTORY_PREFIX = "history:"


def entry_key(code: str) -> str:
    return f"{ENTRY_PREFIX}{code}"


def viewers_key(code: str) -> str:
    return f"{ENTRY_PREFIX}{code}{VIEWERS_SUFFIX}"


def history_key(client_id: str) -> str:
    return f"{HISTORY_PREFIX}{client_id}"


def code_from_entry_key(key: str) -> Optional[str]:
    """Map an entry key back to its code; None for metadata or foreign keys."""
    if not key.startswith(ENTRY_PREFIX) or key.endswith(VIEWERS_SUFFIX):
        return None
    code = key[len(ENTRY_PREFIX):]
    return code or None


class StoreBackend(ABC):
    """Expiring key/value primitives shared by all commands."""

    name: str = "abstract"

    # Exceptions that mean "store unreachable" for this backend
    unavailable_errors: Tuple[Type[BaseException], ...] = ()

    async def connect(self) -> None:
        """Open connections; raise if the store cannot be reached."""

    async def close(self) -> None:
        """Release connections."""

    @abstractmethod
    async def ping(self) -> bool: ...

    # --- Entries ---

    @abstractmethod
    async def insert_entry(
        self,
        code: str,
        content: str,
        created_at: int,
        owner_id: Optional[str],
        ttl: int,
    ) -> bool:
        """Write a fresh entry with count 0. False if the code is taken."""

    @abstractmethod
    async def fetch_and_count(self, code: str) -> Optional[Entry]:
        """Increment the retrieval count and return the entry, or None."""

    @abstractmethod
    async def read_entries(self, codes: Sequence[str]) -> List[Optional[Entry]]:
        """Read entries without counting the read; None for missing codes."""

    @abstractmethod
    async def replace_content(self, code: str, content: str, requester_id: str) -> UpdateOutcome:
        """Owner-checked content swap that keeps the entry's deadline."""

    @abstractmethod
    async def set_owner_if_absent(self, code: str, owner_id: str) -> bool: ...

    @abstractmethod
    async def entry_ttl(self, code: str) -> Optional[float]:
        """Remaining lifetime in seconds, None if absent."""

    @abstractmethod
    async def touch_viewer(self, code: str, client_id: str, ttl: int) -> Optional[int]:
        """Refresh a viewer's presence and return the live viewer count.

        None (and nothing recorded) when the entry does not exist.
        """

    # --- History ---

    @abstractmethod
    async def push_history(self, client_id: str, code: str, ttl: int, max_items: int) -> None: ...

    @abstractmethod
    async def read_history(self, client_id: str) -> List[str]: ...

    # --- Events ---

    @abstractmethod
    def content_mutations(self) -> AsyncIterator[str]:
        """Yield the code of every raw content write, from any writer."""
