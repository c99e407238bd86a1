# clipshare/models/entry.py
# Domain records shared by the store backends and the service layer

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Entry:
    """Stored content plus metadata for one code."""

    code: str
    content: str
    retrieval_count: int
    created_at: Optional[int]  # epoch milliseconds
    owner_id: Optional[str] = None

    def preview(self, length: int = 50) -> str:
        if len(self.content) > length:
            return f"{self.content[:length]}..."
        return self.content


@dataclass(frozen=True)
class HistoryItem:
    code: str
    preview: str
    retrieval_count: int
    created_at: Optional[int]


class UpdateStatus(str, Enum):
    UPDATED = "updated"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class UpdateOutcome:
    status: UpdateStatus
    # Remaining lifetime (seconds) carried over to the new content
    ttl: Optional[float] = None
