from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field

from clipshare.models.entry import Entry, HistoryItem


class CreateRequest(BaseModel):
    # Presence is checked by the service so a missing field is a 400, not a 422
    content: Optional[str] = None
    clientId: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("clientId", "userId")
    )


class UpdateRequest(BaseModel):
    content: Optional[str] = None
    clientId: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("clientId", "userId")
    )


class CreateResponse(BaseModel):
    code: str


class ClipboardStats(BaseModel):
    retrievalCount: int
    created: Optional[int] = Field(default=None, description="Creation time, epoch ms")
    ownerId: Optional[str] = None


class FetchResponse(BaseModel):
    content: str
    stats: ClipboardStats

    @classmethod
    def from_entry(cls, entry: Entry) -> "FetchResponse":
        return cls(
            content=entry.content,
            stats=ClipboardStats(
                retrievalCount=entry.retrieval_count,
                created=entry.created_at,
                ownerId=entry.owner_id,
            ),
        )


class HistoryItemOut(BaseModel):
    code: str
    preview: str
    retrievalCount: int
    created: Optional[int] = None


class HistoryResponse(BaseModel):
    history: List[HistoryItemOut]

    @classmethod
    def from_items(cls, items: List[HistoryItem]) -> "HistoryResponse":
        return cls(history=[
            HistoryItemOut(
                code=item.code,
                preview=item.preview,
                retrievalCount=item.retrieval_count,
                created=item.created_at,
            )
            for item in items
        ])


class UpdateResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    status: str
    storeConnected: bool
    backend: str
