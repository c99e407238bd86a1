# clipshare/routers/clipboard.py
# FastAPI router for clipboard entries and per-client history

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from clipshare.dependencies import get_service
from clipshare.schemas.clipboard import (
    CreateRequest,
    CreateResponse,
    FetchResponse,
    HistoryResponse,
    UpdateRequest,
    UpdateResponse,
)
from clipshare.services.clipboard_service import ClipboardService

router = APIRouter(tags=["Clipboard"])


@router.post("/clipboard", response_model=CreateResponse, status_code=status.HTTP_201_CREATED)
async def create_clipboard(
    payload: CreateRequest,
    service: ClipboardService = Depends(get_service),
) -> CreateResponse:
    """Store content and return the code to share."""
    code = await service.create(payload.content, payload.clientId)
    return CreateResponse(code=code)


@router.get("/clipboard/{code}", response_model=FetchResponse)
async def fetch_clipboard(
    code: str,
    service: ClipboardService = Depends(get_service),
) -> FetchResponse:
    """Return content and stats. Counts as a retrieval."""
    entry = await service.fetch(code)
    return FetchResponse.from_entry(entry)


@router.put("/clipboard/{code}", response_model=UpdateResponse)
async def update_clipboard(
    code: str,
    payload: UpdateRequest,
    service: ClipboardService = Depends(get_service),
) -> UpdateResponse:
    """Replace content; only the creator may edit."""
    await service.update(code, payload.content, payload.clientId)
    return UpdateResponse(success=True, message="Clipboard content updated")


@router.get("/history/{client_id}", response_model=HistoryResponse)
async def client_history(
    client_id: str,
    service: ClipboardService = Depends(get_service),
) -> HistoryResponse:
    items = await service.list_history(client_id)
    return HistoryResponse.from_items(items)
