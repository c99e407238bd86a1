# clipshare/dependencies.py
# FastAPI dependency providers backed by the AppContext on app.state

from fastapi import Request

from clipshare.context import AppContext
from clipshare.services.clipboard_service import ClipboardService


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_service(request: Request) -> ClipboardService:
    return get_context(request).service
