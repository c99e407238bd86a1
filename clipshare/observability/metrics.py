# clipshare/observability/metrics.py
# minimal prometheus instrumentation

from __future__ import annotations

import time

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

# --- HTTP ---
REQUEST_COUNT = Counter(
    "http_request_count",
    "Total request count",
    labelnames=("method", "path", "status"),
)
REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "Request latency in seconds",
)
REQUEST_IN_PROGRESS = Gauge(
    "http_request_in_progress",
    "Requests currently in progress",
    ("method",),
)
ERROR_COUNT = Counter(
    "http_error_count",
    "Total error count",
    labelnames=("method", "path", "status"),
)

# --- Clipboard commands ---
CLIPS_CREATED = Counter("clipboard_created_total", "Clipboard entries created")
CLIPS_RETRIEVED = Counter("clipboard_retrievals_total", "Successful clipboard fetches")
CLIPS_UPDATED = Counter("clipboard_updates_total", "Successful clipboard updates")

# --- Realtime ---
BROADCASTS = Counter(
    "realtime_broadcasts_total",
    "Room broadcasts sent",
    labelnames=("event",),
)
ACTIVE_ROOMS = Gauge("realtime_rooms", "Rooms with at least one subscriber")
ACTIVE_CONNECTIONS = Gauge("realtime_connections", "Subscribed realtime connections")


router = APIRouter(tags=["Metrics"])


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:
    """// expose /metrics"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


UNMATCHED_PATH = "<unmatched>"


def _route_path(request: Request) -> str:
    # Use the route template so /api/clipboard/{code} stays one label
    route = request.scope.get("route")
    return getattr(route, "path", UNMATCHED_PATH)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Observe latency, status and in-flight count for every HTTP request."""

    async def dispatch(self, request: Request, call_next):
        method = request.method
        start = time.perf_counter()
        in_progress = REQUEST_IN_PROGRESS.labels(method)
        in_progress.inc()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            in_progress.dec()
            path = _route_path(request)
            REQUEST_LATENCY.observe(time.perf_counter() - start)
            REQUEST_COUNT.labels(method, path, str(status)).inc()
            if status >= 400:
                ERROR_COUNT.labels(method, path, str(status)).inc()
