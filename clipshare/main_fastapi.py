from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clipshare.config import Settings, get_settings
from clipshare.context import AppContext
from clipshare.middleware.error_handler import ErrorHandlerMiddleware, setup_exception_handlers
from clipshare.observability.logger import configure_logging
from clipshare.observability.metrics import PrometheusMiddleware
from clipshare.observability.metrics import router as metrics_router
from clipshare.observability.tracing import init_tracing
from clipshare.routers.clipboard import router as clipboard_router
from clipshare.routers.health import router as health_router
from clipshare.routers.realtime import router as realtime_router
from clipshare.store.backend import StoreBackend


def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[StoreBackend] = None,
) -> FastAPI:
    """Build the app. The AppContext lives exactly as long as the lifespan."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context = AppContext(settings, backend=backend)
        app.state.context = context
        await context.start()
        try:
            yield
        finally:
            await context.close()

    app = FastAPI(
        title="Clipshare API",
        description="Ephemeral code-addressed text sharing with realtime rooms",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Add middleware (order matters: last added = outermost)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(ErrorHandlerMiddleware, debug=settings.DEBUG)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["*"],
    )

    # Register exception handlers
    setup_exception_handlers(app)

    # Include routers
    app.include_router(health_router)  # /api/health plus root-level probes
    app.include_router(clipboard_router, prefix="/api")
    app.include_router(realtime_router)
    app.include_router(metrics_router)

    init_tracing(settings, app=app)

    return app


def get_app() -> FastAPI:
    return create_app()
