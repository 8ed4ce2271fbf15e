# gridsync/main.py

import asyncio
import os
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from gridsync.config import Settings, get_settings
from gridsync.middleware.error_handler import ErrorHandlerMiddleware, setup_exception_handlers
from gridsync.observability.logger import configure_logging
from gridsync.observability.metrics import PrometheusMiddleware
from gridsync.routers.health import router as health_router
from gridsync.routers.metrics import router as metrics_router
from gridsync.routers.sync import router as sync_router
from gridsync.state.context import SyncContext
from gridsync.utils.logger import log_exception, log_info
from gridsync.utils.telemetry import init_otel


async def sweep_forever(context: SyncContext, interval: float) -> None:
    """Evict timed-out presence and liveness entries until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            context.sweep()
        except Exception as e:
            # one bad sweep must not stop eviction for the life of the process
            log_exception(e, "background sweep")


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[SyncContext] = None,
) -> FastAPI:
    """Build the application around one SyncContext.

    Tests pass their own context (usually with a fake clock); the server
    builds one from settings at startup.
    """
    settings = settings or get_settings()
    context = context or SyncContext.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        sweeper = asyncio.create_task(sweep_forever(context, settings.SWEEP_INTERVAL_SECONDS))
        log_info(
            f"gridsync started: timeout={context.client_timeout_seconds}s "
            f"log_capacity={context.log.capacity}"
        )
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper
            log_info("gridsync stopped")

    app = FastAPI(
        title="gridsync",
        description="Shared state server for collaborative crossword editing",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.sync_context = context

    # last added is outermost: errors are shaped before metrics see the status
    app.add_middleware(ErrorHandlerMiddleware, debug=settings.DEBUG)
    app.add_middleware(PrometheusMiddleware)

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(sync_router, prefix="/api")

    if settings.OTEL_ENABLED:
        init_otel(app=app)

    # Everything not routed above is a static file (or a 404)
    if os.path.isdir(settings.STATIC_PATH):
        app.mount("/", StaticFiles(directory=settings.STATIC_PATH, html=True), name="static")
    else:
        log_info(f"static directory {settings.STATIC_PATH} missing; GET /* will 404")

    return app


app = create_app()


def get_app() -> FastAPI:
    return app
