"""
SLO-R - Main Application
========================

SLO list service.

Tracks the SLO documents of the configured entities, refreshes current,
7-day and 30-day compliance every poll interval and serves the list,
document detail and deletion.

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Controller, presenter, services and DTOs
- Domain: Entities, value objects and the SLO table
- Infrastructure: NerdGraph, entity storage, scheduler, registry watcher
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from slo_r.config import settings
from slo_r.core import ApplicationException, ExternalServiceException
from slo_r.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from slo_r.shared.infrastructure.logging import get_logger, setup_logging
from slo_r.slo.application import (
    FanOutQueryDispatcher,
    SloDocumentService,
    SloListController,
    SloListPresenter,
    SloRegistry,
)
from slo_r.slo.domain import RegistryConfig, TimeRange
from slo_r.slo.infrastructure import (
    AlertDrivenQueryService,
    EntityStorageDocumentStore,
    ErrorBudgetQueryService,
    NerdGraphClient,
    PollScheduler,
    RegistryConfigManager,
)
from slo_r.slo.interfaces import slo_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Create the NerdGraph client and services
    3. Load the registry file and start watching it
    4. Load tracked SLOs and mount the list controller

    SHUTDOWN:
    1. Dispose the list controller (stops the ticker)
    2. Stop the registry watcher
    3. Close the NerdGraph client
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting SLO-R", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    client = NerdGraphClient(
        url=settings.nerdgraph_url,
        api_key=settings.new_relic_api_key,
        timeout_seconds=settings.nerdgraph_timeout_seconds,
        max_retries=settings.nerdgraph_max_retries,
        nerdpack_id=settings.nerdpack_id
    )
    document_store = EntityStorageDocumentStore(client)

    dispatcher = FanOutQueryDispatcher(
        error_budget_service=ErrorBudgetQueryService(client),
        alert_driven_service=AlertDrivenQueryService(client)
    )
    controller = SloListController(
        dispatcher,
        PollScheduler(interval_seconds=settings.poll_interval_seconds),
        TimeRange.last_minutes(settings.default_time_range_minutes)
    )

    registry = SloRegistry(document_store, settings.slo_collection)
    registry.subscribe(controller.set_slos)

    presenter = SloListPresenter(
        controller,
        SloDocumentService(document_store, settings.slo_collection, settings.slo_tag_key),
        remove_from_list=registry.remove_from_list,
        define_slo_url=settings.define_slo_url
    )

    loop = asyncio.get_running_loop()

    async def reload_registry(config: RegistryConfig) -> None:
        try:
            await registry.load(config.entities)
        except ExternalServiceException as e:
            logger.error(f"Registry reload failed, keeping the current SLO list: {e}")

    def on_registry_change(config: RegistryConfig) -> None:
        # Runs on the watchdog thread
        asyncio.run_coroutine_threadsafe(reload_registry(config), loop)

    config_manager = RegistryConfigManager(on_change=on_registry_change)
    registry_config = config_manager.load(settings.registry_config_path)
    config_manager.start_watching()

    try:
        await registry.load(registry_config.entities)
    except ExternalServiceException as e:
        logger.warning(f"Could not load SLO documents - starting with an empty list: {e}")

    app.state.settings = settings
    app.state.slo_presenter = presenter
    app.state.slo_registry = registry

    # The first cycle runs in the background; the list shows "loading" meanwhile
    mount_task = asyncio.create_task(controller.mount(registry.slos))

    logger.info("SLO-R started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down SLO-R")

    controller.dispose()
    if not mount_task.done():
        mount_task.cancel()
    config_manager.stop_watching()
    await client.close()

    logger.info("SLO-R shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="SLO-R API",
    description="""
    ## SLO List Service

    Service Level Objectives of the tracked entities with their current,
    7-day and 30-day compliance, refreshed every poll interval.

    **Endpoints:**
    - `GET /slo/list` - List view (loading, empty, table or grid)
    - `GET /slo/documents/{entity_guid}/{document_id}` - Full SLO document
    - `POST /slo/documents/{entity_guid}/{document_id}/delete-request` - Ask to delete
    - `POST /slo/list/delete-modal/confirm` - Delete the SLO
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(slo_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports the refresh cycle state and tracked SLO count.
    """
    presenter = getattr(request.app.state, "slo_presenter", None)
    checks = {"slo_list": "not_initialized"}
    if presenter is not None:
        controller = presenter.controller
        checks = {
            "slo_list": controller.state.value,
            "tracked_slos": len(controller.slos),
            "last_refreshed_at": (
                controller.last_refreshed_at.isoformat() if controller.last_refreshed_at else None
            ),
            "last_error": controller.last_error.message if controller.last_error else None
        }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "slo": {
                "prefix": "/slo",
                "endpoints": [
                    "GET /slo/list - SLO list view",
                    "POST /slo/list/refresh - Refresh now",
                    "GET /slo/documents/{entity_guid}/{document_id} - SLO document",
                    "POST /slo/list/delete-modal/confirm - Delete SLO"
                ]
            }
        }
    }


# === Development Entry Point ===

def run() -> None:
    import uvicorn

    uvicorn.run(
        "slo_r.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )


if __name__ == "__main__":
    run()
