"""FastAPI application for Ignis Patient Auth.

Creates the application with its routers, error handlers and monitoring.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from ignis_auth.api import auth_endpoints, auth_test_endpoints, health, voice_endpoints
from ignis_auth.api.dependencies import build_container
from ignis_auth.api.monitoring import setup_monitoring
from ignis_auth.api.responses import access_denied_handler, validation_error_handler
from ignis_auth.auth.store import Clock
from ignis_auth.config import Settings, get_settings
from ignis_auth.healthcare.patient_directory import PatientDirectory
from ignis_auth.services.notification_service import TokenDelivery
from ignis_auth.utils.exceptions import AccessDeniedError
from ignis_auth.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    directory: Optional[PatientDirectory] = None,
    delivery: Optional[TokenDelivery] = None,
    clock: Clock = time.time,
) -> FastAPI:
    """Build the application; collaborators can be replaced for tests."""
    settings = settings or get_settings()
    container = build_container(settings, directory=directory, delivery=delivery, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan handler."""
        logger.info("service_starting", name=settings.app_name, version=settings.app_version)
        cleanup_task = asyncio.create_task(
            container.run_cleanup_loop(settings.state_cleanup_interval_seconds)
        )
        app.state.cleanup_task = cleanup_task
        yield
        logger.info("service_stopping")
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        await container.directory.close()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Progressive patient authentication for web and voice channels",
        docs_url="/api/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )
    setup_monitoring(app)

    app.add_exception_handler(AccessDeniedError, access_denied_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]

    app.include_router(health.router)
    app.include_router(auth_endpoints.router)
    app.include_router(voice_endpoints.router)
    if settings.test_routes_enabled:
        app.include_router(auth_test_endpoints.router)
        logger.warning("test_routes_enabled")

    return app


def main() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings)
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
