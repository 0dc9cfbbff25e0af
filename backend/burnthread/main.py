"""
Burnthread Backend - Ephemeral Two-Party Message Relay
The server never decrypts anything; threads self-destruct.
"""

import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from burnthread.config import settings, validate_settings
from burnthread.routers import threads, health, websocket
from burnthread.middleware.security import SecurityMiddleware
from burnthread.logging_config import setup_logging
from burnthread.services.coordinator import ThreadCoordinator
from burnthread.services.heartbeat import start_heartbeat_task
from burnthread.services.store import EphemeralStore, build_store
from burnthread.services.websocket import WebSocketManager


def configure_state(app: FastAPI, store: EphemeralStore) -> ThreadCoordinator:
    """Attach a store and a coordinator bound to it to the application"""
    coordinator = ThreadCoordinator(store, WebSocketManager())
    app.state.store = store
    app.state.coordinator = coordinator
    return coordinator


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Keep the {success, error} envelope for rejected requests"""
    return JSONResponse(status_code=400, content={"success": False, "error": "Invalid request"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    setup_logging()

    # Validate deployment settings before opening connections.
    validate_settings(settings)

    store = build_store(settings)
    coordinator = configure_state(app, store)
    await store.start()

    heartbeat = start_heartbeat_task(coordinator.manager, settings.HEARTBEAT_INTERVAL_SECONDS)

    yield

    heartbeat.cancel()
    try:
        await heartbeat
    except asyncio.CancelledError:
        pass
    await store.close()


def create_app() -> FastAPI:
    """Application factory"""
    app = FastAPI(
        title="Burnthread",
        description="Ephemeral encrypted two-party threads",
        version="1.0.0",
        docs_url=None,      # Disable Swagger in production
        redoc_url=None,     # Disable ReDoc in production
        openapi_url=None,   # Disable OpenAPI schema
        lifespan=lifespan
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Rate limiting and security headers
    app.add_middleware(SecurityMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type"],
    )

    # Register routers
    app.include_router(health.router, tags=["health"])
    app.include_router(threads.router, prefix="/api", tags=["threads"])
    app.include_router(websocket.router, tags=["websocket"])

    return app


app = create_app()
