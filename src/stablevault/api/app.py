"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stablevault import __version__
from stablevault.config import get_settings
from stablevault.errors import (
    AuthorizationError,
    BalanceError,
    CapacityError,
    ExecutionError,
    InputError,
    LimitError,
    ReentrancyError,
    RouteError,
    RouterRevertError,
    TransferError,
    VaultError,
)
from stablevault.ledger.database import close_db, get_db, init_db
from stablevault.ledger.repository import DatabaseEventSink, EventRepository
from stablevault.routing.factory import VaultStack, create_stack
from stablevault.utils.locks import LockTimeoutError

logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their bases
ERROR_STATUS: list[tuple[type[VaultError], int]] = [
    (InputError, 400),
    (AuthorizationError, 403),
    (BalanceError, 409),
    (LimitError, 409),
    (CapacityError, 409),
    (ReentrancyError, 409),
    (RouteError, 422),
    (ExecutionError, 502),
    (RouterRevertError, 502),
    (TransferError, 502),
    (LockTimeoutError, 503),
]


def status_for(error: VaultError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


async def vault_error_handler(request: Request, exc: VaultError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.kind}: {exc}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def replay_events(stack: VaultStack) -> int:
    """Rebuild a fresh vault from the event store."""
    if len(stack.vault.events):
        return 0
    async with get_db() as session:
        events = await EventRepository(session).get_events()
    if not events:
        return 0
    applied = await stack.vault.restore(events, stack.adapters)
    await stack.restore_simulated_custody()
    return applied


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    stack: VaultStack = app.state.stack

    # Startup
    await init_db()
    if settings.persist_events and settings.replay_events_on_startup:
        restored = await replay_events(stack)
        if restored:
            logger.info(f"Replayed {restored} events from the event store")

    sink = None
    if settings.persist_events:
        sink = DatabaseEventSink()
        stack.vault.events.subscribe(sink)

    yield

    # Shutdown
    if sink is not None:
        stack.vault.events.unsubscribe(sink)
        logger.info(f"Persisted {sink.recorded} events this run")
    await close_db()


def create_app(stack: Optional[VaultStack] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        stack: Pre-built vault stack (built from settings if omitted)
    """
    settings = get_settings()

    app = FastAPI(
        title="StableVault API",
        description="Custodial stable-asset ledger",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.stack = stack or create_stack(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(VaultError, vault_error_handler)

    # Register routes
    from stablevault.api.routers import admin, dry_run
    from stablevault.api.routes import health, vault

    app.include_router(health.router, tags=["Health"])
    app.include_router(vault.router, prefix="/api/v1", tags=["Ledger"])
    app.include_router(admin.router, tags=["Admin"])
    app.include_router(dry_run.router, tags=["Dry run"])

    return app
