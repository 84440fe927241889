"""
backend/los/main.py

Purpose:
    FastAPI application bootstrap, middleware/router wiring, scheduler lifecycle
    and round engine startup for the configured club edition.

Dependencies:
    - los.database
    - los.services.engine
    - los.stores.mongo
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)

import los.database as _db
from los.config import settings
from los.database import close_db, connect_db
from los.errors import (
    DataIntegrityError,
    ParticipantNotFoundError,
    PartialAssignmentError,
    PickValidationError,
    StoreWriteError,
    TransientStoreError,
)
from los.middleware.logging import StructuredLoggingMiddleware, setup_logging

logger = logging.getLogger("los")
scheduler = AsyncIOScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await connect_db()
    from los.services.engine import RoundEngine
    from los.services.event_handlers import register_event_handlers
    from los.stores.mongo import MongoFixtureFeed, MongoGameStore

    if not settings.CLUB_ID or not settings.EDITION_ID:
        logger.warning("CLUB_ID/EDITION_ID not configured; engine runs unscoped")

    store = MongoGameStore(
        _db.db, settings.CLUB_ID, settings.EDITION_ID,
        use_transactions=settings.MONGO_TRANSACTIONS_ENABLED,
        starting_lives=settings.STARTING_LIVES,
    )
    feed = MongoFixtureFeed(_db.db, settings.CLUB_ID, settings.EDITION_ID)
    engine = RoundEngine.from_settings(store, feed, settings)
    register_event_handlers(engine, settings)
    app.state.engine = engine

    scheduler.start()
    await engine.start(
        scheduler,
        monitor_deadlines=settings.DEADLINE_MONITOR_ENABLED,
        resolve_results=settings.RESULT_RESOLVER_ENABLED,
    )
    logger.info(
        "Round engine scheduled: deadline_monitor=%s result_resolver=%s",
        settings.DEADLINE_MONITOR_ENABLED, settings.RESULT_RESOLVER_ENABLED,
    )

    yield

    await engine.stop()
    if scheduler.running:
        scheduler.shutdown(wait=False)
    await close_db()


app = FastAPI(
    title="Last One Standing",
    description="Round engine for last-one-standing football competitions",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Admin-Key"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

from los.routers import admin, picks  # noqa: E402

app.include_router(picks.router)
app.include_router(admin.router)


@app.exception_handler(PickValidationError)
async def pick_validation_handler(request: Request, exc: PickValidationError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": type(exc).__name__},
    )


@app.exception_handler(ParticipantNotFoundError)
async def participant_not_found_handler(request: Request, exc: ParticipantNotFoundError):
    return JSONResponse(status_code=404, content={"detail": "Participant not found."})


@app.exception_handler(TransientStoreError)
async def transient_store_handler(request: Request, exc: TransientStoreError):
    logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(PartialAssignmentError)
async def partial_assignment_handler(request: Request, exc: PartialAssignmentError):
    logger.error("Auto-pick batch failed on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Auto-pick assignment failed; no picks were applied.", "attempted": exc.attempted},
    )


@app.exception_handler(DataIntegrityError)
async def data_integrity_handler(request: Request, exc: DataIntegrityError):
    logger.error("Fixture data unusable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(StoreWriteError)
async def store_write_handler(request: Request, exc: StoreWriteError):
    logger.error("Store write rejected on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean validation errors without leaking internal field paths."""
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(l) for l in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=409, content={"detail": "Duplicate entry."})


@app.exception_handler(ServerSelectionTimeoutError)
async def db_timeout_handler(request: Request, exc: ServerSelectionTimeoutError):
    logger.error("Database timeout: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(ConnectionFailure)
async def db_connection_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database connection failure: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check -- verifies DB connection and engine job status."""
    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except Exception:
        db_ok = False

    engine = getattr(app.state, "engine", None)
    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "engine": {
            "deadline_monitor": engine.monitor.is_running if engine else False,
            "result_resolver": engine.resolver.is_running if engine else False,
        },
    }
