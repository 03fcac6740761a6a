"""
backend/gambo/main.py

Purpose:
    FastAPI application bootstrap: database lifecycle, optional in-process
    settlement scheduler, router wiring and error-to-status mapping.

Dependencies:
    - gambo.database
    - gambo.workers.settlement_runner
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError

import gambo.database as _db
from gambo.config import settings
from gambo.database import close_db, connect_db
from gambo.errors import StoreUnavailable
from gambo.middleware.logging import StructuredLoggingMiddleware, setup_logging
from gambo.routers.admin_settlement import router as admin_settlement_router
from gambo.routers.settlement import router as settlement_router
from gambo.workers.settlement_runner import run_settlement_pass

logger = logging.getLogger("gambo")
scheduler = AsyncIOScheduler()
_SETTLEMENT_JOB_ID = "settlement_pass"


async def _scheduled_pass() -> None:
    try:
        await run_settlement_pass()
    except StoreUnavailable as exc:
        logger.error("Settlement pass aborted, store unavailable: %s", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await connect_db()

    if settings.SETTLEMENT_SCHEDULER_ENABLED:
        scheduler.add_job(
            _scheduled_pass,
            "interval",
            id=_SETTLEMENT_JOB_ID,
            minutes=settings.SETTLEMENT_INTERVAL_MINUTES,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        logger.info("Settlement scheduler started (every %d min)", settings.SETTLEMENT_INTERVAL_MINUTES)
    else:
        logger.info("Settlement scheduler disabled via config; trigger passes externally")

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
    await close_db()


app = FastAPI(
    title="Gambo settlement engine",
    description="Live-score normalization and bundle settlement",
    lifespan=lifespan,
)

app.add_middleware(StructuredLoggingMiddleware)

app.include_router(settlement_router)
app.include_router(admin_settlement_router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean validation errors without leaking internal field paths."""
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(l) for l in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error("Store unavailable: %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


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


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning("ValueError on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": "Invalid input."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check -- verifies the DB connection and which providers are configured."""
    from gambo.providers.registry import build_providers

    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except (ConnectionFailure, OperationFailure, AttributeError):
        db_ok = False

    providers = build_providers()
    try:
        names = sorted(provider.name for provider in providers)
    finally:
        for provider in providers:
            await provider.aclose()

    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "providers": names,
        "scheduler": scheduler.running,
    }
