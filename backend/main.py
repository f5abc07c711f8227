"""BattleRank Backend - FastAPI Application."""
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from routers import api_router
from services.catalog import load_catalog
from services.exceptions import PersistenceFailure
from services.session import RankingSession
from services.session_store import SessionStore

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    # Startup
    session = RankingSession(load_catalog(settings.catalog_path))
    store = SessionStore() if settings.persistence_enabled else None

    if store is not None:
        try:
            snapshot = await store.load(settings.session_id)
        except PersistenceFailure as e:
            logger.warning(f"Starting with an empty session, snapshot unavailable: {e}")
            snapshot = None
        if snapshot is not None:
            session.import_state(snapshot)

    app.state.ranking_session = session
    app.state.session_store = store
    yield
    # Shutdown
    if store is not None:
        await store.close()


app = FastAPI(
    title="BattleRank API",
    description="Pairwise and triplet ranking of a closed catalog",
    version="0.1.0",
    lifespan=lifespan,
)

# Exception handler for validation errors (to log them)
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error for {request.method} {request.url}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": exc.errors()},
    )

# HTTP exception handler to log all HTTP exceptions
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP {exc.status_code} for {request.method} {request.url}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )

# General exception handler to catch all unhandled exceptions
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception for {request.method} {request.url}: {type(exc).__name__}: {exc}")
    logger.error(traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal server error: {str(exc)}"},
    )

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health(request: Request):
    """Health check endpoint - checks the session and snapshot store."""
    import redis.asyncio as redis

    checks = {
        "api": "ok",
        "session": "ok" if getattr(request.app.state, "ranking_session", None) else "missing",
        "redis": "disabled",
    }

    if settings.persistence_enabled:
        try:
            r = redis.from_url(settings.redis_url)
            await r.ping()
            await r.aclose()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {str(e)[:50]}"

    all_ok = all(v in ("ok", "disabled") for v in checks.values())
    return {
        "status": "healthy" if all_ok else "degraded",
        "checks": checks,
    }
