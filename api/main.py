"""Library Circulation API — FastAPI entry point.

Registers middleware, the library router, error translation and lifecycle
hooks. The library router is mounted under /api/library/.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.middleware import RequestContextMiddleware, get_current_request_id
from core.database import close_db, get_session_context, init_db
from core.observability.logging_setup import setup_logging
from library.exceptions import (
    AlreadyReserved,
    BookNotFound,
    BookUnavailable,
    InvalidRecord,
    LibraryError,
    RecordNotFound,
    Retryable,
    UserNotFound,
)
from library.models.schemas import ErrorResponse

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:3001"
).split(",")
AUTO_CREATE_SCHEMA = os.getenv("DB_AUTO_CREATE", "true").lower() == "true"
SEED_SAMPLE = os.getenv("LIBRARY_SEED_SAMPLE", "false").lower() == "true"

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    setup_logging()
    if AUTO_CREATE_SCHEMA:
        await init_db()
    if SEED_SAMPLE:
        from library.seed import seed_sample_data

        async with get_session_context() as session:
            await seed_sample_data(session)

    logger.info("Library API started")
    yield
    await close_db()
    logger.info("Library API shut down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Library Circulation",
    description="Borrowing, returns, reservations and overdue fines for a library",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request id middleware
app.add_middleware(RequestContextMiddleware)


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

# Most specific class first
_ERROR_STATUS: list[tuple[type[LibraryError], int]] = [
    (BookNotFound, 404),
    (RecordNotFound, 404),
    (UserNotFound, 404),
    (BookUnavailable, 409),
    (InvalidRecord, 409),
    (AlreadyReserved, 409),
    (Retryable, 503),
]


def status_for(exc: LibraryError) -> int:
    for error_type, status in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 400


def error_response(status: int, detail: str, code: str) -> JSONResponse:
    body = ErrorResponse(detail=detail, code=code, request_id=get_current_request_id())
    return JSONResponse(status_code=status, content=body.model_dump())


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return error_response(status, str(exc), exc.code)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.info("%s %s conflict: %s", request.method, request.url.path, exc.orig)
    return error_response(409, "Conflicts with existing data", "conflict")


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from library.router import router as library_router  # noqa: E402

app.include_router(library_router, prefix="/api/library", tags=["Library"])


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


@app.get("/")
async def root():
    return {
        "name": "Library Circulation",
        "version": VERSION,
        "docs": "/docs",
        "description": "Library circulation service",
    }
