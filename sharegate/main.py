"""Sharegate - FastAPI entry point."""
import logging
from contextlib import asynccontextmanager

import aiosqlite
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .application import AccessDenied
from .config import LOG_LEVEL
from .domain import AccessCheckError
from .infrastructure.database import close_async_db, get_async_db, init_async_db, release_async_db
from .infrastructure.repositories import AsyncSessionRepository
from .infrastructure.storage import StorageError
from .middleware import SessionMiddleware

# Import routers
from .routes.auth import router as auth_router
from .routes.folders import router as folders_router
from .routes.files import router as files_router
from .routes.tokens import router as tokens_router

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    await init_async_db()

    conn = await get_async_db()
    try:
        removed = await AsyncSessionRepository(conn).cleanup_expired()
    finally:
        await release_async_db(conn)
    if removed:
        log.info("Removed %d expired sessions", removed)

    yield

    await close_async_db()


app = FastAPI(title="Sharegate", lifespan=lifespan)

app.add_middleware(SessionMiddleware)


@app.exception_handler(AccessDenied)
async def access_denied_handler(request: Request, exc: AccessDenied):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.reason.value})


@app.exception_handler(AccessCheckError)
async def access_check_error_handler(request: Request, exc: AccessCheckError):
    log.exception("Access check failed for %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=503, content={"error": "unavailable"})


@app.exception_handler(aiosqlite.Error)
async def database_error_handler(request: Request, exc: aiosqlite.Error):
    log.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=503, content={"error": "unavailable"})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    log.exception("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=503, content={"error": "unavailable"})


# Include routers
app.include_router(auth_router)
app.include_router(folders_router)
app.include_router(files_router)
app.include_router(tokens_router)
