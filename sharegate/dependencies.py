"""Shared FastAPI dependencies."""
from typing import AsyncIterator

import aiosqlite
from fastapi import Depends, HTTPException, Request

from .application import FileService, FolderService, ResourceGate, ShareService
from .config import PERSON_TOKEN_TYPE, PIN_PARAM, SHARE_PARAM, TOKEN_TYPE_PARAM
from .domain import ANONYMOUS, AccessContext, Actor, ShareCredentials, TokenKind
from .infrastructure.database import get_async_db, release_async_db
from .infrastructure.repositories import (
    AsyncFileRepository,
    AsyncFolderRepository,
    AsyncTokenRepository,
)


async def get_db() -> AsyncIterator[aiosqlite.Connection]:
    """One pooled connection per request."""
    conn = await get_async_db()
    try:
        yield conn
    finally:
        await release_async_db(conn)


def get_actor(request: Request) -> Actor:
    """Actor resolved by SessionMiddleware."""
    return getattr(request.state, "actor", ANONYMOUS)


def get_current_user(request: Request) -> dict | None:
    """Get current session user from request state."""
    return getattr(request.state, "user", None)


def require_user(request: Request) -> dict:
    """Require authenticated user, raise 401 if not authenticated."""
    user = get_current_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def share_credentials_from_query(query_params) -> ShareCredentials:
    """Read ``share``, ``h`` and ``t`` from a request's query string.

    ``t=p`` selects person links; any other value (or none) selects owner links.
    """
    kind = (
        TokenKind.PERSON_LINK
        if query_params.get(TOKEN_TYPE_PARAM) == PERSON_TOKEN_TYPE
        else TokenKind.OWNER_LINK
    )
    return ShareCredentials(
        token=query_params.get(SHARE_PARAM) or None,
        pin=query_params.get(PIN_PARAM) or None,
        kind=kind,
    )


def get_access_context(request: Request) -> AccessContext:
    """The request's AccessContext, created on first use."""
    context = getattr(request.state, "access_context", None)
    if context is None:
        context = AccessContext(
            actor=get_actor(request),
            credentials=share_credentials_from_query(request.query_params),
        )
        request.state.access_context = context
    return context


def get_resource_gate(db: aiosqlite.Connection = Depends(get_db)) -> ResourceGate:
    return ResourceGate(
        AsyncFolderRepository(db),
        AsyncFileRepository(db),
        AsyncTokenRepository(db),
    )


def get_share_service(db: aiosqlite.Connection = Depends(get_db)) -> ShareService:
    return ShareService(AsyncTokenRepository(db), AsyncFolderRepository(db))


def get_folder_service(
    db: aiosqlite.Connection = Depends(get_db),
    gate: ResourceGate = Depends(get_resource_gate),
    share_service: ShareService = Depends(get_share_service),
) -> FolderService:
    return FolderService(gate, AsyncFolderRepository(db), AsyncFileRepository(db), share_service)


def get_file_service(
    db: aiosqlite.Connection = Depends(get_db),
    gate: ResourceGate = Depends(get_resource_gate),
) -> FileService:
    return FileService(gate, AsyncFileRepository(db))
