"""Application middleware."""
import logging

import aiosqlite
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .application.services.session_resolver import SessionResolver
from .config import SESSION_COOKIE
from .domain import ANONYMOUS
from .infrastructure.database import get_async_db, release_async_db
from .infrastructure.repositories import AsyncSessionRepository

log = logging.getLogger(__name__)


class SessionMiddleware(BaseHTTPMiddleware):
    """Resolve the session cookie once per request.

    Sets ``request.state.actor`` (ANONYMOUS when there is no valid session)
    and ``request.state.user`` (session row with user info, or None).
    Routes never look at the cookie themselves.
    """

    async def dispatch(self, request: Request, call_next):
        request.state.actor = ANONYMOUS
        request.state.user = None

        session_id = request.cookies.get(SESSION_COOKIE)
        if session_id:
            try:
                conn = await get_async_db()
                try:
                    resolver = SessionResolver(AsyncSessionRepository(conn))
                    session = await resolver.resolve_session(session_id)
                finally:
                    await release_async_db(conn)
            except aiosqlite.Error:
                log.exception("Session lookup failed")
                return JSONResponse(status_code=503, content={"error": "unavailable"})

            if session:
                request.state.actor = SessionResolver.actor_for(session)
                request.state.user = session

        return await call_next(request)
