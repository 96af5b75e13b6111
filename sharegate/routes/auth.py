"""Authentication routes."""
import logging

import aiosqlite
from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import JSONResponse

from ..config import SESSION_COOKIE, SESSION_MAX_AGE
from ..dependencies import get_db, require_user
from ..infrastructure.repositories import AsyncSessionRepository, AsyncUserRepository

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login")
async def login(
    username: str = Form(...),
    password: str = Form(...),
    db: aiosqlite.Connection = Depends(get_db)
):
    """Process login form and set the session cookie."""
    user = await AsyncUserRepository(db).authenticate(username, password)
    if not user:
        log.info("Failed login for %r", username)
        raise HTTPException(status_code=401, detail="Invalid username or password")

    session_id = await AsyncSessionRepository(db).create(
        user["id"], expires_hours=SESSION_MAX_AGE // 3600
    )

    response = JSONResponse({
        "status": "ok",
        "user": {
            "id": user["id"],
            "username": user["username"],
            "display_name": user["display_name"],
        },
    })
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        httponly=True,
        samesite="lax",
        max_age=SESSION_MAX_AGE
    )
    return response


@router.post("/logout")
async def logout(request: Request, db: aiosqlite.Connection = Depends(get_db)):
    """Logout user."""
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id:
        await AsyncSessionRepository(db).delete(session_id)

    response = JSONResponse({"status": "ok"})
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.get("/api/me")
def me(request: Request):
    """Current user."""
    user = require_user(request)
    return {
        "id": user["user_id"],
        "username": user["username"],
        "email": user["email"],
        "display_name": user["display_name"],
        "role": user["role"],
    }
