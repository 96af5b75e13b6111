"""Share link administration routes.

All of these are for folder owners, except ``/api/shared-with-me`` which
lists person links addressed to the current user's email.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from ..application import ShareService
from ..dependencies import get_share_service, require_user
from ..domain import TokenKind

router = APIRouter(prefix="/api", tags=["share-links"])


class TokenCreate(BaseModel):
    permission: str  # 'READ' | 'WRITE' | 'ADMIN'
    expires: datetime
    allow_map: bool = False
    pin: str | None = None


class PersonTokenCreate(BaseModel):
    emails: list[str]
    permission: str
    expires: datetime
    allow_map: bool = False


class ActiveUpdate(BaseModel):
    is_active: bool


class PinLock(BaseModel):
    pin: str


class TokenIds(BaseModel):
    ids: list[str]


# === Per folder ===

@router.get("/folders/{folder_id}/tokens")
async def list_folder_tokens(
    request: Request,
    folder_id: str,
    service: ShareService = Depends(get_share_service)
):
    user = require_user(request)
    tokens = await service.list_folder_tokens(folder_id, user["user_id"])
    return [t.to_public_dict() for t in tokens]


@router.post("/folders/{folder_id}/tokens")
async def create_token(
    request: Request,
    folder_id: str,
    data: TokenCreate,
    service: ShareService = Depends(get_share_service)
):
    """Create an owner link, optionally locked with a PIN."""
    user = require_user(request)
    token = await service.create_token(
        folder_id, user["user_id"], data.permission, data.expires,
        allow_map=data.allow_map, pin=data.pin
    )
    return {"status": "ok", "token": token.to_public_dict()}


@router.post("/folders/{folder_id}/person-tokens")
async def create_person_tokens(
    request: Request,
    folder_id: str,
    data: PersonTokenCreate,
    service: ShareService = Depends(get_share_service)
):
    """Invite people by email."""
    user = require_user(request)
    tokens = await service.create_person_tokens(
        folder_id, user["user_id"], data.emails, data.permission, data.expires,
        allow_map=data.allow_map
    )
    return {"status": "ok", "tokens": [t.to_public_dict() for t in tokens]}


# === Per token ===

@router.get("/tokens")
async def list_links(
    request: Request,
    kind: TokenKind = TokenKind.OWNER_LINK,
    service: ShareService = Depends(get_share_service)
):
    """All links of one kind across the user's folders."""
    user = require_user(request)
    entries = await service.list_links(user["user_id"], kind)
    return [
        {**entry["token"].to_public_dict(), "folder_name": entry["folder_name"]}
        for entry in entries
    ]


@router.put("/tokens/{kind}/{token_id}/active")
async def set_token_active(
    request: Request,
    kind: TokenKind,
    token_id: str,
    data: ActiveUpdate,
    service: ShareService = Depends(get_share_service)
):
    user = require_user(request)
    token = await service.set_active(token_id, kind, user["user_id"], data.is_active)
    return {"status": "ok", "token": token.to_public_dict()}


@router.put("/tokens/{kind}/{token_id}/lock")
async def lock_token(
    request: Request,
    kind: TokenKind,
    token_id: str,
    data: PinLock,
    service: ShareService = Depends(get_share_service)
):
    """Lock a link with a new PIN."""
    user = require_user(request)
    token = await service.lock(token_id, kind, user["user_id"], data.pin)
    return {"status": "ok", "token": token.to_public_dict()}


@router.delete("/tokens/{kind}/{token_id}/lock")
async def unlock_token(
    request: Request,
    kind: TokenKind,
    token_id: str,
    service: ShareService = Depends(get_share_service)
):
    user = require_user(request)
    token = await service.unlock(token_id, kind, user["user_id"])
    return {"status": "ok", "token": token.to_public_dict()}


@router.post("/tokens/{kind}/delete")
async def delete_tokens(
    request: Request,
    kind: TokenKind,
    data: TokenIds,
    service: ShareService = Depends(get_share_service)
):
    """Delete several links at once."""
    user = require_user(request)
    deleted = await service.delete_tokens(data.ids, kind, user["user_id"])
    return {"status": "ok", "deleted": deleted}


# === Recipients ===

@router.get("/shared-with-me")
async def shared_with_me(request: Request, service: ShareService = Depends(get_share_service)):
    user = require_user(request)
    entries = await service.shared_with_me(user["email"])
    return [
        {
            "folder_id": entry["token"].folder_id,
            "folder_name": entry["folder_name"],
            "owner_name": entry["owner_name"],
            "permission": entry["token"].permission.value,
            "token": entry["token"].token,
            "locked": entry["token"].locked,
        }
        for entry in entries
    ]
