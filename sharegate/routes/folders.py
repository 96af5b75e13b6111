"""Folder routes.

Share credentials travel in the query string (``share``, ``h``, ``t``) and
are read once per request by ``get_access_context``.
"""
from typing import Optional

import aiosqlite
from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from pydantic import BaseModel

from . import content_disposition
from ..application import FileService, FolderService, ResourceGate
from ..application.services import file_to_dict
from ..dependencies import (
    get_access_context,
    get_db,
    get_file_service,
    get_folder_service,
    get_resource_gate,
    require_user,
)
from ..domain import AccessContext, Folder, Permission
from ..infrastructure.repositories import AsyncFolderRepository

router = APIRouter(prefix="/api/folders", tags=["folders"])


# Pydantic models for request validation
class FolderCreate(BaseModel):
    name: str
    description: str | None = None


class FolderUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    cover_file_id: str | None = None


def folder_to_dict(folder: Folder, include_tokens: bool = False) -> dict:
    data = {
        "id": folder.id,
        "owner_id": folder.owner_id,
        "name": folder.name,
        "description": folder.description,
        "cover_file_id": folder.cover_file_id,
    }
    if include_tokens:
        data["tokens"] = [t.to_public_dict() for t in folder.tokens]
    return data


# === Folder CRUD ===

@router.get("")
async def list_folders(request: Request, db: aiosqlite.Connection = Depends(get_db)):
    """Folders owned by the current user."""
    user = require_user(request)
    return await AsyncFolderRepository(db).list_by_user(user["user_id"])


@router.post("")
async def create_folder(
    request: Request,
    data: FolderCreate,
    service: FolderService = Depends(get_folder_service)
):
    """Create a new folder with its default share links."""
    user = require_user(request)
    folder = await service.create_folder(data.name, user["user_id"], data.description)
    return {"status": "ok", "folder": folder_to_dict(folder, include_tokens=True)}


@router.get("/{folder_id}")
async def get_folder(
    folder_id: str,
    context: AccessContext = Depends(get_access_context),
    service: FolderService = Depends(get_folder_service)
):
    return await service.get_folder_view(context, folder_id)


@router.put("/{folder_id}")
async def update_folder(
    folder_id: str,
    data: FolderUpdate,
    context: AccessContext = Depends(get_access_context),
    service: FolderService = Depends(get_folder_service)
):
    """Update folder name, description or cover."""
    folder = await service.update_folder(
        context, folder_id, data.name, data.description, data.cover_file_id
    )
    return {"status": "ok", "folder": folder_to_dict(folder)}


@router.delete("/{folder_id}")
async def delete_folder(
    folder_id: str,
    context: AccessContext = Depends(get_access_context),
    service: FolderService = Depends(get_folder_service)
):
    """Delete folder and all its contents."""
    removed = await service.delete_folder(context, folder_id)
    return {"status": "ok", "deleted_files": removed}


# === Folder contents ===

@router.get("/{folder_id}/download")
async def download_folder(
    folder_id: str,
    context: AccessContext = Depends(get_access_context),
    service: FolderService = Depends(get_folder_service)
):
    """Download every file of the folder as a ZIP archive."""
    filename, archive = await service.build_zip(context, folder_id)
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": content_disposition("attachment", filename)}
    )


@router.get("/{folder_id}/map")
async def folder_map(
    folder_id: str,
    context: AccessContext = Depends(get_access_context),
    service: FolderService = Depends(get_folder_service)
):
    return {"points": await service.map_points(context, folder_id)}


@router.post("/{folder_id}/files")
async def upload_file(
    folder_id: str,
    file: UploadFile = File(...),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
    context: AccessContext = Depends(get_access_context),
    service: FileService = Depends(get_file_service)
):
    """Upload a file into a folder (needs WRITE)."""
    created = await service.upload(context, folder_id, file, latitude, longitude)
    return {"status": "ok", "file": file_to_dict(created)}


@router.get("/{folder_id}/validate-share")
async def validate_share(
    folder_id: str,
    context: AccessContext = Depends(get_access_context),
    gate: ResourceGate = Depends(get_resource_gate)
):
    """Check the presented share link without counting a use.

    Clients use this to decide between showing the folder, a PIN prompt
    or an error page.
    """
    folder = await gate.load_folder(folder_id)
    verdict = await gate.enforce(context, folder, Permission.READ)
    if not verdict.allowed:
        return {"result": verdict.reason.value}
    return {
        "result": "valid-token",
        "permission": verdict.token.permission.value if verdict.token else "OWNER",
        "allow_map": verdict.token.allow_map if verdict.token else True,
    }
