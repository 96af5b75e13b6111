"""File serving routes.

- /api/files/{id} - stream a file (READ)
- /api/files/{id}/download-url - short-lived signed URL (READ)
- /blobs/{key} - serves signed URLs issued by local storage
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse, StreamingResponse

from . import content_disposition
from ..application import FileService
from ..dependencies import get_access_context, get_file_service
from ..domain import AccessContext
from ..infrastructure.storage import LocalStorage, get_storage

router = APIRouter(tags=["files"])


@router.get("/api/files/{file_id}")
async def get_file(
    file_id: str,
    context: AccessContext = Depends(get_access_context),
    service: FileService = Depends(get_file_service)
):
    file = await service.get_file(context, file_id)
    body = await service.open_stream(file)
    return StreamingResponse(
        body,
        media_type=file.mime_type,
        headers={"Content-Disposition": content_disposition("inline", file.filename)}
    )


@router.get("/api/files/{file_id}/download-url")
async def get_download_url(
    file_id: str,
    context: AccessContext = Depends(get_access_context),
    service: FileService = Depends(get_file_service)
):
    return await service.signed_url(context, file_id)


@router.delete("/api/files/{file_id}")
async def delete_file(
    file_id: str,
    context: AccessContext = Depends(get_access_context),
    service: FileService = Depends(get_file_service)
):
    """Delete a file (owner only)."""
    await service.delete_file(context, file_id)
    return {"status": "ok"}


@router.get("/blobs/{key:path}")
def get_signed_blob(key: str, expires: int = Query(...), signature: str = Query(...)):
    """Serve a blob through a signed URL. The signature is the authorization."""
    storage = get_storage()
    if not isinstance(storage, LocalStorage):
        raise HTTPException(status_code=404, detail="Not found")
    if not storage.verify_signature(key, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired signature")
    if not storage.exists(key):
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(storage.get_path(key))
