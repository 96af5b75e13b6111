"""File service - uploads, downloads and deletion of files in folders.

Every operation runs through the resource gate first; file bytes live in
blob storage under ``File.storage_key``.
"""
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import HTTPException, UploadFile

from ... import config
from ...domain import AccessContext, File, Permission
from ...infrastructure.repositories import AsyncFileRepository
from ...infrastructure.storage import BlobNotFoundError, StorageInterface, get_storage
from .resource_gate import ResourceGate

log = logging.getLogger(__name__)


def file_to_dict(file: File) -> dict:
    return {
        "id": file.id,
        "folder_id": file.folder.id,
        "name": file.name,
        "extension": file.extension,
        "filename": file.filename,
        "mime_type": file.mime_type,
        "size": file.size,
        "latitude": file.latitude,
        "longitude": file.longitude,
        "created_at": file.created_at.isoformat() if file.created_at else None,
    }


def _validate_coordinates(latitude: Optional[float], longitude: Optional[float]) -> None:
    if (latitude is None) != (longitude is None):
        raise HTTPException(status_code=400, detail="Latitude and longitude must be given together")
    if latitude is None:
        return
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise HTTPException(status_code=400, detail="Coordinates out of range")


class FileService:
    """Service for file operations.

    Responsibilities:
    - Upload validation (size, coordinates) and storage
    - Streaming downloads and signed download URLs
    - File deletion (record and blob)
    """

    def __init__(
        self,
        gate: ResourceGate,
        file_repository: AsyncFileRepository,
        storage: Optional[StorageInterface] = None,
        max_upload_size: Optional[int] = None
    ):
        self.gate = gate
        self.file_repo = file_repository
        self.storage = storage or get_storage()
        self.max_upload_size = max_upload_size or config.MAX_UPLOAD_SIZE

    async def upload(
        self,
        context: AccessContext,
        folder_id: str,
        upload: UploadFile,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None
    ) -> File:
        """Upload a file into a folder.

        Files are owned by the folder owner, whoever uploads them.

        Args:
            context: Per-request access context
            folder_id: Target folder ID
            upload: The uploaded file
            latitude: Optional latitude for the map
            longitude: Optional longitude for the map

        Returns:
            Created File

        Raises:
            AccessDenied: Without WRITE access
            HTTPException: On validation errors
        """
        folder = await self.gate.load_folder(folder_id)
        # Rejected uploads don't count as a use
        verdict = await self.gate.enforce_or_reject(context, folder, Permission.WRITE)

        if not upload.filename:
            raise HTTPException(status_code=400, detail="File name is required")
        _validate_coordinates(latitude, longitude)

        content = await upload.read()
        if not content:
            raise HTTPException(status_code=400, detail="File is empty")
        if len(content) > self.max_upload_size:
            raise HTTPException(status_code=413, detail="File too large")

        original = Path(upload.filename)
        extension = original.suffix.lstrip(".").lower()
        mime_type = (
            upload.content_type
            or mimetypes.guess_type(upload.filename)[0]
            or "application/octet-stream"
        )

        file_id = str(uuid.uuid4())
        key = f"{folder.storage_prefix}{file_id}"
        await self.storage.upload(key, content, mime_type)
        try:
            await self.file_repo.create(
                folder.id,
                folder.owner_id,
                original.stem,
                extension=extension,
                mime_type=mime_type,
                size=len(content),
                latitude=latitude,
                longitude=longitude,
                file_id=file_id
            )
        except Exception:
            await self.storage.delete(key)
            raise
        await self.gate.record_use(context, verdict)

        log.info("Uploaded file %s (%d bytes) to folder %s", file_id, len(content), folder.id)
        return await self.file_repo.get_with_folder_tokens(file_id)

    async def get_file(self, context: AccessContext, file_id: str) -> File:
        """Load a file the requester may read, counting a use."""
        file = await self.gate.load_file(file_id)
        await self.gate.enforce_or_reject(context, file, Permission.READ, count_use=True)
        return file

    async def open_stream(self, file: File) -> AsyncIterator[bytes]:
        """Start streaming a file's blob.

        The first chunk is read here so a missing blob is reported as 404
        before any response headers are sent.
        """
        chunks = self.storage.stream(file.storage_key)
        try:
            first = await chunks.__anext__()
        except StopAsyncIteration:
            first = b""
        except BlobNotFoundError:
            log.warning("Blob missing for file %s", file.id)
            raise HTTPException(status_code=404, detail="File content not found")

        async def body():
            if first:
                yield first
            async for chunk in chunks:
                yield chunk

        return body()

    async def signed_url(self, context: AccessContext, file_id: str) -> dict:
        """Short-lived download URL for a readable file."""
        file = await self.get_file(context, file_id)
        return {
            "url": self.storage.get_signed_url(file.storage_key, config.SIGNED_URL_TTL),
            "expires_in": config.SIGNED_URL_TTL,
            "filename": file.filename,
        }

    async def delete_file(self, context: AccessContext, file_id: str) -> None:
        """Delete a file record and its blob. Owner only."""
        file = await self.gate.load_file(file_id)
        await self.gate.enforce_or_reject(context, file, Permission.DELETE)

        await self.file_repo.delete(file.id)
        await self.storage.delete(file.storage_key)
        log.info("Deleted file %s from folder %s", file.id, file.folder.id)
