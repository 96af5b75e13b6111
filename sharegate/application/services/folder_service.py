"""Folder service - folder lifecycle and folder-level reads.

Creation gives every folder its companion READ and WRITE links; reads,
updates, downloads and the map all go through the resource gate.
"""
import io
import logging
import zipfile
from typing import Optional

from fastapi import HTTPException

from ...domain import AccessContext, Folder, Permission
from ...infrastructure.repositories import AsyncFileRepository, AsyncFolderRepository
from ...infrastructure.storage import StorageInterface, get_storage
from .access_policy import token_grants
from .file_service import file_to_dict
from .resource_gate import ResourceGate
from .share_service import ShareService

log = logging.getLogger(__name__)


class FolderService:
    """Service for folder operations.

    Responsibilities:
    - Folder creation with default share links
    - Folder view (metadata, files, what the requester may do)
    - Metadata updates and deletion
    - ZIP download and map points
    """

    MAX_NAME_LENGTH = 255

    def __init__(
        self,
        gate: ResourceGate,
        folder_repository: AsyncFolderRepository,
        file_repository: AsyncFileRepository,
        share_service: ShareService,
        storage: Optional[StorageInterface] = None
    ):
        self.gate = gate
        self.folder_repo = folder_repository
        self.file_repo = file_repository
        self.share_service = share_service
        self.storage = storage or get_storage()

    def _validate_name(self, name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Folder name is required")
        if len(name) > self.MAX_NAME_LENGTH:
            raise HTTPException(status_code=400, detail="Folder name is too long")
        return name

    async def create_folder(
        self,
        name: str,
        user_id: int,
        description: Optional[str] = None
    ) -> Folder:
        """Create a folder with its companion READ and WRITE links.

        Returns:
            Created Folder with tokens
        """
        name = self._validate_name(name)
        folder_id = await self.folder_repo.create(name, user_id, description, commit=False)
        await self.share_service.create_default_tokens(folder_id, commit=False)
        await self.folder_repo.commit()

        log.info("Created folder %s for user %s", folder_id, user_id)
        return await self.folder_repo.get_with_tokens(folder_id)

    async def get_folder_view(self, context: AccessContext, folder_id: str) -> dict:
        """Folder metadata and files for a reader.

        The response also tells the client whether the same credentials
        allow uploads and the map. Both follow from the token that granted
        READ, so the PIN is verified once per view.
        """
        folder = await self.gate.load_folder(folder_id)
        verdict = await self.gate.enforce_or_reject(
            context, folder, Permission.READ, count_use=True
        )

        # Only the owner is allowed without a token
        is_owner = verdict.token is None
        can_write = is_owner or token_grants(verdict.token, Permission.WRITE)
        can_map = is_owner or token_grants(verdict.token, Permission.READ_MAP)
        files = await self.file_repo.list_for_folder(folder)

        return {
            "id": folder.id,
            "name": folder.name,
            "description": folder.description,
            "cover_file_id": folder.cover_file_id,
            "is_owner": is_owner,
            "can_write": can_write,
            "can_map": can_map,
            "files": [file_to_dict(f) for f in files],
        }

    async def update_folder(
        self,
        context: AccessContext,
        folder_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        cover_file_id: Optional[str] = None
    ) -> Folder:
        """Update name, description or cover. Needs WRITE.

        Raises:
            AccessDenied: Without WRITE access
            HTTPException: On validation errors
        """
        folder = await self.gate.load_folder(folder_id)
        await self.gate.enforce_or_reject(context, folder, Permission.WRITE, count_use=True)

        if name is not None:
            name = self._validate_name(name)
        if cover_file_id is not None:
            cover = await self.file_repo.get_by_id(cover_file_id)
            if not cover or cover["folder_id"] != folder.id:
                raise HTTPException(status_code=400, detail="Cover must be a file in this folder")

        await self.folder_repo.update(folder.id, name, description, cover_file_id)
        return await self.folder_repo.get_with_tokens(folder.id)

    async def delete_folder(self, context: AccessContext, folder_id: str) -> int:
        """Delete a folder, its files, its tokens and its blobs. Owner only.

        Returns:
            Number of blobs removed
        """
        folder = await self.gate.load_folder(folder_id)
        await self.gate.enforce_or_reject(context, folder, Permission.DELETE)

        await self.folder_repo.delete(folder.id)
        removed = await self.storage.delete_by_prefix(folder.storage_prefix)
        log.info("Deleted folder %s (%d blobs)", folder.id, removed)
        return removed

    async def build_zip(self, context: AccessContext, folder_id: str) -> tuple[str, bytes]:
        """Archive every file of a readable folder.

        Returns:
            (archive filename, archive bytes)
        """
        folder = await self.gate.load_folder(folder_id)
        await self.gate.enforce_or_reject(context, folder, Permission.READ, count_use=True)

        buffer = io.BytesIO()
        used_names: set[str] = set()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for file in await self.file_repo.list_for_folder(folder):
                archive.writestr(
                    _unique_name(file.filename or file.id, used_names),
                    await self.storage.download(file.storage_key)
                )

        return f"{folder.name or folder.id}.zip", buffer.getvalue()

    async def map_points(self, context: AccessContext, folder_id: str) -> list[dict]:
        """Coordinates of the folder's located files. Needs READ_MAP."""
        folder = await self.gate.load_folder(folder_id)
        await self.gate.enforce_or_reject(context, folder, Permission.READ_MAP, count_use=True)

        return [
            {
                "file_id": f.id,
                "name": f.filename,
                "latitude": f.latitude,
                "longitude": f.longitude,
            }
            for f in await self.file_repo.list_located(folder)
        ]


def _unique_name(name: str, used: set[str]) -> str:
    candidate = name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    counter = 1
    while candidate in used:
        candidate = f"{stem} ({counter}).{ext}" if ext else f"{stem} ({counter})"
        counter += 1
    used.add(candidate)
    return candidate
