"""File repository - file records inside folders.

File bytes live in blob storage; this table only holds metadata.
"""
import uuid
from typing import Optional

from ...domain import File, Folder, as_utc
from .base import AsyncRepository
from .folder_repository import AsyncFolderRepository


def file_from_row(row: dict, folder: Folder) -> File:
    return File(
        id=row["id"],
        folder=folder,
        owner_id=row["user_id"],
        name=row["name"],
        extension=row["extension"],
        mime_type=row["mime_type"],
        size=row["size"],
        latitude=row["latitude"],
        longitude=row["longitude"],
        created_at=as_utc(row.get("created_at")),
    )


class AsyncFileRepository(AsyncRepository):
    """Repository for file records."""

    async def create(
        self,
        folder_id: str,
        user_id: int,
        name: str,
        extension: str = "",
        mime_type: str = "application/octet-stream",
        size: int = 0,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        file_id: Optional[str] = None,
    ) -> str:
        """Create a file record.

        Returns:
            File UUID
        """
        file_id = file_id or str(uuid.uuid4())
        await self._execute(
            """INSERT INTO files
               (id, folder_id, user_id, name, extension, mime_type, size, latitude, longitude)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (file_id, folder_id, user_id, name, extension, mime_type, size, latitude, longitude)
        )
        await self._commit()
        return file_id

    async def get_by_id(self, file_id: str) -> dict | None:
        return await self._fetchone(
            "SELECT * FROM files WHERE id = ?",
            (file_id,)
        )

    async def get_with_folder_tokens(self, file_id: str) -> File | None:
        """Get file with its parent folder and the folder's tokens.

        Args:
            file_id: File UUID

        Returns:
            File or None
        """
        row = await self.get_by_id(file_id)
        if not row:
            return None
        folder = await AsyncFolderRepository(self._conn).get_with_tokens(row["folder_id"])
        if folder is None:
            return None
        return file_from_row(row, folder)

    async def list_for_folder(self, folder: Folder) -> list[File]:
        rows = await self._fetchall(
            "SELECT * FROM files WHERE folder_id = ? ORDER BY created_at, name",
            (folder.id,)
        )
        return [file_from_row(row, folder) for row in rows]

    async def list_located(self, folder: Folder) -> list[File]:
        """Files of a folder that carry coordinates."""
        rows = await self._fetchall(
            """SELECT * FROM files
               WHERE folder_id = ? AND latitude IS NOT NULL AND longitude IS NOT NULL
               ORDER BY created_at""",
            (folder.id,)
        )
        return [file_from_row(row, folder) for row in rows]

    async def delete(self, file_id: str) -> bool:
        cursor = await self._execute(
            "DELETE FROM files WHERE id = ?",
            (file_id,)
        )
        await self._commit()
        return cursor.rowcount > 0
