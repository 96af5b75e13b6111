"""Folder repository - handles all folder-related database operations.

Folders are fetched together with their share tokens so the access policy
can be evaluated without further lookups.
"""
import uuid
from typing import Optional

from ...domain import Folder, as_utc
from .base import AsyncRepository
from .token_repository import AsyncTokenRepository


def folder_from_row(row: dict, tokens=()) -> Folder:
    return Folder(
        id=row["id"],
        owner_id=row["user_id"],
        name=row["name"],
        description=row.get("description"),
        cover_file_id=row.get("cover_file_id"),
        tokens=tuple(tokens),
        created_at=as_utc(row.get("created_at")),
    )


class AsyncFolderRepository(AsyncRepository):
    """Repository for folder entity operations.

    Examples:
        >>> repo = AsyncFolderRepository(db)
        >>> folder_id = await repo.create("Vacation", user_id)
        >>> folder = await repo.get_with_tokens(folder_id)
    """

    async def create(self, name: str, user_id: int, description: Optional[str] = None,
                     commit: bool = True) -> str:
        """Create a new folder.

        Args:
            name: Folder name
            user_id: Owner user ID
            description: Optional description
            commit: Commit immediately (False when batching with tokens)

        Returns:
            New folder UUID
        """
        folder_id = str(uuid.uuid4())
        await self._execute(
            """INSERT INTO folders (id, name, description, user_id)
               VALUES (?, ?, ?, ?)""",
            (folder_id, name.strip(), description, user_id)
        )
        if commit:
            await self._commit()
        return folder_id

    async def get_by_id(self, folder_id: str) -> dict | None:
        return await self._fetchone(
            "SELECT * FROM folders WHERE id = ?",
            (folder_id,)
        )

    async def get_with_tokens(self, folder_id: str) -> Folder | None:
        """Get folder with both kinds of share tokens attached.

        Args:
            folder_id: Folder UUID

        Returns:
            Folder or None
        """
        row = await self.get_by_id(folder_id)
        if not row:
            return None
        tokens = await AsyncTokenRepository(self._conn).list_for_folder(folder_id)
        return folder_from_row(row, tokens)

    async def list_by_user(self, user_id: int) -> list[dict]:
        """Folders owned by a user with file counts."""
        return await self._fetchall(
            """SELECT f.*,
                   (SELECT COUNT(*) FROM files fi WHERE fi.folder_id = f.id) AS file_count
               FROM folders f
               WHERE f.user_id = ?
               ORDER BY f.name""",
            (user_id,)
        )

    async def update(
        self,
        folder_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        cover_file_id: Optional[str] = None
    ) -> bool:
        """Update mutable folder metadata. Fields left as None are unchanged.

        Returns:
            True if folder existed and was updated
        """
        assignments = []
        params: list = []
        if name is not None:
            assignments.append("name = ?")
            params.append(name.strip())
        if description is not None:
            assignments.append("description = ?")
            params.append(description)
        if cover_file_id is not None:
            assignments.append("cover_file_id = ?")
            params.append(cover_file_id)
        if not assignments:
            return False

        cursor = await self._execute(
            f"UPDATE folders SET {', '.join(assignments)} WHERE id = ?",
            (*params, folder_id)
        )
        await self._commit()
        return cursor.rowcount > 0

    async def delete(self, folder_id: str) -> bool:
        """Delete folder. Files and tokens cascade.

        Returns:
            True if folder existed and was deleted
        """
        cursor = await self._execute(
            "DELETE FROM folders WHERE id = ?",
            (folder_id,)
        )
        await self._commit()
        return cursor.rowcount > 0

    async def commit(self) -> None:
        await self._commit()
