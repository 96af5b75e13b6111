# Repository Pattern Implementation
"""
Repositories abstract database operations.
Each entity has its own repository; all of them are async (aiosqlite).

Usage:
    conn = await get_async_db()
    folder = await AsyncFolderRepository(conn).get_with_tokens(folder_id)
"""
from .base import AsyncRepository, AsyncConnectionProtocol
from .user_repository import AsyncUserRepository
from .session_repository import AsyncSessionRepository
from .folder_repository import AsyncFolderRepository
from .file_repository import AsyncFileRepository
from .token_repository import AsyncTokenRepository

__all__ = [
    "AsyncRepository",
    "AsyncConnectionProtocol",
    "AsyncUserRepository",
    "AsyncSessionRepository",
    "AsyncFolderRepository",
    "AsyncFileRepository",
    "AsyncTokenRepository",
]
