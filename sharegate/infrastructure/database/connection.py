"""Async database connection management.

Provides async database connectivity using aiosqlite.
"""
import asyncio
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiosqlite

from ... import config

log = logging.getLogger(__name__)


# =============================================================================
# SQLite3 datetime adapter (Python 3.12 compatibility)
# =============================================================================
def _adapt_datetime(dt: datetime) -> str:
    """Adapt datetime to ISO 8601 string for SQLite."""
    return dt.isoformat()

def _convert_datetime(val: bytes) -> datetime:
    """Convert ISO 8601 string from SQLite to datetime."""
    return datetime.fromisoformat(val.decode())

sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("DATETIME", _convert_datetime)
sqlite3.register_converter("TIMESTAMP", _convert_datetime)

# Global connection pool reference
_pool: Optional['AsyncConnectionPool'] = None


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        display_name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'USER' CHECK(role IN ('USER', 'ADMIN')),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        user_id INTEGER NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        expires_at TIMESTAMP NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS folders (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        cover_file_id TEXT,
        user_id INTEGER NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS files (
        id TEXT PRIMARY KEY,
        folder_id TEXT NOT NULL,
        user_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        extension TEXT NOT NULL DEFAULT '',
        mime_type TEXT NOT NULL DEFAULT 'application/octet-stream',
        size INTEGER NOT NULL DEFAULT 0,
        latitude REAL,
        longitude REAL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (folder_id) REFERENCES folders(id) ON DELETE CASCADE,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS access_tokens (
        id TEXT PRIMARY KEY,
        token TEXT NOT NULL UNIQUE,
        folder_id TEXT NOT NULL,
        permission TEXT NOT NULL CHECK(permission IN ('READ', 'WRITE', 'ADMIN')),
        expires TIMESTAMP NOT NULL,
        is_active BOOLEAN NOT NULL DEFAULT 1,
        locked BOOLEAN NOT NULL DEFAULT 0,
        pin_code_hash TEXT,
        allow_map BOOLEAN NOT NULL DEFAULT 0,
        uses INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (folder_id) REFERENCES folders(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS person_access_tokens (
        id TEXT PRIMARY KEY,
        token TEXT NOT NULL UNIQUE,
        folder_id TEXT NOT NULL,
        email TEXT NOT NULL,
        permission TEXT NOT NULL CHECK(permission IN ('READ', 'WRITE', 'ADMIN')),
        expires TIMESTAMP NOT NULL,
        is_active BOOLEAN NOT NULL DEFAULT 1,
        locked BOOLEAN NOT NULL DEFAULT 0,
        pin_code_hash TEXT,
        allow_map BOOLEAN NOT NULL DEFAULT 0,
        uses INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (folder_id) REFERENCES folders(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_files_folder ON files(folder_id)",
    "CREATE INDEX IF NOT EXISTS idx_access_tokens_folder ON access_tokens(folder_id)",
    "CREATE INDEX IF NOT EXISTS idx_person_access_tokens_folder ON person_access_tokens(folder_id)",
    "CREATE INDEX IF NOT EXISTS idx_person_access_tokens_email ON person_access_tokens(email)",
)


async def connect(db_path: Path) -> aiosqlite.Connection:
    """Open a configured connection (row factory, foreign keys on)."""
    conn = await aiosqlite.connect(
        db_path,
        detect_types=sqlite3.PARSE_DECLTYPES
    )
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys = ON")
    return conn


async def create_schema(conn: aiosqlite.Connection) -> None:
    """Create all tables on the given connection."""
    for statement in SCHEMA:
        await conn.execute(statement)
    await conn.commit()


class AsyncConnectionPool:
    """Simple async connection pool for aiosqlite.

    aiosqlite connections can be shared across coroutines, but each request
    gets its own so transactions don't interleave.
    """

    def __init__(self, db_path: Path, max_connections: int = 10):
        self.db_path = db_path
        self.max_connections = max_connections
        self._connections: list[aiosqlite.Connection] = []
        self._lock = asyncio.Lock()

    async def acquire(self) -> aiosqlite.Connection:
        """Acquire a connection from the pool."""
        async with self._lock:
            # Return existing connection if available
            if self._connections:
                return self._connections.pop()

        return await connect(self.db_path)

    async def release(self, conn: aiosqlite.Connection) -> None:
        """Release a connection back to the pool."""
        async with self._lock:
            if len(self._connections) < self.max_connections:
                self._connections.append(conn)
                return
        await conn.close()

    async def close_all(self) -> None:
        """Close all connections in the pool."""
        async with self._lock:
            for conn in self._connections:
                await conn.close()
            self._connections.clear()


def _get_pool() -> AsyncConnectionPool:
    global _pool
    if _pool is None:
        _pool = AsyncConnectionPool(config.DATABASE_PATH)
    return _pool


async def get_async_db() -> aiosqlite.Connection:
    """Get async database connection.

    Returns:
        Async database connection
    """
    return await _get_pool().acquire()


async def release_async_db(conn: aiosqlite.Connection) -> None:
    """Release async database connection back to pool.

    Args:
        conn: Connection to release
    """
    if _pool:
        await _pool.release(conn)
    else:
        await conn.close()


async def init_async_db() -> None:
    """Initialize database schema using async connection."""
    conn = await get_async_db()
    try:
        await create_schema(conn)
        log.info("Database schema ready at %s", config.DATABASE_PATH)
    finally:
        await release_async_db(conn)


async def close_async_db() -> None:
    """Close all async database connections."""
    global _pool
    if _pool:
        await _pool.close_all()
        _pool = None
