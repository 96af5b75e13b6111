"""User repository - handles all user-related database operations."""
import bcrypt

from .base import AsyncRepository


class AsyncUserRepository(AsyncRepository):
    """Repository for user entity operations.

    Examples:
        >>> repo = AsyncUserRepository(db)
        >>> user_id = await repo.create("john", "john@example.com", "password123", "John Doe")
        >>> user = await repo.authenticate("john", "password123")
    """

    async def get_by_id(self, user_id: int) -> dict | None:
        return await self._fetchone(
            "SELECT * FROM users WHERE id = ?",
            (user_id,)
        )

    async def get_by_username(self, username: str) -> dict | None:
        """Get user by username (case-insensitive)."""
        return await self._fetchone(
            "SELECT * FROM users WHERE username = ?",
            (username.lower().strip(),)
        )

    async def create(
        self,
        username: str,
        email: str,
        password: str,
        display_name: str,
        role: str = "USER"
    ) -> int:
        """Create new user.

        Args:
            username: Unique username
            email: Unique email (matched against person access tokens)
            password: Plain text password (will be hashed)
            display_name: Display name
            role: 'USER' or 'ADMIN'

        Returns:
            New user ID
        """
        cursor = await self._execute(
            """INSERT INTO users
               (username, email, password_hash, display_name, role)
               VALUES (?, ?, ?, ?, ?)""",
            (username.lower().strip(), email.lower().strip(),
             self._hash_password(password), display_name.strip(), role)
        )
        await self._commit()
        return cursor.lastrowid

    async def authenticate(self, username: str, password: str) -> dict | None:
        """Return the user if the password matches, else None."""
        user = await self.get_by_username(username)
        if not user:
            return None
        if not self._verify_password(password, user["password_hash"]):
            return None
        return user

    # Private helper methods

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt."""
        hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt())
        return hashed.decode('utf-8')

    def _verify_password(self, password: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
        except ValueError:
            return False
