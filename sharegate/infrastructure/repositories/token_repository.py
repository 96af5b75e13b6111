"""Token repository - the share token store.

Owner links live in ``access_tokens``; person links (email invitations)
live in ``person_access_tokens`` with an extra ``email`` column. Both map
to :class:`~sharegate.domain.AccessToken` with the matching ``kind``.
"""
import secrets
import uuid
from datetime import datetime
from typing import Iterable, Optional

from ...domain import AccessToken, TokenKind, TokenPermission, as_utc
from .base import AsyncRepository

_TABLES = {
    TokenKind.OWNER_LINK: "access_tokens",
    TokenKind.PERSON_LINK: "person_access_tokens",
}


def token_from_row(row: dict, kind: TokenKind) -> AccessToken:
    """Build an AccessToken from a database row."""
    return AccessToken(
        id=row["id"],
        token=row["token"],
        folder_id=row["folder_id"],
        permission=TokenPermission(row["permission"]),
        expires=as_utc(row["expires"]),
        is_active=bool(row["is_active"]),
        locked=bool(row["locked"]),
        pin_code_hash=row["pin_code_hash"],
        allow_map=bool(row["allow_map"]),
        uses=row["uses"],
        kind=kind,
        email=row.get("email") if kind is TokenKind.PERSON_LINK else None,
        created_at=as_utc(row.get("created_at")),
    )


def generate_token() -> str:
    """New bearer secret for a share link."""
    return secrets.token_urlsafe(24)


class AsyncTokenRepository(AsyncRepository):
    """Repository for share tokens of both kinds.

    Examples:
        >>> repo = AsyncTokenRepository(db)
        >>> token = await repo.create(folder_id, TokenPermission.READ, expires)
        >>> await repo.increment_uses(token.id, token.kind)
    """

    @staticmethod
    def _table(kind: TokenKind) -> str:
        return _TABLES[TokenKind(kind)]

    async def create(
        self,
        folder_id: str,
        permission: TokenPermission,
        expires: datetime,
        *,
        kind: TokenKind = TokenKind.OWNER_LINK,
        email: Optional[str] = None,
        allow_map: bool = False,
        pin_code_hash: Optional[str] = None,
        commit: bool = True,
    ) -> AccessToken:
        """Create a token on a folder.

        Args:
            folder_id: Folder the token grants access to
            permission: READ, WRITE or ADMIN
            expires: Expiry (aware datetime)
            kind: Owner link or person link
            email: Recipient, required for person links
            allow_map: Whether the token may read the map
            pin_code_hash: Lock the token with this PIN hash
            commit: Commit immediately (False when batching)

        Returns:
            The created AccessToken
        """
        token_id = str(uuid.uuid4())
        token_value = generate_token()
        locked = pin_code_hash is not None
        if kind is TokenKind.PERSON_LINK:
            await self._execute(
                """INSERT INTO person_access_tokens
                   (id, token, folder_id, email, permission, expires,
                    locked, pin_code_hash, allow_map)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (token_id, token_value, folder_id, email, permission.value,
                 expires, locked, pin_code_hash, allow_map)
            )
        else:
            await self._execute(
                """INSERT INTO access_tokens
                   (id, token, folder_id, permission, expires,
                    locked, pin_code_hash, allow_map)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (token_id, token_value, folder_id, permission.value,
                 expires, locked, pin_code_hash, allow_map)
            )
        if commit:
            await self._commit()
        return await self.get_by_id(token_id, kind)

    async def get_by_id(self, token_id: str, kind: TokenKind) -> AccessToken | None:
        row = await self._fetchone(
            f"SELECT * FROM {self._table(kind)} WHERE id = ?",
            (token_id,)
        )
        return token_from_row(row, kind) if row else None

    async def get_by_token(self, token: str, kind: TokenKind) -> AccessToken | None:
        row = await self._fetchone(
            f"SELECT * FROM {self._table(kind)} WHERE token = ?",
            (token,)
        )
        return token_from_row(row, kind) if row else None

    async def list_for_folder(self, folder_id: str) -> list[AccessToken]:
        """All tokens of a folder, owner links first."""
        tokens = []
        for kind in (TokenKind.OWNER_LINK, TokenKind.PERSON_LINK):
            rows = await self._fetchall(
                f"""SELECT * FROM {self._table(kind)}
                    WHERE folder_id = ? ORDER BY created_at, id""",
                (folder_id,)
            )
            tokens.extend(token_from_row(row, kind) for row in rows)
        return tokens

    async def list_for_owner(self, user_id: int, kind: TokenKind) -> list[dict]:
        """Tokens of one kind across all folders owned by a user.

        Returns:
            List of {"token": AccessToken, "folder_name": str}
        """
        rows = await self._fetchall(
            f"""SELECT t.*, f.name AS folder_name
                FROM {self._table(kind)} t
                JOIN folders f ON t.folder_id = f.id
                WHERE f.user_id = ?
                ORDER BY f.name, t.created_at""",
            (user_id,)
        )
        return [
            {"token": token_from_row(row, kind), "folder_name": row["folder_name"]}
            for row in rows
        ]

    async def list_for_email(self, email: str) -> list[dict]:
        """Person links addressed to an email, with folder and owner info."""
        rows = await self._fetchall(
            """SELECT t.*, f.name AS folder_name, u.display_name AS owner_name
               FROM person_access_tokens t
               JOIN folders f ON t.folder_id = f.id
               JOIN users u ON f.user_id = u.id
               WHERE lower(t.email) = lower(?)
               ORDER BY f.name""",
            (email,)
        )
        return [
            {
                "token": token_from_row(row, TokenKind.PERSON_LINK),
                "folder_name": row["folder_name"],
                "owner_name": row["owner_name"],
            }
            for row in rows
        ]

    async def increment_uses(self, token_id: str, kind: TokenKind) -> bool:
        """Atomically add one use to a token.

        Returns:
            True if the token existed
        """
        cursor = await self._execute(
            f"UPDATE {self._table(kind)} SET uses = uses + 1 WHERE id = ?",
            (token_id,)
        )
        await self._commit()
        return cursor.rowcount > 0

    async def set_locked(self, token_id: str, kind: TokenKind, pin_code_hash: Optional[str]) -> bool:
        """Lock with a PIN hash, or unlock when ``pin_code_hash`` is None."""
        cursor = await self._execute(
            f"UPDATE {self._table(kind)} SET locked = ?, pin_code_hash = ? WHERE id = ?",
            (pin_code_hash is not None, pin_code_hash, token_id)
        )
        await self._commit()
        return cursor.rowcount > 0

    async def set_active(self, token_id: str, kind: TokenKind, is_active: bool) -> bool:
        cursor = await self._execute(
            f"UPDATE {self._table(kind)} SET is_active = ? WHERE id = ?",
            (is_active, token_id)
        )
        await self._commit()
        return cursor.rowcount > 0

    async def delete(self, token_id: str, kind: TokenKind) -> bool:
        cursor = await self._execute(
            f"DELETE FROM {self._table(kind)} WHERE id = ?",
            (token_id,)
        )
        await self._commit()
        return cursor.rowcount > 0

    async def delete_many_for_owner(
        self,
        token_ids: Iterable[str],
        kind: TokenKind,
        owner_id: int
    ) -> int:
        """Delete tokens by id, restricted to folders owned by ``owner_id``.

        Returns:
            Number of tokens deleted
        """
        token_ids = list(token_ids)
        if not token_ids:
            return 0
        placeholders = ",".join("?" * len(token_ids))
        cursor = await self._execute(
            f"""DELETE FROM {self._table(kind)}
                WHERE id IN ({placeholders})
                  AND folder_id IN (SELECT id FROM folders WHERE user_id = ?)""",
            (*token_ids, owner_id)
        )
        await self._commit()
        return cursor.rowcount

    async def commit(self) -> None:
        await self._commit()
