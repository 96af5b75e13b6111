"""Share service - lifecycle of share tokens.

Owners create, lock, deactivate and delete the links that grant access to
their folders. Access checks themselves live in the access policy; this
service only manages the token records.
"""
import calendar
import logging
from datetime import datetime
from typing import Iterable, Optional

from fastapi import HTTPException

from ... import config
from ...domain import AccessToken, TokenKind, TokenPermission, as_utc, utcnow
from ...infrastructure.repositories import AsyncFolderRepository, AsyncTokenRepository
from .pin_verifier import hash_pin, is_valid_pin

log = logging.getLogger(__name__)


def add_months(value: datetime, months: int) -> datetime:
    """Shift a datetime by calendar months, clamping the day to the month's end."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


class ShareService:
    """Service for share token management.

    Responsibilities:
    - Create owner links and person invitations
    - Default companion links for new folders
    - Activate/deactivate, lock/unlock with a PIN, delete
    - List links per folder, per owner, per recipient email
    """

    def __init__(
        self,
        token_repository: AsyncTokenRepository,
        folder_repository: AsyncFolderRepository
    ):
        self.token_repo = token_repository
        self.folder_repo = folder_repository

    @staticmethod
    def _parse_permission(permission: str) -> TokenPermission:
        try:
            return TokenPermission(str(permission).upper())
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail="Permission must be 'READ', 'WRITE' or 'ADMIN'"
            )

    @staticmethod
    def _validate_expiry(expires: datetime, now: Optional[datetime] = None) -> datetime:
        expires = as_utc(expires)
        if expires <= (now or utcnow()):
            raise HTTPException(status_code=400, detail="Expiry date must be in the future")
        return expires

    async def _require_folder_owner(self, folder_id: str, user_id: int) -> dict:
        folder = await self.folder_repo.get_by_id(folder_id)
        if not folder:
            raise HTTPException(status_code=404, detail="Folder not found")
        if folder["user_id"] != user_id:
            raise HTTPException(
                status_code=403,
                detail="Only folder owner can manage share links"
            )
        return folder

    async def _get_owned_token(self, token_id: str, kind: TokenKind, user_id: int) -> AccessToken:
        token = await self.token_repo.get_by_id(token_id, kind)
        if token is None:
            raise HTTPException(status_code=404, detail="Share link not found")
        await self._require_folder_owner(token.folder_id, user_id)
        return token

    async def create_token(
        self,
        folder_id: str,
        user_id: int,
        permission: str,
        expires: datetime,
        allow_map: bool = False,
        pin: Optional[str] = None
    ) -> AccessToken:
        """Create an owner link on a folder.

        Args:
            folder_id: Target folder ID
            user_id: Requesting user (must be owner)
            permission: 'READ', 'WRITE' or 'ADMIN'
            expires: Expiry, must be in the future
            allow_map: Whether the link may read the map
            pin: Optional PIN to lock the link with

        Returns:
            Created AccessToken

        Raises:
            HTTPException: On validation errors or if not owner
        """
        token_permission = self._parse_permission(permission)
        expires = self._validate_expiry(expires)
        pin_hash = self._hash_new_pin(pin) if pin else None
        await self._require_folder_owner(folder_id, user_id)

        token = await self.token_repo.create(
            folder_id,
            token_permission,
            expires,
            allow_map=allow_map,
            pin_code_hash=pin_hash
        )
        log.info("Created %s link %s on folder %s", token.permission.value, token.id, folder_id)
        return token

    async def create_person_tokens(
        self,
        folder_id: str,
        user_id: int,
        emails: Iterable[str],
        permission: str,
        expires: datetime,
        allow_map: bool = False
    ) -> list[AccessToken]:
        """Invite people by email. One person link per distinct address.

        Raises:
            HTTPException: On invalid emails, validation errors, or if not owner
        """
        token_permission = self._parse_permission(permission)
        expires = self._validate_expiry(expires)

        recipients = []
        for email in emails:
            email = (email or "").strip()
            if "@" not in email or email.startswith("@") or email.endswith("@"):
                raise HTTPException(status_code=400, detail=f"Invalid email: {email!r}")
            if email.lower() not in {r.lower() for r in recipients}:
                recipients.append(email)
        if not recipients:
            raise HTTPException(status_code=400, detail="At least one email is required")

        await self._require_folder_owner(folder_id, user_id)

        tokens = []
        for email in recipients:
            tokens.append(await self.token_repo.create(
                folder_id,
                token_permission,
                expires,
                kind=TokenKind.PERSON_LINK,
                email=email,
                allow_map=allow_map,
                commit=False
            ))
        await self.token_repo.commit()
        log.info("Created %d person links on folder %s", len(tokens), folder_id)
        return tokens

    async def create_default_tokens(
        self,
        folder_id: str,
        now: Optional[datetime] = None,
        commit: bool = True
    ) -> list[AccessToken]:
        """Companion READ and WRITE links every new folder gets."""
        expires = add_months(now or utcnow(), config.DEFAULT_TOKEN_LIFETIME_MONTHS)
        tokens = [
            await self.token_repo.create(folder_id, permission, expires, commit=False)
            for permission in (TokenPermission.READ, TokenPermission.WRITE)
        ]
        if commit:
            await self.token_repo.commit()
        return tokens

    @staticmethod
    def _hash_new_pin(pin: str) -> str:
        if not is_valid_pin(pin):
            raise HTTPException(
                status_code=400,
                detail=(
                    f"PIN must be {config.PIN_MIN_LENGTH} to "
                    f"{config.PIN_MAX_LENGTH} digits"
                )
            )
        return hash_pin(pin)

    async def set_active(
        self,
        token_id: str,
        kind: TokenKind,
        user_id: int,
        is_active: bool
    ) -> AccessToken:
        await self._get_owned_token(token_id, kind, user_id)
        await self.token_repo.set_active(token_id, kind, is_active)
        return await self.token_repo.get_by_id(token_id, kind)

    async def lock(self, token_id: str, kind: TokenKind, user_id: int, pin: str) -> AccessToken:
        """Lock a link behind a PIN. Re-locking replaces the previous PIN."""
        pin_hash = self._hash_new_pin(pin)
        await self._get_owned_token(token_id, kind, user_id)
        await self.token_repo.set_locked(token_id, kind, pin_hash)
        log.info("Locked share link %s", token_id)
        return await self.token_repo.get_by_id(token_id, kind)

    async def unlock(self, token_id: str, kind: TokenKind, user_id: int) -> AccessToken:
        await self._get_owned_token(token_id, kind, user_id)
        await self.token_repo.set_locked(token_id, kind, None)
        log.info("Unlocked share link %s", token_id)
        return await self.token_repo.get_by_id(token_id, kind)

    async def delete_tokens(self, token_ids: Iterable[str], kind: TokenKind, user_id: int) -> int:
        """Delete links by id. Ids on folders the user doesn't own are ignored.

        Returns:
            Number of links deleted
        """
        deleted = await self.token_repo.delete_many_for_owner(token_ids, kind, user_id)
        log.info("Deleted %d %s tokens for user %s", deleted, kind.value, user_id)
        return deleted

    async def list_folder_tokens(self, folder_id: str, user_id: int) -> list[AccessToken]:
        await self._require_folder_owner(folder_id, user_id)
        return await self.token_repo.list_for_folder(folder_id)

    async def list_links(self, user_id: int, kind: TokenKind) -> list[dict]:
        """Every link of one kind across the user's folders."""
        return await self.token_repo.list_for_owner(user_id, kind)

    async def shared_with_me(self, email: Optional[str], now: Optional[datetime] = None) -> list[dict]:
        """Folders shared with an email address through usable person links."""
        if not email:
            return []
        now = now or utcnow()
        return [
            entry for entry in await self.token_repo.list_for_email(email)
            if entry["token"].is_usable(now)
        ]
