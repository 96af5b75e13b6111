"""Resource gate - the entry point every route uses for access checks.

Routes translate transport parameters into an ``AccessContext`` and call
``enforce``/``enforce_or_reject`` with the permission their operation
needs. The gate loads resources, runs the access policy, and accounts for
token uses; it holds no state between calls.
"""
import dataclasses
import logging
from datetime import datetime
from typing import Callable, Optional

import aiosqlite
from fastapi import HTTPException
from starlette.concurrency import run_in_threadpool

from ...domain import (
    AccessCheckError,
    AccessContext,
    Allow,
    DenyReason,
    File,
    Folder,
    Permission,
    Resource,
    TokenKind,
    Verdict,
    utcnow,
)
from ...infrastructure.repositories import (
    AsyncFileRepository,
    AsyncFolderRepository,
    AsyncTokenRepository,
)
from .access_policy import decide

log = logging.getLogger(__name__)


class AccessDenied(HTTPException):
    """A policy denial at the HTTP boundary. Rendered as ``{"error": reason}``."""

    STATUS_CODES = {
        DenyReason.UNAUTHENTICATED: 401,
        DenyReason.PIN_REQUIRED: 401,
        DenyReason.INVALID_PIN: 403,
        DenyReason.NO_TOKEN: 403,
        DenyReason.INVALID_TOKEN: 403,
        DenyReason.INSUFFICIENT_PERMISSION: 403,
    }

    def __init__(self, reason: Optional[DenyReason]):
        self.reason = reason or DenyReason.INSUFFICIENT_PERMISSION
        super().__init__(
            status_code=self.STATUS_CODES[self.reason],
            detail=self.reason.value
        )

    @property
    def needs_pin(self) -> bool:
        """Whether the client should show a PIN prompt instead of an error."""
        return self.reason in (DenyReason.PIN_REQUIRED, DenyReason.INVALID_PIN)


def _narrow_tokens(resource: Resource, kind: TokenKind) -> Resource:
    """Copy of ``resource`` whose folder only carries tokens of ``kind``."""
    folder = resource.folder if isinstance(resource, File) else resource
    narrowed = dataclasses.replace(
        folder,
        tokens=tuple(t for t in folder.tokens if t.kind is kind)
    )
    if isinstance(resource, File):
        return dataclasses.replace(resource, folder=narrowed)
    return narrowed


class ResourceGate:
    """Enforce access on folders and files.

    Responsibilities:
    - Load resources together with their folder's tokens
    - Run the access policy with the request's actor and share credentials
    - Count one use per token per request when asked to
    - Translate store failures into AccessCheckError
    """

    def __init__(
        self,
        folder_repository: AsyncFolderRepository,
        file_repository: AsyncFileRepository,
        token_repository: AsyncTokenRepository,
        clock: Callable[[], datetime] = utcnow
    ):
        self.folder_repo = folder_repository
        self.file_repo = file_repository
        self.token_repo = token_repository
        self.clock = clock

    async def load_folder(self, folder_id: str) -> Folder:
        """Fetch a folder with tokens.

        Raises:
            HTTPException: 404 if the folder doesn't exist
            AccessCheckError: If the store lookup fails
        """
        try:
            folder = await self.folder_repo.get_with_tokens(folder_id)
        except aiosqlite.Error as e:
            raise AccessCheckError(f"Could not load folder {folder_id}") from e
        if folder is None:
            raise HTTPException(status_code=404, detail="Folder not found")
        return folder

    async def load_file(self, file_id: str) -> File:
        """Fetch a file with its folder's tokens.

        Raises:
            HTTPException: 404 if the file doesn't exist
            AccessCheckError: If the store lookup fails
        """
        try:
            file = await self.file_repo.get_with_folder_tokens(file_id)
        except aiosqlite.Error as e:
            raise AccessCheckError(f"Could not load file {file_id}") from e
        if file is None:
            raise HTTPException(status_code=404, detail="File not found")
        return file

    async def enforce(
        self,
        context: AccessContext,
        resource: Resource,
        permission: Permission,
        *,
        count_use: bool = False
    ) -> Verdict:
        """Evaluate access for one operation.

        The policy runs in Starlette's threadpool: a locked token means a
        bcrypt check, which must not run on the event loop.

        Args:
            context: Per-request actor and share credentials
            resource: Folder or File with tokens loaded
            permission: Permission the operation needs
            count_use: Account a use on the granting token (once per request)

        Returns:
            Allow or Deny verdict
        """
        credentials = context.credentials
        verdict = await run_in_threadpool(
            decide,
            context.actor,
            _narrow_tokens(resource, credentials.kind),
            permission,
            credentials.token,
            credentials.pin,
            now=self.clock()
        )

        if not verdict.allowed:
            log.debug(
                "Denied %s on %s %s: %s",
                permission.value, type(resource).__name__.lower(), resource.id,
                verdict.reason.value if verdict.reason else "unspecified"
            )
            return verdict

        if count_use:
            await self.record_use(context, verdict)
        return verdict

    async def enforce_or_reject(
        self,
        context: AccessContext,
        resource: Resource,
        permission: Permission,
        *,
        count_use: bool = False
    ) -> Allow:
        """Like ``enforce`` but raises AccessDenied instead of returning Deny."""
        verdict = await self.enforce(context, resource, permission, count_use=count_use)
        if not verdict.allowed:
            raise AccessDenied(verdict.reason)
        return verdict

    async def record_use(self, context: AccessContext, verdict: Allow) -> None:
        """Count one use of the token behind ``verdict``, at most once per request.

        Owner access (no token) is never counted. Callers that must validate
        input before an access counts enforce without ``count_use`` and call
        this afterwards.
        """
        token = verdict.token
        if token is None or token.id in context.counted_token_ids:
            return
        try:
            await self.token_repo.increment_uses(token.id, token.kind)
        except aiosqlite.Error as e:
            raise AccessCheckError(f"Could not record use of token {token.id}") from e
        context.counted_token_ids.add(token.id)
