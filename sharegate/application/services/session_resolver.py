"""Session resolver - turns a session cookie into an Actor."""
import logging
from typing import Optional

from ...domain import ANONYMOUS, Actor, Role
from ...infrastructure.repositories import AsyncSessionRepository

log = logging.getLogger(__name__)


class SessionResolver:
    """Resolve the requester from a session credential.

    Missing, unknown and expired sessions all resolve to ``ANONYMOUS``.
    Store failures propagate to the caller.
    """

    def __init__(self, session_repository: AsyncSessionRepository):
        self.session_repo = session_repository

    @staticmethod
    def actor_for(session: Optional[dict]) -> Actor:
        if not session:
            return ANONYMOUS
        return Actor.authenticated(session["user_id"], Role(session["role"]))

    async def resolve(self, credential: Optional[str]) -> Actor:
        return self.actor_for(await self.resolve_session(credential))

    async def resolve_session(self, credential: Optional[str]) -> Optional[dict]:
        """Full session row (user info included) or None."""
        if not credential:
            return None
        session = await self.session_repo.get_valid(credential)
        if not session:
            log.debug("Session cookie did not match a valid session")
        return session
