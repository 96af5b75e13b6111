"""Access decision engine for folders and files.

``decide`` is the one place where the share-link rules live. It is a pure
function of its inputs: no I/O and no state, so it can be called from any
number of concurrent requests. Verifying a PIN costs a bcrypt check, so
async callers run it in a worker thread.

Rules, evaluated in order:

1. DELETE is owner-only; no token ever grants it.
2. The owner gets everything, without tokens or PINs.
3. Without a presented token: anonymous -> ``unauthenticated``,
   authenticated non-owner -> ``no-token``.
4. The token must exist on the folder, be active and not expired.
5. A locked token needs a matching PIN before any permission is granted.
6. READ_MAP needs ``allow_map``; READ needs any valid token; WRITE needs a
   WRITE or ADMIN token.
"""
import secrets
from datetime import datetime
from typing import Iterable, Optional

from ...domain import (
    AccessToken,
    Actor,
    Allow,
    Deny,
    DenyReason,
    File,
    Folder,
    Permission,
    Resource,
    TokenPermission,
    Verdict,
    utcnow,
)
from .pin_verifier import verify_pin


def is_owner(actor: Actor, resource: Resource) -> bool:
    return actor.is_authenticated and actor.user_id == resource.owner_id


def find_token(tokens: Iterable[AccessToken], presented: str) -> Optional[AccessToken]:
    """Find the token whose secret matches ``presented``."""
    presented_bytes = presented.encode("utf-8")
    for candidate in tokens:
        if secrets.compare_digest(candidate.token.encode("utf-8"), presented_bytes):
            return candidate
    return None


def decide(
    actor: Actor,
    resource: Resource,
    requested: Permission,
    presented_token: Optional[str] = None,
    pin_proof: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> Verdict:
    """Decide whether ``actor`` may perform ``requested`` on ``resource``.

    Args:
        actor: Requester (authenticated or anonymous)
        resource: Folder or File, with the folder's tokens loaded
        requested: Permission the operation needs
        presented_token: Share token string from the request, if any
        pin_proof: Plaintext PIN from the request, if any
        now: Evaluation time (defaults to current UTC time)

    Returns:
        Allow (with the granting token, None for the owner) or Deny with a reason

    Raises:
        ValueError/TypeError: On call-site bugs (missing resource or actor,
            unknown permission)
        MalformedTokenRecord: If a locked token's PIN hash is unreadable
    """
    if resource is None:
        raise ValueError("decide() requires a resource")
    if not isinstance(resource, (Folder, File)):
        raise TypeError(f"Unsupported resource type: {type(resource).__name__}")
    if actor is None:
        raise ValueError("decide() requires an actor; use ANONYMOUS for no session")
    if not isinstance(requested, Permission):
        raise TypeError(f"Unknown permission: {requested!r}")

    owner = is_owner(actor, resource)

    if requested is Permission.DELETE:
        return Allow(actor) if owner else Deny(DenyReason.INSUFFICIENT_PERMISSION)

    if owner:
        return Allow(actor)

    if not presented_token:
        if actor.is_authenticated:
            return Deny(DenyReason.NO_TOKEN)
        return Deny(DenyReason.UNAUTHENTICATED)

    now = now or utcnow()
    token = find_token(resource.tokens, presented_token)
    if token is None or not token.is_usable(now):
        return Deny(DenyReason.INVALID_TOKEN)

    if token.requires_pin:
        if not pin_proof:
            return Deny(DenyReason.PIN_REQUIRED)
        if not verify_pin(token.pin_code_hash, pin_proof):
            return Deny(DenyReason.INVALID_PIN)

    if token_grants(token, requested):
        return Allow(actor, token)
    return Deny(DenyReason.INSUFFICIENT_PERMISSION)


def token_grants(token: AccessToken, requested: Permission) -> bool:
    """Permission-level check for a token that already passed validity and PIN checks."""
    if requested is Permission.READ_MAP:
        return token.allow_map
    if requested is Permission.READ:
        return True
    if requested is Permission.WRITE:
        return token.permission.implies(TokenPermission.WRITE)
    # DELETE never reaches here: it is owner-only
    return False
