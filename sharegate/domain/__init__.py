# Domain layer - plain types shared by every other layer
from .models import (
    ANONYMOUS,
    AccessContext,
    AccessToken,
    Actor,
    Allow,
    Deny,
    DenyReason,
    File,
    Folder,
    Permission,
    Resource,
    Role,
    ShareCredentials,
    TokenKind,
    TokenPermission,
    Verdict,
    as_utc,
    utcnow,
)
from .errors import AccessCheckError, MalformedTokenRecord

__all__ = [
    "ANONYMOUS",
    "AccessContext",
    "AccessToken",
    "Actor",
    "Allow",
    "Deny",
    "DenyReason",
    "File",
    "Folder",
    "Permission",
    "Resource",
    "Role",
    "ShareCredentials",
    "TokenKind",
    "TokenPermission",
    "Verdict",
    "as_utc",
    "utcnow",
    "AccessCheckError",
    "MalformedTokenRecord",
]
