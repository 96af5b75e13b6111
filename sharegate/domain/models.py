"""Domain types for share-link access control.

Plain data only: nothing in this module performs I/O. Repositories build
these objects from database rows and the access policy reads them.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Normalize a stored timestamp to an aware UTC datetime.

    SQLite hands back naive datetimes (or strings when no converter is
    registered); naive values are stored in UTC.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class Actor:
    """The requester: an authenticated user or anonymous (no user id)."""
    user_id: Optional[int] = None
    role: Optional[Role] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @classmethod
    def authenticated(cls, user_id: int, role: Role = Role.USER) -> "Actor":
        return cls(user_id=user_id, role=role)


ANONYMOUS = Actor()


class TokenPermission(str, Enum):
    """Permission level carried by a share token. READ < WRITE < ADMIN."""
    READ = "READ"
    WRITE = "WRITE"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        return _TOKEN_PERMISSION_RANK[self]

    def implies(self, other: "TokenPermission") -> bool:
        return self.rank >= other.rank


_TOKEN_PERMISSION_RANK = {
    TokenPermission.READ: 1,
    TokenPermission.WRITE: 2,
    TokenPermission.ADMIN: 3,
}


class TokenKind(str, Enum):
    """Which kind of link a token is. Values match the wire names."""
    OWNER_LINK = "accessToken"
    PERSON_LINK = "personAccessToken"


class Permission(str, Enum):
    """Permission requested by an operation."""
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    READ_MAP = "read_map"


@dataclass(frozen=True)
class AccessToken:
    id: str
    token: str
    folder_id: str
    permission: TokenPermission
    expires: datetime
    is_active: bool = True
    locked: bool = False
    pin_code_hash: Optional[str] = field(default=None, repr=False)
    allow_map: bool = False
    uses: int = 0
    kind: TokenKind = TokenKind.OWNER_LINK
    email: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.kind is TokenKind.PERSON_LINK and not self.email:
            raise ValueError("Person access tokens require an email")
        if self.kind is TokenKind.OWNER_LINK and self.email is not None:
            raise ValueError("Owner link tokens do not carry an email")

    @property
    def requires_pin(self) -> bool:
        return self.locked and self.pin_code_hash is not None

    def is_usable(self, now: datetime) -> bool:
        return self.is_active and self.expires >= now

    def to_public_dict(self) -> dict:
        """Serializable view for the folder owner. Never includes the PIN hash."""
        return {
            "id": self.id,
            "token": self.token,
            "folder_id": self.folder_id,
            "permission": self.permission.value,
            "expires": self.expires.isoformat(),
            "is_active": self.is_active,
            "locked": self.locked,
            "allow_map": self.allow_map,
            "uses": self.uses,
            "kind": self.kind.value,
            "email": self.email,
        }


@dataclass(frozen=True)
class Folder:
    id: str
    owner_id: int
    name: str = ""
    description: Optional[str] = None
    cover_file_id: Optional[str] = None
    tokens: tuple[AccessToken, ...] = ()
    created_at: Optional[datetime] = None

    @property
    def storage_prefix(self) -> str:
        return f"{self.owner_id}/{self.id}/"


@dataclass(frozen=True)
class File:
    id: str
    folder: Folder
    owner_id: int
    name: str = ""
    extension: str = ""
    mime_type: str = "application/octet-stream"
    size: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None

    @property
    def tokens(self) -> tuple[AccessToken, ...]:
        # Files never carry tokens of their own
        return self.folder.tokens

    @property
    def storage_key(self) -> str:
        return f"{self.owner_id}/{self.folder.id}/{self.id}"

    @property
    def filename(self) -> str:
        return f"{self.name}.{self.extension}" if self.extension else self.name


Resource = Union[Folder, File]


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    NO_TOKEN = "no-token"
    INVALID_TOKEN = "invalid-token"
    PIN_REQUIRED = "pin-required"
    INVALID_PIN = "invalid-pin"
    INSUFFICIENT_PERMISSION = "insufficient-permission"


@dataclass(frozen=True)
class Allow:
    actor: Actor
    token: Optional[AccessToken] = None

    allowed = True


@dataclass(frozen=True)
class Deny:
    reason: Optional[DenyReason] = None

    allowed = False


Verdict = Union[Allow, Deny]


@dataclass(frozen=True)
class ShareCredentials:
    """Share-link parameters presented with a request (share, h, t)."""
    token: Optional[str] = None
    pin: Optional[str] = None
    kind: TokenKind = TokenKind.OWNER_LINK


@dataclass
class AccessContext:
    """Per-request access state, built once at the HTTP boundary.

    ``counted_token_ids`` records which tokens have already had a use
    accounted for during this request.
    """
    actor: Actor
    credentials: ShareCredentials = field(default_factory=ShareCredentials)
    counted_token_ids: set[str] = field(default_factory=set)
