"""Application services - business logic layer."""

from .access_policy import decide, find_token, is_owner, token_grants
from .pin_verifier import hash_pin, is_valid_pin, verify_pin
from .session_resolver import SessionResolver
from .resource_gate import AccessDenied, ResourceGate
from .share_service import ShareService, add_months
from .file_service import FileService, file_to_dict
from .folder_service import FolderService

__all__ = [
    "decide",
    "find_token",
    "is_owner",
    "token_grants",
    "hash_pin",
    "is_valid_pin",
    "verify_pin",
    "SessionResolver",
    "AccessDenied",
    "ResourceGate",
    "ShareService",
    "add_months",
    "FileService",
    "file_to_dict",
    "FolderService",
]
