"""Application layer - business logic services.

Services orchestrate domain operations and are testable without HTTP.
The access policy itself is a pure function in ``services.access_policy``.
"""

from .services.resource_gate import ResourceGate, AccessDenied
from .services.session_resolver import SessionResolver
from .services.share_service import ShareService
from .services.folder_service import FolderService
from .services.file_service import FileService

__all__ = [
    "ResourceGate",
    "AccessDenied",
    "SessionResolver",
    "ShareService",
    "FolderService",
    "FileService",
]
