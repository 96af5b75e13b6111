"""Blob storage abstraction layer.

Supports multiple backends: local filesystem and S3-compatible stores.
"""
from .base import (
    StorageInterface,
    StorageError,
    BlobNotFoundError,
    UploadError,
    DownloadError,
    DeleteError,
    StorageConfig,
)
from .local_storage import LocalStorage
from .factory import get_storage, get_storage_from_config, reset_storage

__all__ = [
    "StorageInterface",
    "StorageError",
    "BlobNotFoundError",
    "UploadError",
    "DownloadError",
    "DeleteError",
    "StorageConfig",
    "LocalStorage",
    "get_storage",
    "get_storage_from_config",
    "reset_storage",
]
