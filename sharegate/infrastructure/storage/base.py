"""Abstract blob storage interface.

Blobs are addressed by key, ``"{owner_id}/{folder_id}/{file_id}"``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Optional, Union


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class BlobNotFoundError(StorageError):
    """Blob not found in storage."""
    pass


class UploadError(StorageError):
    """Failed to upload blob."""
    pass


class DownloadError(StorageError):
    """Failed to download blob."""
    pass


class DeleteError(StorageError):
    """Failed to delete blob."""
    pass


@dataclass
class StorageConfig:
    """Storage configuration."""
    backend: str  # 'local', 's3'

    # Local storage settings
    base_path: Optional[Path] = None
    signing_secret: Optional[str] = None
    url_prefix: str = "/blobs"

    # S3 settings
    endpoint_url: Optional[str] = None
    bucket_name: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "us-east-1"
    use_ssl: bool = True


class StorageInterface(ABC):
    """Abstract interface for blob storage operations.

    Implementations:
    - LocalStorage: Filesystem storage
    - S3Storage: AWS S3 / MinIO
    """

    CHUNK_SIZE = 64 * 1024

    @abstractmethod
    async def upload(
        self,
        key: str,
        content: Union[bytes, BinaryIO],
        content_type: Optional[str] = None
    ) -> str:
        """Store a blob.

        Args:
            key: Blob key
            content: Bytes or file-like object
            content_type: MIME type of the blob

        Returns:
            The key that was written

        Raises:
            UploadError: If upload fails
        """
        pass

    @abstractmethod
    async def download(self, key: str) -> bytes:
        """Read a whole blob.

        Raises:
            BlobNotFoundError: If blob doesn't exist
            DownloadError: If download fails
        """
        pass

    @abstractmethod
    def stream(self, key: str) -> AsyncIterator[bytes]:
        """Read a blob as an async iterator of chunks.

        Raises:
            BlobNotFoundError: If blob doesn't exist (on first iteration)
        """
        pass

    @abstractmethod
    def get_signed_url(self, key: str, ttl: int) -> str:
        """URL granting read access to a blob for ``ttl`` seconds."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a blob.

        Returns:
            True if deleted, False if it didn't exist

        Raises:
            DeleteError: If deletion fails for other reasons
        """
        pass

    @abstractmethod
    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete every blob whose key starts with ``prefix``.

        Returns:
            Number of blobs deleted
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        pass
