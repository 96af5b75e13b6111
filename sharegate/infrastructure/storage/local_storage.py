"""Local filesystem storage implementation."""
import hashlib
import hmac
import shutil
import time
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Optional, Union
from urllib.parse import quote, urlencode

import aiofiles

from .base import (
    StorageInterface,
    StorageConfig,
    StorageError,
    BlobNotFoundError,
    UploadError,
    DownloadError,
    DeleteError
)


class LocalStorage(StorageInterface):
    """Local filesystem storage backend.

    Stores blobs under their key:
        base_path/
            <owner_id>/<folder_id>/<file_id>

    Signed URLs point at the app's ``/blobs`` route and carry an expiry
    timestamp plus an HMAC-SHA256 signature over ``key`` and expiry.
    """

    def __init__(self, config: StorageConfig):
        """Initialize local storage.

        Args:
            config: Storage configuration with base_path and signing_secret
        """
        if config.backend != "local":
            raise ValueError(f"LocalStorage requires backend='local', got '{config.backend}'")
        if not config.signing_secret:
            raise ValueError("LocalStorage requires a signing_secret")

        self.config = config
        self.base_path = Path(config.base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._secret = config.signing_secret.encode("utf-8")

    def _get_path(self, key: str) -> Path:
        """Get full filesystem path for a key, refusing directory traversal."""
        root = self.base_path.resolve()
        path = (root / key).resolve()
        if path != root and root not in path.parents:
            raise StorageError(f"Invalid key: {key}")
        return path

    async def upload(
        self,
        key: str,
        content: Union[bytes, BinaryIO],
        content_type: Optional[str] = None
    ) -> str:
        """Upload blob to local filesystem."""
        file_path = self._get_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with aiofiles.open(file_path, 'wb') as f:
                if isinstance(content, bytes):
                    await f.write(content)
                else:
                    while True:
                        chunk = content.read(self.CHUNK_SIZE)
                        if not chunk:
                            break
                        await f.write(chunk)
            return key
        except (IOError, OSError) as e:
            raise UploadError(f"Failed to upload {key}: {e}")

    async def download(self, key: str) -> bytes:
        """Download blob from local filesystem."""
        file_path = self._get_path(key)

        if not file_path.is_file():
            raise BlobNotFoundError(f"Blob not found: {key}")

        try:
            async with aiofiles.open(file_path, 'rb') as f:
                return await f.read()
        except (IOError, OSError) as e:
            raise DownloadError(f"Failed to download {key}: {e}")

    async def stream(self, key: str) -> AsyncIterator[bytes]:
        file_path = self._get_path(key)

        if not file_path.is_file():
            raise BlobNotFoundError(f"Blob not found: {key}")

        async with aiofiles.open(file_path, 'rb') as f:
            while True:
                chunk = await f.read(self.CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk

    def _signature(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def get_signed_url(self, key: str, ttl: int) -> str:
        expires = int(time.time()) + ttl
        query = urlencode({"expires": expires, "signature": self._signature(key, expires)})
        return f"{self.config.url_prefix}/{quote(key)}?{query}"

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        """Check a signed URL's parameters (expiry and HMAC)."""
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._signature(key, expires), signature)

    async def delete(self, key: str) -> bool:
        """Delete blob from local filesystem."""
        file_path = self._get_path(key)

        if not file_path.exists():
            return False

        try:
            file_path.unlink()
            return True
        except (IOError, OSError) as e:
            raise DeleteError(f"Failed to delete {key}: {e}")

    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete all blobs below a key prefix.

        Prefixes are directory-shaped (``"{owner}/{folder}/"``), so the
        whole directory is removed.
        """
        target = self._get_path(prefix)
        if target == self.base_path.resolve():
            raise StorageError("Refusing to delete the storage root")
        if not target.is_dir():
            return 0

        count = sum(1 for item in target.rglob("*") if item.is_file())
        try:
            shutil.rmtree(target)
        except (IOError, OSError) as e:
            raise DeleteError(f"Failed to delete prefix {prefix}: {e}")
        return count

    def exists(self, key: str) -> bool:
        return self._get_path(key).is_file()

    def get_path(self, key: str) -> Path:
        """Get full filesystem path."""
        return self._get_path(key)
