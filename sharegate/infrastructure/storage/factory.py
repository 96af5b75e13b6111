"""Factory for creating storage backends."""
import os
from typing import Optional

from ... import config
from .base import StorageConfig, StorageInterface
from .local_storage import LocalStorage


# Singleton instance
_storage_instance: Optional[StorageInterface] = None


def get_storage_config() -> StorageConfig:
    """Get storage configuration from config and environment variables.

    Environment variables:
    - SHAREGATE_STORAGE_BACKEND: 'local' (default) or 's3'
    - SHAREGATE_STORAGE_PATH: Base path for local storage

    For S3:
    - S3_BUCKET: Bucket name
    - S3_ENDPOINT: Custom endpoint (for MinIO)
    - S3_ACCESS_KEY: Access key
    - S3_SECRET_KEY: Secret key
    - S3_REGION: Region (default: us-east-1)
    - S3_USE_SSL: Use SSL (default: true)
    """
    backend = config.STORAGE_BACKEND

    if backend == "local":
        return StorageConfig(
            backend="local",
            base_path=config.STORAGE_PATH,
            signing_secret=config.SIGNING_SECRET
        )

    elif backend == "s3":
        bucket = os.environ.get("S3_BUCKET")
        if not bucket:
            raise ValueError("S3_BUCKET environment variable is required for S3 storage")

        return StorageConfig(
            backend="s3",
            bucket_name=bucket,
            endpoint_url=os.environ.get("S3_ENDPOINT"),
            access_key=os.environ.get("S3_ACCESS_KEY"),
            secret_key=os.environ.get("S3_SECRET_KEY"),
            region=os.environ.get("S3_REGION", "us-east-1"),
            use_ssl=os.environ.get("S3_USE_SSL", "true").lower() == "true"
        )

    else:
        raise ValueError(f"Unknown storage backend: {backend}")


def get_storage_from_config(storage_config: StorageConfig) -> StorageInterface:
    """Create storage backend from configuration."""
    if storage_config.backend == "local":
        return LocalStorage(storage_config)

    elif storage_config.backend == "s3":
        # boto3 is an optional extra; only import it when S3 is configured
        from .s3_storage import S3Storage
        return S3Storage(storage_config)

    else:
        raise ValueError(f"Unknown storage backend: {storage_config.backend}")


def get_storage() -> StorageInterface:
    """Get or create singleton storage instance.

    This is the main entry point for getting storage.
    """
    global _storage_instance

    if _storage_instance is None:
        _storage_instance = get_storage_from_config(get_storage_config())

    return _storage_instance


def reset_storage():
    """Reset storage singleton (useful for testing)."""
    global _storage_instance
    _storage_instance = None
