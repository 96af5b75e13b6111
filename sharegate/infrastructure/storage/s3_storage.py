"""S3-compatible storage implementation (AWS S3, MinIO).

boto3 is blocking, so calls run in Starlette's threadpool.
"""
from typing import AsyncIterator, BinaryIO, Optional, Union

import boto3
from botocore.exceptions import ClientError
from starlette.concurrency import run_in_threadpool

from .base import (
    StorageInterface,
    StorageConfig,
    StorageError,
    BlobNotFoundError,
    UploadError,
    DownloadError,
    DeleteError
)


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', 'Unknown')


class S3Storage(StorageInterface):
    """S3-compatible storage backend.

    Supports:
    - AWS S3
    - MinIO
    - Any S3-compatible API
    """

    def __init__(self, config: StorageConfig, client=None):
        """Initialize S3 storage.

        Args:
            config: Storage configuration with S3 settings
            client: Preconfigured boto3 S3 client (built from config if omitted)
        """
        if config.backend != "s3":
            raise ValueError(f"S3Storage requires backend='s3', got '{config.backend}'")
        if not config.bucket_name:
            raise ValueError("S3Storage requires a bucket_name")

        self.config = config
        self.bucket = config.bucket_name

        if client is None:
            client_kwargs = {
                "service_name": "s3",
                "aws_access_key_id": config.access_key,
                "aws_secret_access_key": config.secret_key,
                "region_name": config.region,
            }
            # Custom endpoint for MinIO
            if config.endpoint_url:
                client_kwargs["endpoint_url"] = config.endpoint_url
                client_kwargs["use_ssl"] = config.use_ssl
            client = boto3.client(**client_kwargs)
        self.client = client

    async def upload(
        self,
        key: str,
        content: Union[bytes, BinaryIO],
        content_type: Optional[str] = None
    ) -> str:
        """Upload blob to S3."""
        extra_args = {}
        if content_type:
            extra_args['ContentType'] = content_type

        body = content if isinstance(content, bytes) else content.read()
        try:
            await run_in_threadpool(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=body,
                **extra_args
            )
            return key
        except ClientError as e:
            raise UploadError(f"Failed to upload {key}: {e}")

    async def download(self, key: str) -> bytes:
        """Download blob from S3."""
        try:
            response = await run_in_threadpool(
                self.client.get_object, Bucket=self.bucket, Key=key
            )
            return await run_in_threadpool(response['Body'].read)
        except ClientError as e:
            if _error_code(e) in ('NoSuchKey', '404'):
                raise BlobNotFoundError(f"Blob not found: {key}")
            raise DownloadError(f"Failed to download {key}: {e}")

    async def stream(self, key: str) -> AsyncIterator[bytes]:
        try:
            response = await run_in_threadpool(
                self.client.get_object, Bucket=self.bucket, Key=key
            )
        except ClientError as e:
            if _error_code(e) in ('NoSuchKey', '404'):
                raise BlobNotFoundError(f"Blob not found: {key}")
            raise DownloadError(f"Failed to stream {key}: {e}")

        body = response['Body']
        try:
            while True:
                chunk = await run_in_threadpool(body.read, self.CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        finally:
            body.close()

    def get_signed_url(self, key: str, ttl: int) -> str:
        """Get presigned GET URL for a blob."""
        try:
            return self.client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': key},
                ExpiresIn=ttl
            )
        except ClientError as e:
            raise StorageError(f"Failed to generate URL for {key}: {e}")

    async def delete(self, key: str) -> bool:
        """Delete blob from S3."""
        if not await run_in_threadpool(self.exists, key):
            return False
        try:
            await run_in_threadpool(self.client.delete_object, Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            raise DeleteError(f"Failed to delete {key}: {e}")

    def _delete_prefix_sync(self, prefix: str) -> int:
        deleted = 0
        paginator = self.client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            objects = [{'Key': obj['Key']} for obj in page.get('Contents', [])]
            if not objects:
                continue
            self.client.delete_objects(
                Bucket=self.bucket,
                Delete={'Objects': objects, 'Quiet': True}
            )
            deleted += len(objects)
        return deleted

    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete every object under a prefix, one page (up to 1000 keys) at a time."""
        if not prefix:
            raise StorageError("Refusing to delete with an empty prefix")
        try:
            return await run_in_threadpool(self._delete_prefix_sync, prefix)
        except ClientError as e:
            raise DeleteError(f"Failed to delete prefix {prefix}: {e}")

    def exists(self, key: str) -> bool:
        """Check if blob exists in S3."""
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in ('404', 'NoSuchKey'):
                return False
            raise StorageError(f"Failed to check existence of {key}: {e}")
