"""Unit tests for S3Storage with a mocked boto3 client."""
import asyncio
from unittest.mock import MagicMock

import pytest

pytest.importorskip("boto3")
from botocore.exceptions import ClientError  # noqa: E402

from sharegate.infrastructure.storage import BlobNotFoundError, StorageConfig, StorageError  # noqa: E402
from sharegate.infrastructure.storage.s3_storage import S3Storage  # noqa: E402


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "operation")


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def storage(client):
    return S3Storage(StorageConfig(backend="s3", bucket_name="photos"), client=client)


@pytest.fixture
def run_async():
    def _run(coro):
        return asyncio.run(coro)
    return _run


def test_upload_sets_content_type(storage, client, run_async):
    assert run_async(storage.upload("1/f/a", b"data", "image/jpeg")) == "1/f/a"
    client.put_object.assert_called_once_with(
        Bucket="photos", Key="1/f/a", Body=b"data", ContentType="image/jpeg"
    )


def test_download_missing(storage, client, run_async):
    client.get_object.side_effect = client_error("NoSuchKey")
    with pytest.raises(BlobNotFoundError):
        run_async(storage.download("1/f/missing"))


def test_signed_url_is_presigned(storage, client):
    client.generate_presigned_url.return_value = "https://s3/presigned"

    assert storage.get_signed_url("1/f/a", 300) == "https://s3/presigned"
    client.generate_presigned_url.assert_called_once_with(
        "get_object", Params={"Bucket": "photos", "Key": "1/f/a"}, ExpiresIn=300
    )


def test_delete_missing_returns_false(storage, client, run_async):
    client.head_object.side_effect = client_error("404")

    assert run_async(storage.delete("1/f/a")) is False
    client.delete_object.assert_not_called()


def test_delete_by_prefix_pages(storage, client, run_async):
    paginator = MagicMock()
    paginator.paginate.return_value = [
        {"Contents": [{"Key": "1/f/a"}, {"Key": "1/f/b"}]},
        {"Contents": [{"Key": "1/f/c"}]},
        {},
    ]
    client.get_paginator.return_value = paginator

    assert run_async(storage.delete_by_prefix("1/f/")) == 3
    assert client.delete_objects.call_count == 2
    paginator.paginate.assert_called_once_with(Bucket="photos", Prefix="1/f/")


def test_delete_by_empty_prefix_refused(storage, run_async):
    with pytest.raises(StorageError):
        run_async(storage.delete_by_prefix(""))
