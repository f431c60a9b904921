"""
RecipeShare Backend - Object Store Client Unit Tests
======================================================

What:  ObjectStoreClient against a MagicMock boto3 client.

What we test:
    ✅ Upload sends bucket/key/body/content type and returns the public URL
    ✅ Transport errors surface as StoreUnavailableError, with no retries
    ✅ Delete is idempotent (NoSuchKey is success)
    ✅ The boto3 client is created once and reused
    ✅ Key and URL helpers
"""

import uuid
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from recipeshare.exceptions import StoreUnavailableError
from recipeshare.services.object_store import (
    ObjectStoreClient,
    key_from_url,
    recipe_image_key,
)


def _client_error(code: str, operation: str = "PutObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self, object_store, s3_client):
        url = await object_store.upload("a/b/thumbnail.jpg", b"jpeg-bytes", "image/jpeg")

        assert url == "https://recipes-test.s3.ap-northeast-3.amazonaws.com/a/b/thumbnail.jpg"
        s3_client.put_object.assert_called_once_with(
            Bucket="recipes-test",
            Key="a/b/thumbnail.jpg",
            Body=b"jpeg-bytes",
            ContentType="image/jpeg",
        )

    @pytest.mark.asyncio
    async def test_client_error_is_wrapped_and_not_retried(self, object_store, s3_client):
        s3_client.put_object.side_effect = _client_error("InternalError")

        with pytest.raises(StoreUnavailableError) as exc_info:
            await object_store.upload("k.jpg", b"x", "image/jpeg")

        assert exc_info.value.key == "k.jpg"
        assert s3_client.put_object.call_count == 1

    @pytest.mark.asyncio
    async def test_connection_error_is_wrapped(self, object_store, s3_client):
        s3_client.put_object.side_effect = EndpointConnectionError(endpoint_url="https://s3.example")

        with pytest.raises(StoreUnavailableError):
            await object_store.upload("k.jpg", b"x", "image/jpeg")


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_calls_s3(self, object_store, s3_client):
        await object_store.delete("a/b/large.jpg")

        s3_client.delete_object.assert_called_once_with(Bucket="recipes-test", Key="a/b/large.jpg")

    @pytest.mark.asyncio
    async def test_missing_key_is_not_an_error(self, object_store, s3_client):
        s3_client.delete_object.side_effect = _client_error("NoSuchKey", "DeleteObject")

        await object_store.delete("gone.jpg")

    @pytest.mark.asyncio
    async def test_access_denied_is_wrapped(self, object_store, s3_client):
        s3_client.delete_object.side_effect = _client_error("AccessDenied", "DeleteObject")

        with pytest.raises(StoreUnavailableError):
            await object_store.delete("k.jpg")


class TestConnectionHandle:
    @pytest.mark.asyncio
    async def test_client_created_lazily_and_once(self):
        factory = MagicMock(return_value=MagicMock())
        store = ObjectStoreClient(bucket_name="b", region="us-east-1", client_factory=factory)

        assert factory.call_count == 0

        await store.upload("one.jpg", b"1", "image/jpeg")
        await store.upload("two.jpg", b"2", "image/jpeg")
        await store.delete("one.jpg")

        assert factory.call_count == 1

    @pytest.mark.asyncio
    async def test_ping_failure_is_wrapped(self, object_store, s3_client):
        s3_client.head_bucket.side_effect = _client_error("404", "HeadBucket")

        with pytest.raises(StoreUnavailableError):
            await object_store.ping()


class TestKeys:
    def test_recipe_image_key_layout(self):
        author_id, recipe_id = uuid.uuid4(), uuid.uuid4()

        assert recipe_image_key(author_id, recipe_id, "thumbnail") == f"{author_id}/{recipe_id}/thumbnail.jpg"
        assert recipe_image_key(author_id, recipe_id, "large") == f"{author_id}/{recipe_id}/large.jpg"

    def test_unknown_variant_rejected(self):
        with pytest.raises(ValueError):
            recipe_image_key(uuid.uuid4(), uuid.uuid4(), "medium")

    def test_key_from_url_inverts_public_url(self, object_store):
        key = "chef/recipe 1/large.jpg"

        assert key_from_url(object_store.public_url(key)) == key
