"""
RecipeShare Backend - Object Store Client
===========================================

What:  Uploads and deletes byte blobs in an S3 bucket and builds their public URLs.
Why:   Recipe image derivatives live in object storage, not in the database.
How:   boto3 S3 client, created lazily on first use and reused afterwards.
       Blocking boto3 calls run in a worker thread so the event loop stays free.
Who:   Constructed once by the app factory and injected into RecipePipeline
       (uploads, compensation, cleanup) and the health check (ping).

Contract:
    upload(key, data, content_type) -> public URL
    delete(key)                     -> None (idempotent: a missing key is fine)
    ping()                          -> None (HEAD bucket)

    Every transport failure surfaces as StoreUnavailableError. This client never
    retries; RecipePipeline owns the retry policy for uploads.

Key scheme:
    The client is content-agnostic. Recipe image keys are built by
    recipe_image_key(): "{author_id}/{recipe_id}/{thumbnail|large}.jpg".

Public URL:
    https://{bucket}.s3.{region}.amazonaws.com/{key}
    Deterministic from bucket, region and key; no signing, no expiry.
"""

import asyncio
import logging
import threading
import uuid
from typing import Any, Callable, Optional
from urllib.parse import quote, unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from recipeshare.config import settings
from recipeshare.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

THUMBNAIL = "thumbnail"
LARGE = "large"

# S3 reports a missing object on delete/head with one of these codes
_MISSING_KEY_CODES = {"404", "NoSuchKey", "NotFound"}


def recipe_image_key(author_id: uuid.UUID, recipe_id: uuid.UUID, variant: str) -> str:
    """
    Object key for one derivative of one recipe's image.

    The key is deterministic, so uploading a new image for an existing recipe
    overwrites the previous derivative in place.
    """
    if variant not in (THUMBNAIL, LARGE):
        raise ValueError(f"Unknown image variant '{variant}'")
    return f"{author_id}/{recipe_id}/{variant}.jpg"


def key_from_url(url: str) -> str:
    """Recover the object key from a public URL (decoded path, no leading slash)."""
    return unquote(urlparse(url).path.lstrip("/"))


class ObjectStoreClient:
    """
    Generic blob store over the S3 API.

    Args:
        bucket_name:    target bucket
        region:         AWS region, also used in public URLs
        endpoint_url:   optional S3-compatible endpoint (MinIO, R2, LocalStack)
        client_factory: builds the underlying boto3 client; tests pass a factory
                        returning a MagicMock
    """

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client_factory: Optional[Callable[[], Any]] = None,
    ):
        self.bucket_name = bucket_name if bucket_name is not None else settings.s3_bucket_name
        self.region = region or settings.aws_region
        self.endpoint_url = endpoint_url if endpoint_url is not None else settings.s3_endpoint_url
        self._client_factory = client_factory or self._create_boto3_client
        self._client: Optional[Any] = None
        self._client_lock = threading.Lock()

    # ── Connection Handle ─────────────────────────────────────────────────

    def _create_boto3_client(self) -> Any:
        # A dedicated Session: boto3's default session is not thread-safe and
        # the client is first touched from a worker thread.
        session = boto3.session.Session()
        client = session.client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
            config=Config(
                signature_version="s3v4",
                # Retries belong to the pipeline, not the transport
                retries={"max_attempts": 1, "mode": "standard"},
                connect_timeout=5,
                read_timeout=20,
            ),
        )
        logger.info(
            "S3 client created: bucket=%s, region=%s, endpoint=%s",
            self.bucket_name,
            self.region,
            self.endpoint_url or "aws",
        )
        return client

    def _get_client(self) -> Any:
        """Return the memoized client, creating it on first call."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._client_factory()
        return self._client

    # ── URLs ──────────────────────────────────────────────────────────────

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{quote(key)}"

    # ── Operations ────────────────────────────────────────────────────────

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """
        Store `data` under `key` and return its public URL.

        Raises:
            StoreUnavailableError: any transport or service failure
        """
        try:
            await asyncio.to_thread(self._put_object, key, data, content_type)
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 upload failed: key=%s, error=%s", key, e)
            raise StoreUnavailableError(
                message="Failed to upload image. Please try again later.",
                key=key,
                context={"error_type": type(e).__name__},
            ) from e

        logger.info("Uploaded object: key=%s (%d bytes)", key, len(data))
        return self.public_url(key)

    async def delete(self, key: str) -> None:
        """
        Delete `key`. Deleting a key that does not exist succeeds.

        Raises:
            StoreUnavailableError: any transport or service failure
        """
        try:
            await asyncio.to_thread(self._delete_object, key)
        except ClientError as e:
            if _error_code(e) in _MISSING_KEY_CODES:
                logger.debug("Delete: object already gone: key=%s", key)
                return
            logger.error("S3 delete failed: key=%s, error=%s", key, e)
            raise StoreUnavailableError(key=key, context={"error_type": type(e).__name__}) from e
        except BotoCoreError as e:
            logger.error("S3 delete failed: key=%s, error=%s", key, e)
            raise StoreUnavailableError(key=key, context={"error_type": type(e).__name__}) from e

        logger.info("Deleted object: key=%s", key)

    async def ping(self) -> None:
        """HEAD the bucket; used by the health check."""
        try:
            await asyncio.to_thread(self._get_client().head_bucket, Bucket=self.bucket_name)
        except (BotoCoreError, ClientError) as e:
            raise StoreUnavailableError(context={"error_type": type(e).__name__}) from e

    def _put_object(self, key: str, data: bytes, content_type: str) -> None:
        self._get_client().put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
        )

    def _delete_object(self, key: str) -> None:
        self._get_client().delete_object(Bucket=self.bucket_name, Key=key)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", "Unknown"))
