"""
Object storage access (S3 / MinIO) for uploaded document files.

boto3 is synchronous, so every download runs in a worker thread to keep the
event loop free.  The client itself is created once, on the event-loop
thread, from a private boto3 Session (the default session is not
thread-safe); boto3 clients are safe to share across threads.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.services.exceptions import StorageError

logger = logging.getLogger(__name__)


def create_s3_client() -> Any:
    """Build a Signature V4 S3 client from settings (path-style for MinIO)."""
    session = boto3.session.Session()
    return session.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
        config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


class ObjectStorageService:
    """Thin async wrapper over the bucket that holds document files."""

    def __init__(self, client: Optional[Any] = None, bucket: Optional[str] = None) -> None:
        self._client = client
        self.bucket = bucket or settings.S3_BUCKET

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = create_s3_client()
        return self._client

    async def get_file_bytes(self, key: str) -> bytes:
        """
        Download the whole object stored under *key*.

        Raises:
            StorageError: object missing or storage unreachable.
        """
        try:
            # resolve the client here, never inside the worker thread
            client = self.client
            data = await asyncio.to_thread(self._read_object, client, key)
        except (ClientError, BotoCoreError) as exc:
            logger.error("get_file_bytes(%s) failed: %s", key, exc)
            raise StorageError(f"Cannot download file from storage: {exc}") from exc

        logger.info("Downloaded %d bytes for %s", len(data), key)
        return data

    def _read_object(self, client: Any, key: str) -> bytes:
        response = client.get_object(Bucket=self.bucket, Key=key)
        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()


# Shared instance; the S3 client is built on first download and reused.
object_storage = ObjectStorageService()
