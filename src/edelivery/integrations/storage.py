"""S3-compatible object store issuing presigned download URLs.

Works with AWS S3 and S3-compatible providers (Wasabi, MinIO, Supabase
Storage's S3 endpoint) through ``storage.endpoint_url``.  The boto3
client is created once; presigning is a local signing operation, so
the only network traffic is :meth:`startup_check`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from edelivery.integrations.base import IntegrationError, ObjectStore

if TYPE_CHECKING:
    from edelivery.config.settings import StorageSettings

log = logging.getLogger(__name__)


class S3ObjectStore(ObjectStore):
    """Presign ``get_object`` URLs for a single bucket."""

    def __init__(self, settings: StorageSettings) -> None:
        super().__init__(settings)
        if not settings.bucket:
            msg = "storage.bucket is required for the s3 backend"
            raise IntegrationError(msg)
        self._bucket = settings.bucket
        self._client = boto3.client(
            "s3",
            endpoint_url=settings.endpoint_url or None,
            region_name=settings.region or None,
            aws_access_key_id=settings.access_key_id or None,
            aws_secret_access_key=settings.secret_access_key or None,
            config=Config(
                s3={"addressing_style": settings.addressing_style},
                connect_timeout=settings.timeout_seconds,
                read_timeout=settings.timeout_seconds,
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )

    def normalize_key(self, key: str) -> str:
        """Turn a catalog storage path into an object key.

        Strips leading slashes and drops a redundant ``<bucket>/``
        prefix.  Percent signs are part of the key and are not decoded.
        """
        if not key:
            return key
        trimmed = key.lstrip("/")
        bucket_prefix = f"{self._bucket}/"
        if trimmed.startswith(bucket_prefix):
            trimmed = trimmed[len(bucket_prefix) :]
        return trimmed

    def sign_url(self, storage_path: str, expires_in: int) -> str:
        key = self.normalize_key(storage_path)
        if not key:
            msg = "cannot sign an empty storage path"
            raise IntegrationError(msg)
        try:
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            msg = f"object store refused to sign '{key}': {exc}"
            raise IntegrationError(msg) from exc

    def startup_check(self) -> None:
        """Verify the bucket is reachable with the configured credentials."""
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except (BotoCoreError, ClientError) as exc:
            msg = f"object store bucket '{self._bucket}' is not reachable: {exc}"
            raise IntegrationError(msg, retryable=True) from exc
