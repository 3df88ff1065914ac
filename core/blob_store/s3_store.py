# Path: core/blob_store/s3_store.py
# Purpose: Store image bytes in an S3-compatible bucket.
# Layer: core/blob_store.
# Details: Uses boto3 with path-style addressing so MinIO and similar endpoints work.

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from config.settings import BlobStoreSettings
from .base import BlobStore

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class S3BlobStore(BlobStore):
    """Blob store over a single bucket; the boto3 client is shared across threads."""

    def __init__(self, client: Any, bucket: str, endpoint: str) -> None:
        self.name = "s3"
        self._client = client
        self.bucket = bucket
        self.endpoint = endpoint.rstrip("/")

    @classmethod
    def from_settings(cls, settings: BlobStoreSettings) -> "S3BlobStore":
        """Create a client from explicit credentials and a custom endpoint."""

        import boto3

        client = boto3.client(
            "s3",
            endpoint_url=settings.endpoint,
            region_name=settings.region,
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
            config=BotoConfig(s3={"addressing_style": "path"}),
        )
        return cls(client, settings.bucket_name, settings.endpoint)

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return False
            raise
        return True

    def put(self, key: str, data: bytes) -> None:
        self._client.put_object(Bucket=self.bucket, Key=key, Body=data)
        logger.debug("Uploaded %s (%d bytes) to %s", key, len(data), self.bucket)

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_CODES:
                raise KeyError(key) from exc
            raise
        return response["Body"].read()

    def list(self, prefix: Optional[str] = None) -> List[str]:
        params: Dict[str, str] = {"Bucket": self.bucket}
        if prefix:
            params["Prefix"] = prefix

        keys: List[str] = []
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(**params):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    def url_for(self, key: str) -> str:
        return f"{self.endpoint}/{self.bucket}/{key}"
