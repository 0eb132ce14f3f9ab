"""
Object storage adapter - S3 compatible bucket operations (AWS S3 or Cloudflare R2).

Provides:
- Presigned PUT / GET URL issuance
- Object metadata lookup and prefix listing
- Object upload / download
- Batched deletion

boto3 is synchronous; every public coroutine runs the client call in a
worker thread so request handlers and processors never block the loop.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from socialvault.config.settings import settings
from socialvault.shared.core.exceptions import UpstreamServiceError
from socialvault.shared.utils.storage_paths import normalize_storage_path

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most 1000 keys per request
MAX_DELETE_KEYS = 1000


@dataclass
class ObjectMetadata:
    """Result of a HEAD request."""

    content_length: Optional[int]
    content_type: Optional[str]


@dataclass
class DeleteOutcome:
    """Per-call deletion counts."""

    deleted: int
    failed: int


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in ("404", "NoSuchKey", "NotFound") or status == 404


class ObjectStorageAdapter:
    """
    Adapter for the backup bucket.

    Handles:
    - Signed URLs for direct browser upload/download
    - HEAD lookups used to tolerate schema drift on archive paths
    - Server-side reads/writes done by the worker
    - Deletion during retention cleanup
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.endpoint_url = endpoint_url or settings.STORAGE_ENDPOINT_URL or None
        self.region = region or settings.AWS_REGION
        self.access_key_id = access_key_id or settings.STORAGE_ACCESS_KEY_ID or settings.AWS_ACCESS_KEY_ID
        self.secret_access_key = (
            secret_access_key or settings.STORAGE_SECRET_ACCESS_KEY or settings.AWS_SECRET_ACCESS_KEY
        )
        self._client = None

    @property
    def client(self):
        """Lazy-loaded S3 client."""
        if self._client is None:
            params = {
                "region_name": "auto" if self.endpoint_url else self.region,
                "config": Config(signature_version="s3v4"),
            }
            if self.endpoint_url:
                params["endpoint_url"] = self.endpoint_url
            if self.access_key_id and self.secret_access_key:
                params["aws_access_key_id"] = self.access_key_id
                params["aws_secret_access_key"] = self.secret_access_key
            self._client = boto3.client("s3", **params)
        return self._client

    # ═══════════════════════════════════════════════════════════════════════════
    # SIGNED URLS
    # ═══════════════════════════════════════════════════════════════════════════

    async def create_signed_put_url(
        self,
        path: str,
        expires_in_seconds: int,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Presign a PUT for a direct browser upload.

        Args:
            path: Object key
            expires_in_seconds: URL lifetime
            content_type: Content-Type the client must send

        Returns:
            Presigned URL
        """
        params = {"Bucket": self.bucket, "Key": normalize_storage_path(path)}
        if content_type:
            params["ContentType"] = content_type
        return await self._call(
            "generate_presigned_url",
            "put_object",
            Params=params,
            ExpiresIn=max(1, expires_in_seconds),
        )

    async def create_signed_get_url(
        self,
        path: str,
        expires_in_seconds: int,
        download_file_name: Optional[str] = None,
    ) -> str:
        """Presign a GET, optionally forcing a download file name."""
        params = {"Bucket": self.bucket, "Key": normalize_storage_path(path)}
        if download_file_name:
            safe_name = download_file_name.replace('"', "")
            params["ResponseContentDisposition"] = f'attachment; filename="{safe_name}"'
        return await self._call(
            "generate_presigned_url",
            "get_object",
            Params=params,
            ExpiresIn=max(1, expires_in_seconds),
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # READ
    # ═══════════════════════════════════════════════════════════════════════════

    async def get_object_metadata(self, path: str) -> Optional[ObjectMetadata]:
        """
        HEAD an object.

        Returns:
            Metadata, or None when the object does not exist
        """
        try:
            response = await asyncio.to_thread(
                self.client.head_object,
                Bucket=self.bucket,
                Key=normalize_storage_path(path),
            )
        except ClientError as e:
            if _is_not_found(e):
                return None
            logger.error(f"Failed to HEAD object {path}: {e}")
            raise UpstreamServiceError("object_storage") from e

        return ObjectMetadata(
            content_length=response.get("ContentLength"),
            content_type=response.get("ContentType"),
        )

    async def object_exists(self, path: str) -> bool:
        return await self.get_object_metadata(path) is not None

    async def download_object(self, path: str) -> Optional[bytes]:
        """
        Read an object fully into memory.

        Returns:
            Object bytes, or None when the object does not exist
        """

        def _read() -> bytes:
            response = self.client.get_object(Bucket=self.bucket, Key=normalize_storage_path(path))
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_read)
        except ClientError as e:
            if _is_not_found(e):
                return None
            logger.error(f"Failed to download object {path}: {e}")
            raise UpstreamServiceError("object_storage") from e

    async def list_object_keys(self, prefix: str) -> List[str]:
        """Keys of every object under ``prefix`` (all pages)."""

        def _list() -> List[str]:
            paginator = self.client.get_paginator("list_objects_v2")
            keys: List[str] = []
            for page in paginator.paginate(Bucket=self.bucket, Prefix=normalize_storage_path(prefix)):
                keys.extend(item["Key"] for item in page.get("Contents", []))
            return keys

        try:
            return await asyncio.to_thread(_list)
        except ClientError as e:
            logger.error(f"Failed to list objects under {prefix}: {e}")
            raise UpstreamServiceError("object_storage") from e

    # ═══════════════════════════════════════════════════════════════════════════
    # WRITE
    # ═══════════════════════════════════════════════════════════════════════════

    async def upload_object(
        self,
        path: str,
        body: bytes,
        content_type: Optional[str] = None,
    ) -> None:
        """Write an object (overwrites any existing one)."""
        params = {"Bucket": self.bucket, "Key": normalize_storage_path(path), "Body": body}
        if content_type:
            params["ContentType"] = content_type
        await self._call("put_object", **params)

    async def delete_objects(self, paths: Iterable[str]) -> DeleteOutcome:
        """
        Delete objects; missing keys are not an error.

        Keys are normalized and de-duplicated. Per-key failures reported by
        the bucket are logged and counted rather than raised.

        Returns:
            DeleteOutcome with deleted / failed counts
        """
        keys: List[str] = []
        for path in paths:
            key = normalize_storage_path(path)
            if key and key not in keys:
                keys.append(key)
        if not keys:
            return DeleteOutcome(deleted=0, failed=0)

        deleted = 0
        failed = 0
        for start in range(0, len(keys), MAX_DELETE_KEYS):
            chunk = keys[start:start + MAX_DELETE_KEYS]
            response = await self._call(
                "delete_objects",
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in chunk], "Quiet": True},
            )
            errors = response.get("Errors", []) if isinstance(response, dict) else []
            for error in errors:
                logger.warning(f"Failed to delete object {error.get('Key')}: {error.get('Message')}")
            failed += len(errors)
            deleted += len(chunk) - len(errors)

        logger.debug(f"Deleted {deleted} objects from {self.bucket}")
        return DeleteOutcome(deleted=deleted, failed=failed)

    async def _call(self, method: str, *args, **kwargs):
        try:
            return await asyncio.to_thread(getattr(self.client, method), *args, **kwargs)
        except ClientError as e:
            logger.error(f"Object storage {method} failed: {e}")
            raise UpstreamServiceError("object_storage") from e


# Singleton instance
_storage_adapter: Optional[ObjectStorageAdapter] = None


def get_storage_adapter() -> ObjectStorageAdapter:
    """Get or create the process-wide storage adapter."""
    global _storage_adapter
    if _storage_adapter is None:
        _storage_adapter = ObjectStorageAdapter()
    return _storage_adapter
