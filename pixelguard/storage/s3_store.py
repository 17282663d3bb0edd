"""S3/R2-compatible object store implementation via aiobotocore."""

from __future__ import annotations

from typing import Any

import structlog
from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from pixelguard.exceptions import StorageError
from pixelguard.storage.object_store import ObjectStore

logger = structlog.get_logger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class S3ObjectStore(ObjectStore):
    """Object store backed by S3-compatible storage (AWS S3, Cloudflare R2, MinIO).

    Single-object PUTs are atomic on S3, so readers never observe partial writes.
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        region: str = "auto",
    ) -> None:
        self._bucket = bucket
        self._session = get_session()
        self._config: dict[str, Any] = {
            "region_name": region,
        }
        if endpoint_url:
            self._config["endpoint_url"] = endpoint_url
        if access_key_id:
            self._config["aws_access_key_id"] = access_key_id
        if secret_access_key:
            self._config["aws_secret_access_key"] = secret_access_key

    async def put(self, key: str, data: bytes) -> None:
        try:
            async with self._session.create_client("s3", **self._config) as client:
                await client.put_object(
                    Bucket=self._bucket, Key=key, Body=data, ContentType="image/png"
                )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to upload {key}: {e}") from e
        logger.debug("s3_put", key=key, size=len(data), bucket=self._bucket)

    async def get(self, key: str) -> bytes | None:
        try:
            async with self._session.create_client("s3", **self._config) as client:
                try:
                    resp = await client.get_object(Bucket=self._bucket, Key=key)
                except client.exceptions.NoSuchKey:
                    return None
                async with resp["Body"] as stream:
                    data: bytes = await stream.read()
                return data
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to download {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        try:
            async with self._session.create_client("s3", **self._config) as client:
                await client.head_object(Bucket=self._bucket, Key=key)
                return True
        except ClientError as e:
            if str(e.response.get("Error", {}).get("Code")) in _MISSING_CODES:
                return False
            raise StorageError(f"Failed to stat {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to stat {key}: {e}") from e

    async def delete(self, key: str) -> None:
        # S3 DeleteObject succeeds for missing keys
        try:
            async with self._session.create_client("s3", **self._config) as client:
                await client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
