"""Object storage backends for shipping and retrieving log segments."""

from __future__ import annotations

import asyncio
from typing import Any, Iterator, List, Optional, Protocol

from botocore.exceptions import BotoCoreError, ClientError, HTTPClientError
from botocore.exceptions import ConnectionError as BotoConnectionError

from lognexus.core.models import RemoteObject
from lognexus.errors import TransientTransferError

DEFAULT_CHUNK_SIZE = 256 * 1024


class ObjectStore(Protocol):
    bucket: str

    async def put(self, key: str, body: bytes, *, content_type: str) -> None:
        """Store ``body`` under ``key``, replacing any existing object."""

    async def list_objects(self, prefix: str) -> List[RemoteObject]:
        """Return every object under ``prefix`` (all pages)."""

    def iter_chunks(self, key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        """Stream an object body. Blocking; run it off the event loop."""


def is_retryable_s3_error(exc: ClientError) -> bool:
    """Return True if the S3 error is considered transient."""
    response = getattr(exc, "response", {}) or {}
    error = response.get("Error") or {}
    code = str(error.get("Code") or "").upper()
    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")

    transient_status = {500, 502, 503, 504}
    transient_codes = {
        "500",
        "503",
        "429",
        "REQUESTTIMEOUT",
        "REQUESTTIMEOUTEXCEPTION",
        "TOOMANYREQUESTS",
        "SLOWDOWN",
        "THROTTLING",
        "THROTTLINGEXCEPTION",
        "INTERNALERROR",
        "SERVICEUNAVAILABLE",
    }
    if status in transient_status:
        return True
    return code in transient_codes


def _as_transient(
    exc: Exception, action: str, key: str
) -> Optional[TransientTransferError]:
    """Map botocore failures onto TransientTransferError where a retry can help."""
    if isinstance(exc, (BotoConnectionError, HTTPClientError)):
        return TransientTransferError(f"{action} {key}: {exc}")
    if isinstance(exc, ClientError) and is_retryable_s3_error(exc):
        return TransientTransferError(f"{action} {key}: {exc}")
    return None


class S3ObjectStore:
    """Async wrapper around a boto3 S3 client bound to one bucket."""

    def __init__(
        self,
        s3_client: Any,
        bucket: str,
        *,
        server_side_encryption: Optional[str] = None,
        storage_class: Optional[str] = None,
    ) -> None:
        self.s3 = s3_client
        self.bucket = bucket
        self.server_side_encryption = server_side_encryption
        self.storage_class = storage_class

    @classmethod
    def from_settings(cls, settings: Any, s3_client: Any = None) -> "S3ObjectStore":
        return cls(
            s3_client or settings.build_client(),
            settings.bucket,
            server_side_encryption=settings.server_side_encryption,
            storage_class=settings.storage_class,
        )

    def _put_params(self, key: str, body: bytes, content_type: str) -> dict[str, Any]:
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if self.server_side_encryption:
            params["ServerSideEncryption"] = self.server_side_encryption
        if self.storage_class:
            params["StorageClass"] = self.storage_class
        return params

    async def put(self, key: str, body: bytes, *, content_type: str) -> None:
        """Upload a payload to S3."""
        params = self._put_params(key, body, content_type)
        try:
            await asyncio.to_thread(self.s3.put_object, **params)
        except (ClientError, BotoConnectionError, HTTPClientError) as exc:
            transient = _as_transient(exc, "put", key)
            if transient is None:
                raise
            raise transient from exc

    def _list_pages(self, prefix: str) -> List[RemoteObject]:
        paginator = self.s3.get_paginator("list_objects_v2")
        objects: List[RemoteObject] = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for item in page.get("Contents", []):
                objects.append(
                    RemoteObject(
                        key=item["Key"],
                        size=int(item.get("Size", 0)),
                        last_modified=item.get("LastModified"),
                    )
                )
        return objects

    async def list_objects(self, prefix: str) -> List[RemoteObject]:
        try:
            return await asyncio.to_thread(self._list_pages, prefix)
        except (ClientError, BotoConnectionError, HTTPClientError) as exc:
            transient = _as_transient(exc, "list", prefix)
            if transient is None:
                raise
            raise transient from exc

    def iter_chunks(self, key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"]
            try:
                yield from body.iter_chunks(chunk_size)
            finally:
                body.close()
        except (ClientError, BotoCoreError) as exc:
            raise TransientTransferError(f"get {key}: {exc}") from exc


__all__ = ["ObjectStore", "S3ObjectStore", "is_retryable_s3_error", "DEFAULT_CHUNK_SIZE"]
