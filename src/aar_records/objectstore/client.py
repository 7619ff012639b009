"""boto3-backed client for the attachment bucket."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError

from aar_records.config import ObjectStorageSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DOWNLOAD_CHUNK_BYTES = 64 * 1024

_ERROR_CODE_MAP = {
    "NoSuchKey": "not_found",
    "NotFound": "not_found",
    "404": "not_found",
    "NoSuchBucket": "no_such_bucket",
    "AccessDenied": "access_denied",
    "Forbidden": "access_denied",
    "403": "access_denied",
    "InvalidAccessKeyId": "access_denied",
    "SignatureDoesNotMatch": "access_denied",
}


class ObjectStorageError(Exception):
    """Raised when an object storage call fails.

    On ``code == "timeout"`` the blocking call is still running in its worker
    thread; ``pending`` resolves once it finishes.
    """

    def __init__(
        self,
        message: str,
        code: str = "storage_error",
        pending: asyncio.Future[Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.pending = pending


@dataclass(frozen=True)
class ObjectMetadata:
    key: str
    size: int
    content_type: str | None
    etag: str | None
    last_modified: datetime | None


@dataclass
class DownloadedObject:
    """An object body being streamed from the bucket.

    The caller owns ``body`` and must close it, either directly or by
    exhausting :meth:`iter_chunks`.
    """

    key: str
    body: Any
    content_type: str | None
    content_length: int | None

    def iter_chunks(self, chunk_size: int = _DOWNLOAD_CHUNK_BYTES) -> Iterator[bytes]:
        try:
            while True:
                chunk = self.body.read(chunk_size)
                if not chunk:
                    return
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        self.body.close()


def _translate_error(exc: Exception, action: str, key: str | None) -> ObjectStorageError:
    target = f" '{key}'" if key else ""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        error_code = str(error.get("Code", "Unknown"))
        message = error.get("Message") or str(exc)
        return ObjectStorageError(
            f"failed to {action}{target}: {error_code}: {message}",
            code=_ERROR_CODE_MAP.get(error_code, "storage_error"),
        )
    if isinstance(exc, EndpointConnectionError):
        return ObjectStorageError(f"failed to {action}{target}: {exc}", code="connection_error")
    return ObjectStorageError(f"failed to {action}{target}: {exc}")


def _log_late_failure(call: asyncio.Future[Any]) -> None:
    if call.cancelled():
        return
    exc = call.exception()
    if exc is not None:
        logger.warning("Object storage call failed after its deadline: %s", exc)


def _client_config(settings: ObjectStorageSettings) -> Config:
    return Config(
        connect_timeout=settings.timeout_seconds,
        read_timeout=settings.timeout_seconds,
        retries={"max_attempts": settings.max_retries, "mode": "standard"},
        # Path-style addressing is required by MinIO and most S3 clones.
        s3={"addressing_style": "path"},
        request_checksum_calculation="when_required",
        response_checksum_validation="when_required",
    )


class ObjectStorageClient:
    """Thread-safe wrapper around a boto3 S3 client bound to one bucket."""

    def __init__(self, settings: ObjectStorageSettings, client: Any = None) -> None:
        self._settings = settings
        self._bucket = settings.bucket
        self._client = client
        self._lock = threading.Lock()

    @property
    def bucket(self) -> str:
        return self._bucket

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        with self._lock:
            if self._client is not None:
                return self._client

            session = boto3.session.Session(
                aws_access_key_id=self._settings.access_key,
                aws_secret_access_key=self._settings.secret_key,
                region_name=self._settings.region,
            )
            self._client = session.client(
                "s3",
                endpoint_url=self._settings.endpoint,
                verify=self._settings.verify_tls,
                config=_client_config(self._settings),
            )
            logger.info(
                "S3 client initialized (endpoint=%s, region=%s, bucket=%s)",
                self._settings.endpoint or "aws",
                self._settings.region,
                self._bucket,
            )
            return self._client

    def upload_bytes(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self._get_client().put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(exc, "upload object", key) from exc
        logger.info("Uploaded s3://%s/%s (%d bytes)", self._bucket, key, len(data))

    def download(self, key: str) -> DownloadedObject:
        try:
            response = self._get_client().get_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(exc, "download object", key) from exc
        return DownloadedObject(
            key=key,
            body=response["Body"],
            content_type=response.get("ContentType"),
            content_length=response.get("ContentLength"),
        )

    def presigned_url(self, key: str, expires_in: int = 3600) -> str:
        try:
            return self._get_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(exc, "generate presigned URL for", key) from exc

    def list_keys(self, prefix: str = "") -> list[str]:
        keys: list[str] = []
        try:
            paginator = self._get_client().get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                keys.extend(item["Key"] for item in page.get("Contents", []))
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(exc, "list objects under", prefix) from exc
        return keys

    def delete(self, key: str) -> None:
        try:
            self._get_client().delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(exc, "delete object", key) from exc
        logger.info("Deleted s3://%s/%s", self._bucket, key)

    def head(self, key: str) -> ObjectMetadata:
        try:
            response = self._get_client().head_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(exc, "read metadata of", key) from exc
        return ObjectMetadata(
            key=key,
            size=int(response.get("ContentLength", 0)),
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
            last_modified=response.get("LastModified"),
        )

    def check_bucket(self) -> None:
        """Verify the bucket exists and the credentials may list it."""
        try:
            self._get_client().list_objects_v2(Bucket=self._bucket, MaxKeys=1)
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(exc, "access bucket", self._bucket) from exc

    # Async variants run the blocking boto3 call in a worker thread, bounded
    # by a caller-supplied deadline.

    async def _run(self, timeout: float | None, fn: Callable[..., T], *args: Any) -> T:
        call = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        try:
            # Shielded: the worker thread cannot be interrupted, so the call is
            # handed to the caller instead of being cancelled on timeout.
            return await asyncio.wait_for(asyncio.shield(call), timeout=timeout)
        except asyncio.TimeoutError as exc:
            call.add_done_callback(_log_late_failure)
            raise ObjectStorageError(
                f"{fn.__name__} timed out after {timeout}s", code="timeout", pending=call
            ) from exc

    async def upload_bytes_async(
        self, key: str, data: bytes, content_type: str, timeout: float | None = None
    ) -> None:
        await self._run(timeout, self.upload_bytes, key, data, content_type)

    async def download_async(self, key: str, timeout: float | None = None) -> DownloadedObject:
        return await self._run(timeout, self.download, key)

    async def delete_async(self, key: str, timeout: float | None = None) -> None:
        await self._run(timeout, self.delete, key)

    async def check_bucket_async(self, timeout: float | None = None) -> None:
        await self._run(timeout, self.check_bucket)
