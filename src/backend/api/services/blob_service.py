"""
Blob storage for uploaded files and their extraction sidecars.

Objects live in one S3 bucket keyed by ``{chat_id}/{uuid}-{filename}``.
boto3 is synchronous, so every call runs in the default executor.
"""

from __future__ import annotations

import asyncio
import re

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar
from uuid import uuid4

from api.middleware.exception_handlers import ExternalServiceError
from models.error_models import ErrorCode
from utils.logger import logger

if TYPE_CHECKING:
    from core.constants import Settings

T = TypeVar("T")

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(slots=True)
class StoredBlob:
    url: str
    pathname: str
    content_type: str
    blob_name: str


def safe_filename(filename: str) -> str:
    """Reduce a client filename to a key-safe basename."""
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = _UNSAFE_NAME_CHARS.sub("_", base).strip("._")
    return cleaned or "file"


def make_blob_name(chat_id: str, filename: str) -> str:
    return f"{chat_id}/{uuid4()}-{safe_filename(filename)}"


class BlobService:
    """Upload, download and address objects in the configured bucket."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazy-initialize boto3 client."""
        if self._client is None:
            import boto3

            client_kwargs: dict[str, Any] = {
                "service_name": "s3",
                "region_name": self.settings.s3_region,
            }

            # Only pass explicit credentials if configured (allows fallback to AWS profile/SSO)
            if self.settings.aws_access_key_id:
                client_kwargs["aws_access_key_id"] = self.settings.aws_access_key_id
            if self.settings.aws_secret_access_key:
                client_kwargs["aws_secret_access_key"] = self.settings.aws_secret_access_key

            if self.settings.s3_endpoint_url:
                client_kwargs["endpoint_url"] = self.settings.s3_endpoint_url

            self._client = boto3.client(**client_kwargs)
        return self._client

    @property
    def bucket(self) -> str:
        return str(self.settings.s3_bucket)

    async def _run(self, operation: str, fn: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except Exception as e:
            logger.error(f"Blob {operation} failed: {e}", exc_info=True)
            raise ExternalServiceError(
                "blob-storage", f"Blob {operation} failed", code=ErrorCode.BLOB_STORAGE_ERROR, cause=e
            ) from e

    async def upload(self, blob_name: str, data: bytes, content_type: str) -> StoredBlob:
        client = self._get_client()
        await self._run(
            "upload",
            lambda: client.put_object(Bucket=self.bucket, Key=blob_name, Body=data, ContentType=content_type),
        )
        logger.info(f"Uploaded blob {blob_name} ({len(data)} bytes)")
        return StoredBlob(
            url=await self.url_for(blob_name),
            pathname=blob_name,
            content_type=content_type,
            blob_name=blob_name,
        )

    async def download(self, blob_name: str) -> bytes:
        client = self._get_client()

        def fetch() -> bytes:
            response = client.get_object(Bucket=self.bucket, Key=blob_name)
            body: bytes = response["Body"].read()
            return body

        return await self._run("download", fetch)

    async def url_for(self, blob_name: str, expires_in: int = 3600) -> str:
        """Public URL when a base is configured, otherwise a presigned GET."""
        if self.settings.public_blob_base_url:
            return f"{self.settings.public_blob_base_url.rstrip('/')}/{blob_name}"
        client = self._get_client()
        url: str = await self._run(
            "presign",
            lambda: client.generate_presigned_url(
                "get_object", Params={"Bucket": self.bucket, "Key": blob_name}, ExpiresIn=expires_in
            ),
        )
        return url
