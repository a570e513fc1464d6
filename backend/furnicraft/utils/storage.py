"""Image storage — Supabase Storage through its S3-compatible endpoint.

Uploaded designs live under `designs/{uuid}.{ext}` in the configured bucket
and are served from the public object URL:
    {SUPABASE_URL}/storage/v1/object/public/{bucket}/designs/<uuid>.jpg

`InMemoryImageStorage` stands in when no storage credentials are set.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, runtime_checkable

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from furnicraft.config import Settings
from furnicraft.errors import UploadError

logger = structlog.get_logger()


@runtime_checkable
class ImageStorage(Protocol):
    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store bytes at `path` and return the public URL."""
        ...

    async def ping(self) -> bool: ...


def storage_configured(cfg: Settings) -> bool:
    """Check if all credentials needed for Supabase Storage are available."""
    return bool(
        cfg.supabase_url
        and cfg.supabase_s3_endpoint
        and cfg.supabase_s3_access_key_id
        and cfg.supabase_s3_secret_access_key
        and cfg.storage_bucket
    )


class SupabaseImageStorage:
    def __init__(self, cfg: Settings, client: Any = None) -> None:
        self._cfg = cfg
        self._client = client

    def _get_client(self) -> Any:
        """Lazy-init the boto3 S3 client."""
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self._cfg.supabase_s3_endpoint,
                aws_access_key_id=self._cfg.supabase_s3_access_key_id,
                aws_secret_access_key=self._cfg.supabase_s3_secret_access_key,
                config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
                region_name=self._cfg.supabase_s3_region,
            )
        return self._client

    def public_url(self, path: str) -> str:
        base = self._cfg.supabase_url.rstrip("/")
        return f"{base}/storage/v1/object/public/{self._cfg.storage_bucket}/{path}"

    def _put(self, path: str, data: bytes, content_type: str) -> None:
        self._get_client().put_object(
            Bucket=self._cfg.storage_bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(self._put, path, data, content_type)
        except (ClientError, BotoCoreError) as exc:
            logger.error("storage_upload_failed", path=path, error=str(exc))
            raise UploadError(f"Upload failed: {exc}") from exc
        logger.info("storage_upload", path=path, size=len(data), content_type=content_type)
        return self.public_url(path)

    async def ping(self) -> bool:
        def _head_bucket() -> None:
            self._get_client().head_bucket(Bucket=self._cfg.storage_bucket)

        try:
            await asyncio.to_thread(_head_bucket)
        except (ClientError, BotoCoreError) as exc:
            logger.debug("storage_ping_failed", error=str(exc))
            return False
        return True


class InMemoryImageStorage:
    """Keeps blobs in a dict; URLs point at a fake host."""

    def __init__(self, base_url: str = "https://storage.local/furniture-images") -> None:
        self.base_url = base_url.rstrip("/")
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        self.objects[path] = (data, content_type)
        return f"{self.base_url}/{path}"

    async def ping(self) -> bool:
        return True


def build_storage(cfg: Settings) -> ImageStorage:
    if storage_configured(cfg):
        return SupabaseImageStorage(cfg)
    logger.warning("storage_not_configured", hint="Using in-memory image storage")
    return InMemoryImageStorage()
