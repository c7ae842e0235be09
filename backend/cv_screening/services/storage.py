"""
Storage Gateway - CV PDF blobs in Supabase Storage or a local uploads dir.

Every failure surfaces as StorageError so the pipeline can classify it.
"""
import os
import uuid
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

import aiofiles
import httpx

from ..config import Settings, get_settings
from .errors import StorageError

logger = logging.getLogger(__name__)


def new_storage_key() -> str:
    """Opaque key for a new CV object, e.g. cvs/2026-10-18/<uuid>."""
    return f"cvs/{datetime.now(timezone.utc).strftime('%Y-%m-%d')}/{uuid.uuid4()}"


class StorageGateway(ABC):
    """Interface the pipeline and upload layer depend on."""

    @abstractmethod
    async def get_object(self, key: str) -> bytes:
        ...

    @abstractmethod
    async def put_object(self, data: bytes, content_type: str) -> str:
        ...

    @abstractmethod
    async def get_presigned_download_url(self, key: str, ttl_seconds: int = 3600) -> str:
        ...


class SupabaseStorage(StorageGateway):
    """Supabase Storage REST API with the service-role key."""

    def __init__(self, supabase_url: str, service_key: str, bucket: str, timeout: float = 120.0,
                 transport: httpx.AsyncBaseTransport = None):
        if not supabase_url or not service_key:
            raise StorageError("Supabase configuration missing")
        self.base_url = supabase_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self.transport = transport

    def _headers(self, **extra) -> dict:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }
        headers.update(extra)
        return headers

    async def get_object(self, key: str) -> bytes:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    f"{self.base_url}/storage/v1/object/{self.bucket}/{key}",
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            raise StorageError(f"Storage download failed: {e}") from e

        if response.status_code != 200:
            detail = response.text[:500] if response.text else "Unknown error"
            raise StorageError(f"Storage download failed ({response.status_code}): {detail}")
        if not response.content:
            raise StorageError("Storage object body is empty")
        return response.content

    async def put_object(self, data: bytes, content_type: str) -> str:
        key = new_storage_key()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/storage/v1/object/{self.bucket}/{key}",
                    headers=self._headers(**{
                        "Content-Type": content_type,
                        "Content-Length": str(len(data)),
                    }),
                    content=data,
                )
        except httpx.HTTPError as e:
            raise StorageError(f"Storage upload failed: {e}") from e

        if response.status_code not in (200, 201):
            detail = response.text[:500] if response.text else "Unknown error"
            raise StorageError(f"Storage upload failed ({response.status_code}): {detail}")
        return key

    async def get_presigned_download_url(self, key: str, ttl_seconds: int = 3600) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/storage/v1/object/sign/{self.bucket}/{key}",
                    headers=self._headers(),
                    json={"expiresIn": ttl_seconds},
                )
                response.raise_for_status()
                signed = response.json().get("signedURL")
        except (httpx.HTTPError, ValueError) as e:
            raise StorageError(f"Failed to generate presigned URL: {e}") from e

        if not signed:
            raise StorageError("Failed to generate presigned URL: empty response")
        return f"{self.base_url}/storage/v1{signed}"


class LocalStorage(StorageGateway):
    """Filesystem storage for local development and tests."""

    def __init__(self, root_dir: str, public_prefix: str = "/uploads"):
        self.root_dir = os.path.abspath(root_dir)
        self.public_prefix = public_prefix.rstrip("/")

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root_dir, key))
        if not path.startswith(self.root_dir + os.sep):
            raise StorageError(f"Invalid storage key: {key}")
        return path

    async def get_object(self, key: str) -> bytes:
        path = self._path(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise StorageError(f"Storage download failed: {e}") from e

    async def put_object(self, data: bytes, content_type: str) -> str:
        key = new_storage_key()
        path = self._path(key)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise StorageError(f"Storage upload failed: {e}") from e
        return key

    async def get_presigned_download_url(self, key: str, ttl_seconds: int = 3600) -> str:
        if not os.path.exists(self._path(key)):
            raise StorageError(f"Storage object not found: {key}")
        return f"{self.public_prefix}/{key}"


def build_storage(settings: Settings = None) -> StorageGateway:
    settings = settings or get_settings()
    if settings.storage_backend == "supabase":
        logger.info(f"Using Supabase storage bucket: {settings.supabase_bucket}")
        return SupabaseStorage(
            settings.supabase_url,
            settings.supabase_service_role_key,
            settings.supabase_bucket,
        )
    logger.info(f"Using local storage: {settings.uploads_dir}")
    return LocalStorage(settings.uploads_dir)
