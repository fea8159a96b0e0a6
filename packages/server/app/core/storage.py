"""
Object storage for uploaded project documents.

Two backends share one small interface: a local directory for development and
S3 (or MinIO) via boto3. Links are public and never expire.
"""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from functools import lru_cache
from pathlib import Path

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import get_settings

log = structlog.get_logger()


class StorageError(Exception):
    """The storage backend rejected an operation."""


def build_object_path(user_id: uuid.UUID, project_id: uuid.UUID, file_name: str) -> str:
    """``{user}/{project}/{epoch_ms}_{clean_name}`` with unsafe characters replaced."""
    clean = re.sub(r"[^a-zA-Z0-9.]", "_", file_name)
    stamp = int(time.time() * 1000)
    return f"{user_id}/{project_id}/{stamp}_{clean}"


class ObjectStorage:
    """Interface implemented by every storage backend."""

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    async def remove(self, path: str) -> None:
        raise NotImplementedError

    async def exists(self, path: str) -> bool:
        raise NotImplementedError

    def public_url(self, path: str) -> str:
        raise NotImplementedError


class LocalObjectStorage(ObjectStorage):
    """Stores objects under a directory on the local filesystem."""

    def __init__(self, root: str | Path, public_base_url: str):
        self._root = Path(root)
        self._public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if self._root.resolve() not in target.parents:
            raise StorageError(f"Path escapes storage root: {path}")
        return target

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(path)
        if target.exists():
            raise StorageError(f"Object already exists: {path}")

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise StorageError(str(exc)) from exc
        return path

    async def remove(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as exc:
            raise StorageError(str(exc)) from exc

    async def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def public_url(self, path: str) -> str:
        return f"{self._public_base_url}/{path}"


class S3ObjectStorage(ObjectStorage):
    """S3/MinIO backend. boto3 is blocking, so calls run in a worker thread."""

    def __init__(self, bucket: str, region: str, endpoint_url: str = ""):
        self._bucket = bucket
        self._region = region
        self._endpoint_url = endpoint_url or None
        self._client = boto3.client(
            "s3",
            endpoint_url=self._endpoint_url,
            region_name=region,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
                CacheControl="max-age=3600",
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc
        return path

    async def remove(self, path: str) -> None:
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self._bucket, Key=path)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    async def exists(self, path: str) -> bool:
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=self._bucket, Key=path)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StorageError(str(exc)) from exc
        return True

    def public_url(self, path: str) -> str:
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{path}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{path}"


@lru_cache
def get_storage() -> ObjectStorage:
    """FastAPI dependency returning the configured storage backend."""
    settings = get_settings()
    if settings.storage_backend == "s3":
        log.info("storage.backend", backend="s3", bucket=settings.s3_bucket)
        return S3ObjectStorage(settings.s3_bucket, settings.aws_region, settings.s3_endpoint_url)
    log.info("storage.backend", backend="local", root=settings.storage_root)
    return LocalObjectStorage(settings.storage_root, settings.storage_public_base_url)
