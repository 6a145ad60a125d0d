from __future__ import annotations

import asyncio
import os
import pathlib
import re
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile

from treasure_hunt.models.media_file import MediaFile

MEDIA_FOLDER = "treasure-hunt"


@dataclass
class StorageResult:
    backend: str
    path: str
    size: int


def sanitize_filename(filename: str) -> str:
    name = pathlib.Path(filename).name
    name = re.sub(r"[^A-Za-z0-9._-]", "_", name).strip("._") or "upload"
    return name


def _object_key(public_id: str, filename: str) -> str:
    suffix = pathlib.Path(sanitize_filename(filename)).suffix.lower()
    return f"{MEDIA_FOLDER}/{public_id}{suffix}"


class MediaStorage:
    backend_name = "base"

    async def save(self, public_id: str, upload: UploadFile) -> StorageResult:  # pragma: no cover
        raise NotImplementedError

    async def delete(self, media: MediaFile) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError

    async def open(self, media: MediaFile) -> AsyncIterator[bytes]:  # pragma: no cover
        raise NotImplementedError

    async def signed_url(self, media: MediaFile) -> Optional[str]:
        return None


class LocalMediaStorage(MediaStorage):
    backend_name = "local"

    def __init__(self, base_path: Optional[str] = None) -> None:
        base_path = base_path or os.getenv("MEDIA_LOCAL_PATH", "storage/media")
        self.base_path = pathlib.Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, relative: str) -> pathlib.Path:
        candidate = (self.base_path / relative).resolve()
        if not candidate.is_relative_to(self.base_path):
            raise HTTPException(status_code=400, detail="Invalid media path")
        return candidate

    async def save(self, public_id: str, upload: UploadFile) -> StorageResult:
        relative = _object_key(public_id, upload.filename or "upload")
        path = self._resolve(relative)
        path.parent.mkdir(parents=True, exist_ok=True)

        size = 0
        async with aiofiles.open(path, "wb") as buffer:
            while True:
                chunk = await upload.read(1024 * 1024)
                if not chunk:
                    break
                size += len(chunk)
                await buffer.write(chunk)
        await upload.close()
        return StorageResult(backend=self.backend_name, path=relative, size=size)

    async def delete(self, media: MediaFile) -> bool:
        path = self._resolve(media.storage_path)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    async def open(self, media: MediaFile) -> AsyncIterator[bytes]:
        file_path = self.get_file_path(media)

        async def iterator():
            async with aiofiles.open(file_path, "rb") as handle:
                while True:
                    chunk = await handle.read(1024 * 256)
                    if not chunk:
                        break
                    yield chunk

        return iterator()

    def get_file_path(self, media: MediaFile) -> pathlib.Path:
        path = self._resolve(media.storage_path)
        if not path.exists():
            raise FileNotFoundError(path)
        return path


class S3MediaStorage(MediaStorage):
    backend_name = "s3"

    def __init__(self) -> None:
        bucket = os.getenv("MEDIA_S3_BUCKET")
        if not bucket:
            raise RuntimeError("MEDIA_S3_BUCKET must be set for S3 storage")
        self.bucket = bucket
        self.client = boto3.client(
            "s3",
            endpoint_url=os.getenv("MEDIA_S3_ENDPOINT"),
            region_name=os.getenv("MEDIA_S3_REGION"),
        )
        self.ttl = int(os.getenv("MEDIA_S3_URL_TTL", str(7 * 24 * 3600)))

    async def save(self, public_id: str, upload: UploadFile) -> StorageResult:
        key = _object_key(public_id, upload.filename or "upload")
        extra = {"ContentType": upload.content_type} if upload.content_type else None

        def _upload():
            upload.file.seek(0)
            self.client.upload_fileobj(upload.file, self.bucket, key, ExtraArgs=extra)
            return upload.file.tell()

        try:
            size = await asyncio.to_thread(_upload)
        except (BotoCoreError, ClientError) as exc:
            raise HTTPException(status_code=500, detail="File upload failed") from exc
        await upload.close()
        return StorageResult(backend=self.backend_name, path=key, size=size)

    async def delete(self, media: MediaFile) -> bool:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=media.storage_path)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in {"404", "NoSuchKey"}:
                return False
            raise
        return True

    async def open(self, media: MediaFile) -> AsyncIterator[bytes]:  # pragma: no cover - not used
        raise HTTPException(status_code=400, detail="Use signed URLs for S3 media")

    async def signed_url(self, media: MediaFile) -> Optional[str]:
        return await asyncio.to_thread(
            self.client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": media.storage_path},
            ExpiresIn=self.ttl,
        )


_storage: Optional[MediaStorage] = None


def get_media_storage() -> MediaStorage:
    global _storage
    if _storage is not None:
        return _storage

    backend = os.getenv("MEDIA_STORAGE", "local").lower()
    if backend == "local":
        _storage = LocalMediaStorage()
    elif backend == "s3":
        _storage = S3MediaStorage()
    else:  # pragma: no cover - configuration error
        raise RuntimeError(f"Unsupported MEDIA_STORAGE backend: {backend}")
    return _storage


def set_media_storage(storage: Optional[MediaStorage]) -> None:
    """Install a specific backend (``None`` re-reads MEDIA_STORAGE on next use)."""
    global _storage
    _storage = storage
