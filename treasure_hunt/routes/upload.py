from __future__ import annotations

import logging
import os
import secrets
import time
from typing import Optional
from urllib.parse import urljoin

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.auth_token import get_current_user
from treasure_hunt.database import get_db
from treasure_hunt.models.media_file import MediaFile
from treasure_hunt.models.user import User
from treasure_hunt.schemas import MediaFileRead
from treasure_hunt.services.storage import get_media_storage

router = APIRouter(prefix="/upload", tags=["Upload"])
logger = logging.getLogger(__name__)

ALLOWED_PREFIXES = ("image/", "audio/")


def _max_bytes() -> int:
    return int(os.getenv("MEDIA_MAX_BYTES", str(10 * 1024 * 1024)))


def resource_type_for(content_type: Optional[str]) -> str:
    """Images are ``image``; audio is served like video; anything else is ``raw``."""
    content_type = (content_type or "").lower()
    if content_type.startswith("image/"):
        return "image"
    if content_type.startswith("audio/"):
        return "video"
    return "raw"


def _media_url(request: Request, media: MediaFile) -> str:
    path = f"/upload/{media.public_id}/content"
    base = os.getenv("MEDIA_PUBLIC_BASE_URL", "").strip()
    if not base:
        return urljoin(str(request.base_url), path.lstrip("/"))
    return urljoin(base.rstrip("/") + "/", path.lstrip("/"))


def _upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    position = upload.file.tell()
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(position)
    return size


def _file_payload(request: Request, media: MediaFile) -> dict:
    return MediaFileRead(
        public_id=media.public_id,
        url=_media_url(request, media),
        format=media.format,
        resource_type=media.resource_type,
        bytes=media.bytes,
        content_type=media.content_type,
        created_at=media.created_at,
    ).model_dump()


async def _get_media(db: AsyncSession, public_id: str) -> MediaFile:
    result = await db.execute(select(MediaFile).where(MediaFile.public_id == public_id))
    media = result.scalar_one_or_none()
    if media is None:
        raise HTTPException(status_code=404, detail="File not found")
    return media


# -------------------------------------------------------------------
# POST /upload
# -------------------------------------------------------------------
@router.post("")
async def upload_file(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    content_type = (file.content_type or "").lower()
    if not content_type.startswith(ALLOWED_PREFIXES):
        raise HTTPException(status_code=400, detail="Only image and audio files are allowed")

    size = _upload_size(file)
    if size == 0:
        raise HTTPException(status_code=400, detail="No file provided")
    if size > _max_bytes():
        raise HTTPException(status_code=400, detail="File too large")

    public_id = f"{user.id}_{int(time.time() * 1000)}_{secrets.token_hex(3)}"
    storage = get_media_storage()
    try:
        stored = await storage.save(public_id, file)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Upload error")
        raise HTTPException(status_code=500, detail="File upload failed")

    media = MediaFile(
        public_id=public_id,
        owner_id=user.id,
        filename=file.filename,
        content_type=content_type,
        resource_type=resource_type_for(content_type),
        bytes=stored.size,
        storage_backend=stored.backend,
        storage_path=stored.path,
    )
    db.add(media)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Upload bookkeeping error")
        # Don't leave an orphaned object behind when the row couldn't be written.
        try:
            await storage.delete(media)
        except Exception:
            logger.exception("Failed to remove orphaned upload %s", public_id)
        raise HTTPException(status_code=500, detail="File upload failed")

    logger.info("User %s uploaded %s (%s bytes)", user.id, public_id, stored.size)
    return {"message": "File uploaded successfully", "file": _file_payload(request, media)}


# -------------------------------------------------------------------
# GET /upload/{public_id}/content
# -------------------------------------------------------------------
@router.get("/{public_id}/content", name="media_content")
async def get_file_content(public_id: str, db: AsyncSession = Depends(get_db)):
    media = await _get_media(db, public_id)
    storage = get_media_storage()

    url = await storage.signed_url(media)
    if url:
        return RedirectResponse(url)

    try:
        path = storage.get_file_path(media)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File missing from storage")
    return FileResponse(
        path,
        media_type=media.content_type or "application/octet-stream",
        filename=media.filename,
    )


# -------------------------------------------------------------------
# GET /upload/{public_id}
# -------------------------------------------------------------------
@router.get("/{public_id}")
async def get_file_info(public_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    media = await _get_media(db, public_id)
    return {"file": _file_payload(request, media)}


# -------------------------------------------------------------------
# DELETE /upload/{public_id}
# -------------------------------------------------------------------
@router.delete("/{public_id}")
async def delete_file(
    public_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    media = await _get_media(db, public_id)
    if media.owner_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")

    try:
        removed = await get_media_storage().delete(media)
    except Exception:
        logger.exception("Delete file error")
        raise HTTPException(status_code=500, detail="File deletion failed")
    if not removed:
        logger.warning("Media %s was already missing from storage", public_id)

    await db.delete(media)
    await db.commit()
    return {"message": "File deleted successfully"}
