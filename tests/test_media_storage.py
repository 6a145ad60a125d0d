import asyncio
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi import HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from starlette.datastructures import Headers

from treasure_hunt.models.media_file import MediaFile
from treasure_hunt.routes.upload import resource_type_for, upload_file
from treasure_hunt.services.storage import LocalMediaStorage, sanitize_filename, set_media_storage


def test_local_storage_roundtrip(tmp_path: Path):
    async def _run():
        storage_path = tmp_path / "media"
        storage = LocalMediaStorage(base_path=str(storage_path))

        upload = UploadFile(filename="map.PNG", file=BytesIO(b"fake png bytes"))
        result = await storage.save("7_1700000000000_abc123", upload)

        assert result.backend == "local"
        assert result.size == len(b"fake png bytes")
        assert result.path == "treasure-hunt/7_1700000000000_abc123.png"
        saved_path = storage_path / result.path
        assert saved_path.exists()

        media = MediaFile(
            id=1,
            public_id="7_1700000000000_abc123",
            owner_id=7,
            filename="map.PNG",
            content_type="image/png",
            resource_type="image",
            storage_backend=result.backend,
            storage_path=result.path,
            bytes=result.size,
        )
        assert media.format == "png"

        chunks = []
        async for chunk in await storage.open(media):
            chunks.append(chunk)
        assert b"".join(chunks) == b"fake png bytes"

        assert storage.get_file_path(media) == saved_path.resolve()

        assert await storage.delete(media) is True
        assert not saved_path.exists()
        assert await storage.delete(media) is False

    asyncio.run(_run())


def test_local_storage_rejects_paths_outside_base(tmp_path: Path):
    storage = LocalMediaStorage(base_path=str(tmp_path / "media"))
    media = MediaFile(storage_path="../../etc/passwd", filename="passwd", storage_backend="local")
    with pytest.raises(HTTPException):
        storage.get_file_path(media)


def test_sanitize_filename_strips_directories_and_odd_characters():
    assert sanitize_filename("../secret/clue map.jpg") == "clue_map.jpg"
    assert sanitize_filename("...") == "upload"


@pytest.mark.parametrize(
    "content_type, expected",
    [
        ("image/jpeg", "image"),
        ("audio/mpeg", "video"),
        ("application/pdf", "raw"),
        (None, "raw"),
    ],
)
def test_resource_type_for(content_type, expected):
    assert resource_type_for(content_type) == expected


class _BrokenDeleteStorage(LocalMediaStorage):
    async def delete(self, media: MediaFile) -> bool:
        raise OSError("bucket unreachable")


class _FailingCommitSession:
    def __init__(self):
        self.rolled_back = False

    def add(self, obj):
        self.added = obj

    async def commit(self):
        raise SQLAlchemyError("disk full")

    async def rollback(self):
        self.rolled_back = True


def test_upload_reports_500_when_row_and_cleanup_both_fail(tmp_path: Path):
    async def _run():
        set_media_storage(_BrokenDeleteStorage(base_path=str(tmp_path / "media")))
        db = _FailingCommitSession()
        upload = UploadFile(
            filename="map.png",
            file=BytesIO(b"fake png bytes"),
            headers=Headers({"content-type": "image/png"}),
        )
        try:
            with pytest.raises(HTTPException) as exc:
                await upload_file(request=None, file=upload, db=db, user=SimpleNamespace(id=7))
        finally:
            set_media_storage(None)

        assert exc.value.status_code == 500
        assert exc.value.detail == "File upload failed"
        assert db.rolled_back is True

    asyncio.run(_run())
