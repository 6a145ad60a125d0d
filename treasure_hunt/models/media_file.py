from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from treasure_hunt.database import Base
from treasure_hunt.utils import utcnow


class MediaFile(Base):
    __tablename__ = "media_files"

    id = Column(Integer, primary_key=True)
    public_id = Column(String(255), unique=True, nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    content_type = Column(String(128), nullable=True)
    resource_type = Column(String(16), nullable=False, default="raw")
    bytes = Column(Integer, nullable=True)
    storage_backend = Column(String(32), nullable=False)
    storage_path = Column(String(512), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    @property
    def format(self) -> str | None:
        suffix = self.filename.rsplit(".", 1)
        return suffix[1].lower() if len(suffix) == 2 else None
