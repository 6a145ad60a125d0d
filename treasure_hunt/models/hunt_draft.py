from sqlalchemy import Column, DateTime, Integer, JSON, String

from treasure_hunt.database import Base
from treasure_hunt.utils import utcnow


class HuntDraftRecord(Base):
    """Key-value row behind ``SQLDraftStore``."""

    __tablename__ = "hunt_drafts"

    id = Column(Integer, primary_key=True)
    key = Column(String(128), unique=True, nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
