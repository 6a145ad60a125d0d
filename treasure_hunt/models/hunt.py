from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from treasure_hunt.database import Base
from treasure_hunt.utils import utcnow

if TYPE_CHECKING:
    from treasure_hunt.models.clue import Clue


class Difficulty:
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    ALL = (EASY, MEDIUM, HARD)


class Hunt(Base):
    __tablename__ = "hunts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    creator_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_public = Column(Boolean, nullable=False, default=True)
    difficulty_level = Column(String(20), nullable=False, default=Difficulty.MEDIUM)
    estimated_duration = Column(Integer, nullable=False)  # minutes
    total_clues = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    creator = relationship("User", back_populates="hunts")
    # Row deletion is left to ON DELETE CASCADE so deleting a hunt never loads its history.
    clues = relationship(
        "Clue",
        back_populates="hunt",
        order_by="Clue.sequence_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    sessions = relationship("GameSession", back_populates="hunt", passive_deletes=True)

    def can_view(self, user_id) -> bool:
        return bool(self.is_public) or (user_id is not None and self.creator_id == user_id)
