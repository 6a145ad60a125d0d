from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from treasure_hunt.database import Base
from treasure_hunt.utils import utcnow


class ClueType:
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    MIXED = "mixed"

    ALL = (TEXT, IMAGE, AUDIO, MIXED)


class AnswerType:
    EXACT = "exact"
    CONTAINS = "contains"
    REGEX = "regex"

    ALL = (EXACT, CONTAINS, REGEX)


class Clue(Base):
    __tablename__ = "clues"

    id = Column(Integer, primary_key=True, index=True)
    hunt_id = Column(Integer, ForeignKey("hunts.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence_order = Column(Integer, nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    clue_type = Column(String(20), nullable=False, default=ClueType.TEXT)
    media_url = Column(String(1024), nullable=True)
    answer = Column(Text, nullable=False)  # stored lowercased and trimmed
    answer_type = Column(String(20), nullable=False, default=AnswerType.EXACT)
    hints = Column(JSON, nullable=False, default=list)
    points_value = Column(Integer, nullable=False, default=100)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    hunt = relationship("Hunt", back_populates="clues")

    __table_args__ = (
        UniqueConstraint("hunt_id", "sequence_order", name="uq_clue_hunt_sequence"),
    )

    @property
    def hint_list(self) -> list[str]:
        return list(self.hints or [])
