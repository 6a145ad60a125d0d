from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint

from treasure_hunt.database import Base
from treasure_hunt.utils import utcnow


class HintUsage(Base):
    __tablename__ = "hint_usage"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    clue_id = Column(Integer, ForeignKey("clues.id", ondelete="CASCADE"), nullable=False)
    hint_index = Column(Integer, nullable=False)
    penalty_points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "clue_id", "hint_index", name="uq_hint_usage_session_clue_index"),
    )
