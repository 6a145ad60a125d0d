# treasure_hunt/models/clue_attempt.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from treasure_hunt.database import Base
from treasure_hunt.utils import utcnow


class ClueAttempt(Base):
    """Append-only log of answer submissions."""

    __tablename__ = "clue_attempts"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    clue_id = Column(Integer, ForeignKey("clues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_answer = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    hints_used_count = Column(Integer, nullable=False, default=0)
    attempt_number = Column(Integer, nullable=False)
    time_taken = Column(Integer, nullable=False, default=0)  # seconds
    score_earned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    session = relationship("GameSession")

    __table_args__ = (
        UniqueConstraint("session_id", "clue_id", "attempt_number", name="uq_attempt_session_clue_number"),
    )

    def __repr__(self) -> str:
        return (
            f"<ClueAttempt session={self.session_id} clue={self.clue_id} "
            f"n={self.attempt_number} correct={self.is_correct}>"
        )
