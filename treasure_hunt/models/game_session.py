from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from treasure_hunt.database import Base
from treasure_hunt.utils import utcnow


class SessionStatus:
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    ALL = (ACTIVE, COMPLETED, ABANDONED)
    TERMINAL = {COMPLETED, ABANDONED}


class InvalidTransition(Exception):
    """Raised when a terminal session is asked to change state."""


class GameSession(Base):
    __tablename__ = "game_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    hunt_id = Column(Integer, ForeignKey("hunts.id", ondelete="CASCADE"), nullable=False, index=True)
    current_clue_id = Column(Integer, ForeignKey("clues.id", ondelete="SET NULL"), nullable=True)
    current_clue_sequence = Column(Integer, nullable=False, default=1)
    current_clue_started_at = Column(DateTime, nullable=False, default=utcnow)
    start_time = Column(DateTime, nullable=False, default=utcnow)
    end_time = Column(DateTime, nullable=True)
    total_score = Column(Integer, nullable=False, default=0)
    hints_used = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=SessionStatus.ACTIVE, index=True)

    user = relationship("User", back_populates="game_sessions")
    hunt = relationship("Hunt", back_populates="sessions")
    current_clue = relationship("Clue", foreign_keys=[current_clue_id])

    __table_args__ = (
        # At most one active session per (user, hunt).
        Index(
            "uq_game_sessions_active_user_hunt",
            "user_id",
            "hunt_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def _require_active(self) -> None:
        if self.status in SessionStatus.TERMINAL:
            raise InvalidTransition(f"session {self.id} is already {self.status}")

    def add_score(self, points: int) -> None:
        self._require_active()
        self.total_score = (self.total_score or 0) + points

    def advance_to(self, clue_id: int, sequence_order: int, *, at: Optional[datetime] = None) -> None:
        self._require_active()
        self.current_clue_id = clue_id
        self.current_clue_sequence = sequence_order
        self.current_clue_started_at = at or utcnow()

    def mark_completed(self, *, at: Optional[datetime] = None) -> None:
        self._require_active()
        self.status = SessionStatus.COMPLETED
        self.end_time = at or utcnow()

    def mark_abandoned(self, *, at: Optional[datetime] = None) -> None:
        self._require_active()
        self.status = SessionStatus.ABANDONED
        self.end_time = at or utcnow()

    def __repr__(self) -> str:
        return f"<GameSession id={self.id} user={self.user_id} hunt={self.hunt_id} status={self.status}>"
