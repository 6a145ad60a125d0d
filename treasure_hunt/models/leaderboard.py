from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint

from treasure_hunt.database import Base


class LeaderboardEntry(Base):
    """Materialized leaderboard row. Rebuilt wholesale by ``refresh_leaderboard``."""

    __tablename__ = "leaderboard"

    id = Column(Integer, primary_key=True)
    hunt_id = Column(Integer, ForeignKey("hunts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False)
    username = Column(String(50), nullable=False)
    total_time = Column(Integer, nullable=False)  # seconds
    total_score = Column(Integer, nullable=False)
    hints_used = Column(Integer, nullable=False, default=0)
    completion_date = Column(DateTime, nullable=False, index=True)
    hunt_rank = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("hunt_id", "user_id", name="uq_leaderboard_hunt_user"),
        Index("ix_leaderboard_hunt_rank", "hunt_id", "hunt_rank"),
    )
