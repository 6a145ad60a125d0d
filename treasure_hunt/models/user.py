from typing import TYPE_CHECKING

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from treasure_hunt.database import Base
from treasure_hunt.utils import utcnow

if TYPE_CHECKING:
    from treasure_hunt.models.hunt import Hunt
    from treasure_hunt.models.game_session import GameSession


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    username = Column(String(50), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    hunts = relationship("Hunt", back_populates="creator", passive_deletes=True)
    game_sessions = relationship("GameSession", back_populates="user", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"
