"""ORM models. Importing this package registers every table with ``Base``."""

from treasure_hunt.models.user import User
from treasure_hunt.models.hunt import Hunt
from treasure_hunt.models.clue import Clue
from treasure_hunt.models.game_session import GameSession, SessionStatus
from treasure_hunt.models.clue_attempt import ClueAttempt
from treasure_hunt.models.hint_usage import HintUsage
from treasure_hunt.models.leaderboard import LeaderboardEntry
from treasure_hunt.models.media_file import MediaFile
from treasure_hunt.models.hunt_draft import HuntDraftRecord

__all__ = [
    "User",
    "Hunt",
    "Clue",
    "GameSession",
    "SessionStatus",
    "ClueAttempt",
    "HintUsage",
    "LeaderboardEntry",
    "MediaFile",
    "HuntDraftRecord",
]
