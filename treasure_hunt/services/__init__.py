"""Service layer shared by the route modules."""

from .leaderboard import refresh_leaderboard
from .storage import MediaStorage, get_media_storage

__all__ = [
    "MediaStorage",
    "get_media_storage",
    "refresh_leaderboard",
]
