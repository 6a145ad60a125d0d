"""Treasure hunt game API."""

# ``engine`` and ``SessionLocal`` are rebound by ``database.configure_engine``;
# always reach them through ``treasure_hunt.database``.
from .database import Base, get_db  # noqa: F401

__all__ = ["Base", "get_db"]
