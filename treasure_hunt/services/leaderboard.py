"""Rebuilds the materialized leaderboard from completed sessions."""

from __future__ import annotations

import logging
from collections import defaultdict

from sqlalchemy import delete, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.models.game_session import GameSession, SessionStatus
from treasure_hunt.models.leaderboard import LeaderboardEntry
from treasure_hunt.models.user import User
from treasure_hunt.utils import seconds_between

logger = logging.getLogger(__name__)


def _rank_key(row: dict):
    return (-row["total_score"], row["total_time"], row["completion_date"])


def build_entries(rows) -> list[LeaderboardEntry]:
    """Keep each user's best completion per hunt, then rank within the hunt.

    Ranking is score descending, then total time ascending, then earliest
    completion; ranks are dense row numbers starting at 1.
    """
    best: dict[tuple[int, int], dict] = {}
    for r in rows:
        candidate = {
            "hunt_id": r.hunt_id,
            "user_id": r.user_id,
            "session_id": r.session_id,
            "username": r.username,
            "total_score": int(r.total_score or 0),
            "hints_used": int(r.hints_used or 0),
            "total_time": seconds_between(r.start_time, r.end_time),
            "completion_date": r.end_time,
        }
        key = (r.hunt_id, r.user_id)
        current = best.get(key)
        if current is None or _rank_key(candidate) < _rank_key(current):
            best[key] = candidate

    per_hunt: dict[int, list[dict]] = defaultdict(list)
    for row in best.values():
        per_hunt[row["hunt_id"]].append(row)

    entries: list[LeaderboardEntry] = []
    for hunt_rows in per_hunt.values():
        hunt_rows.sort(key=_rank_key)
        for rank, row in enumerate(hunt_rows, start=1):
            entries.append(LeaderboardEntry(**row, hunt_rank=rank))
    return entries


async def refresh_leaderboard(db: AsyncSession) -> int:
    """Recompute every leaderboard row inside the caller's transaction."""

    # Pending changes (e.g. a session just marked completed) must be visible to the query.
    await db.flush()

    # One rebuild at a time. Postgres holds the lock until commit, and the query below
    # then sees every completion committed before it. SQLite already serialises writers.
    if db.get_bind().dialect.name == "postgresql":
        await db.execute(text("LOCK TABLE leaderboard IN EXCLUSIVE MODE"))

    stmt = (
        select(
            GameSession.id.label("session_id"),
            GameSession.hunt_id,
            GameSession.user_id,
            GameSession.total_score,
            GameSession.hints_used,
            GameSession.start_time,
            GameSession.end_time,
            User.username,
        )
        .join(User, User.id == GameSession.user_id)
        .where(
            GameSession.status == SessionStatus.COMPLETED,
            GameSession.end_time.is_not(None),
        )
    )
    rows = (await db.execute(stmt)).all()

    await db.execute(delete(LeaderboardEntry))
    entries = build_entries(rows)
    db.add_all(entries)
    await db.flush()

    logger.info("Leaderboard refreshed with %s entries", len(entries))
    return len(entries)
