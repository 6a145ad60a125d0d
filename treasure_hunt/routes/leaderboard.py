# treasure_hunt/routes/leaderboard.py
from __future__ import annotations

import hmac
import logging
import os
from datetime import timedelta
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.auth_token import get_current_user
from treasure_hunt.database import get_db
from treasure_hunt.models.game_session import GameSession, SessionStatus
from treasure_hunt.models.hunt import Hunt
from treasure_hunt.models.leaderboard import LeaderboardEntry
from treasure_hunt.models.user import User
from treasure_hunt.services.leaderboard import refresh_leaderboard
from treasure_hunt.utils import format_time, paginate, seconds_between, utcnow

router = APIRouter(prefix="/leaderboard", tags=["Leaderboard"])
logger = logging.getLogger(__name__)

TIMEFRAME_DAYS = {"week": 7, "month": 30}


# --------- GET /leaderboard/hunt/{hunt_id} ---------
@router.get("/hunt/{hunt_id}")
async def get_hunt_leaderboard(
    hunt_id: int,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    hunt = await db.get(Hunt, hunt_id)
    if hunt is None:
        raise HTTPException(status_code=404, detail="Hunt not found")

    rows = (
        await db.execute(
            select(LeaderboardEntry)
            .where(LeaderboardEntry.hunt_id == hunt_id)
            .order_by(LeaderboardEntry.hunt_rank.asc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
    ).scalars().all()

    total = (
        await db.execute(
            select(func.count(LeaderboardEntry.id)).where(LeaderboardEntry.hunt_id == hunt_id)
        )
    ).scalar_one()

    return {
        "hunt": {"title": hunt.title, "description": hunt.description},
        "leaderboard": [
            {
                "user_id": r.user_id,
                "username": r.username,
                "total_time": r.total_time,
                "total_time_formatted": format_time(r.total_time),
                "total_score": r.total_score,
                "hints_used": r.hints_used,
                "completion_date": r.completion_date,
                "rank": r.hunt_rank,
            }
            for r in rows
        ],
        "pagination": paginate(page, limit, int(total or 0)),
    }


# --------- GET /leaderboard/global ---------
@router.get("/global")
async def get_global_leaderboard(
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    timeframe: Literal["all", "week", "month"] = "all",
):
    """
    Global leaderboard across hunts:
      - One row per user, summing their best score on each completed hunt.
      - Rank comes from a ROW_NUMBER() window: total score desc, average time asc.
      - 'week'/'month' only count completions from the last 7/30 days.
    """
    filters = []
    if timeframe in TIMEFRAME_DAYS:
        filters.append(
            LeaderboardEntry.completion_date >= utcnow() - timedelta(days=TIMEFRAME_DAYS[timeframe])
        )

    total_score = func.sum(LeaderboardEntry.total_score)
    avg_time = func.avg(LeaderboardEntry.total_time)
    stmt = (
        select(
            LeaderboardEntry.user_id,
            LeaderboardEntry.username,
            func.count(LeaderboardEntry.id).label("hunts_completed"),
            total_score.label("total_score"),
            avg_time.label("avg_time"),
            func.sum(LeaderboardEntry.hints_used).label("total_hints_used"),
            func.max(LeaderboardEntry.completion_date).label("last_completion"),
            func.row_number().over(order_by=(total_score.desc(), avg_time.asc())).label("rank"),
        )
        .where(*filters)
        .group_by(LeaderboardEntry.user_id, LeaderboardEntry.username)
        .order_by(total_score.desc(), avg_time.asc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    rows = (await db.execute(stmt)).all()

    total = (
        await db.execute(
            select(func.count(func.distinct(LeaderboardEntry.user_id))).where(*filters)
        )
    ).scalar_one()

    results = []
    for r in rows:
        avg = int(round(float(r.avg_time or 0)))
        results.append(
            {
                "user_id": r.user_id,
                "username": r.username,
                "hunts_completed": int(r.hunts_completed or 0),
                "total_score": int(r.total_score or 0),
                "avg_time": avg,
                "avg_time_formatted": format_time(avg),
                "total_hints_used": int(r.total_hints_used or 0),
                "last_completion": r.last_completion,
                "rank": int(r.rank),
            }
        )

    return {
        "timeframe": timeframe,
        "leaderboard": results,
        "pagination": paginate(page, limit, int(total or 0)),
    }


# --------- user statistics ---------
async def _user_stats(db: AsyncSession, user_id: int) -> dict:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    sessions = (
        await db.execute(
            select(GameSession, Hunt.title.label("hunt_title"))
            .join(Hunt, Hunt.id == GameSession.hunt_id)
            .where(GameSession.user_id == user_id)
            .order_by(GameSession.start_time.desc(), GameSession.id.desc())
        )
    ).all()

    hunts_created = (
        await db.execute(select(func.count(Hunt.id)).where(Hunt.creator_id == user_id))
    ).scalar_one()

    completed = [r.GameSession for r in sessions if r.GameSession.status == SessionStatus.COMPLETED]
    active = [r.GameSession for r in sessions if r.GameSession.status == SessionStatus.ACTIVE]
    total_games = len(sessions)

    avg_score = sum(s.total_score for s in completed) / len(completed) if completed else 0
    durations = [seconds_between(s.start_time, s.end_time) for s in completed]
    avg_completion = sum(durations) / len(durations) if durations else 0

    best = (
        await db.execute(
            select(LeaderboardEntry, Hunt.title.label("hunt_title"))
            .join(Hunt, Hunt.id == LeaderboardEntry.hunt_id)
            .where(LeaderboardEntry.user_id == user_id)
            .order_by(LeaderboardEntry.total_score.desc(), LeaderboardEntry.total_time.asc())
            .limit(5)
        )
    ).all()

    recent = []
    for r in sessions[:10]:
        s = r.GameSession
        duration = seconds_between(s.start_time, s.end_time) if s.status == SessionStatus.COMPLETED else None
        recent.append(
            {
                "hunt_title": r.hunt_title,
                "status": s.status,
                "total_score": s.total_score,
                "start_time": s.start_time,
                "end_time": s.end_time,
                "duration": duration,
                "duration_formatted": format_time(duration) if duration else None,
            }
        )

    return {
        "user": {
            "id": user.id,
            "username": user.username,
            "stats": {
                "total_games": total_games,
                "completed_games": len(completed),
                "active_games": len(active),
                "hunts_created": int(hunts_created or 0),
                "avg_score": int(round(avg_score)),
                "avg_completion_time": int(round(avg_completion)),
                "avg_completion_time_formatted": format_time(avg_completion),
                "completion_rate": int(round(len(completed) / total_games * 100)) if total_games else 0,
            },
            "best_performances": [
                {
                    "hunt_title": b.hunt_title,
                    "total_score": b.LeaderboardEntry.total_score,
                    "total_time": b.LeaderboardEntry.total_time,
                    "total_time_formatted": format_time(b.LeaderboardEntry.total_time),
                    "hints_used": b.LeaderboardEntry.hints_used,
                    "hunt_rank": b.LeaderboardEntry.hunt_rank,
                    "completion_date": b.LeaderboardEntry.completion_date,
                }
                for b in best
            ],
            "recent_activity": recent,
        }
    }


@router.get("/user/stats")
async def get_my_stats(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await _user_stats(db, user.id)


@router.get("/user/{user_id}/stats")
async def get_user_stats(user_id: int, db: AsyncSession = Depends(get_db)):
    return await _user_stats(db, user_id)


# --------- POST /leaderboard/refresh ---------
@router.post("/refresh")
async def refresh(
    db: AsyncSession = Depends(get_db),
    x_refresh_token: Optional[str] = Header(default=None),
):
    expected = os.getenv("LEADERBOARD_REFRESH_TOKEN")
    if expected and not hmac.compare_digest(x_refresh_token or "", expected):
        raise HTTPException(status_code=403, detail="Invalid refresh token")

    try:
        count = await refresh_leaderboard(db)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Refresh leaderboard error")
        raise HTTPException(status_code=500, detail="Internal server error")

    return {"message": "Leaderboard refreshed successfully", "entries": count}
