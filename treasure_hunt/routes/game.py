# treasure_hunt/routes/game.py
"""Game play: starting sessions, answering clues, revealing hints."""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.answers import evaluate_answer
from treasure_hunt.auth_token import get_current_user
from treasure_hunt.database import get_db
from treasure_hunt.models.clue import Clue
from treasure_hunt.models.clue_attempt import ClueAttempt
from treasure_hunt.models.game_session import GameSession, SessionStatus
from treasure_hunt.models.hint_usage import HintUsage
from treasure_hunt.models.hunt import Hunt
from treasure_hunt.models.user import User
from treasure_hunt.rate_limiter import RateLimitExceeded, get_answer_rate_limiter
from treasure_hunt.schemas import AnswerResult, AnswerSubmission, HintRequest, HintResult
from treasure_hunt.scoring import answer_score, apply_hint_penalty, hint_penalty
from treasure_hunt.services.leaderboard import refresh_leaderboard
from treasure_hunt.utils import seconds_between, utcnow

router = APIRouter(prefix="/game", tags=["Game"])
logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "Active game session not found"


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------
async def _active_session(
    db: AsyncSession, session_id: int, user_id: int, *, for_update: bool = False
) -> GameSession:
    """Load an active session owned by ``user_id`` or raise 404."""
    stmt = select(GameSession).where(
        GameSession.id == session_id,
        GameSession.user_id == user_id,
        GameSession.status == SessionStatus.ACTIVE,
    )
    if for_update:
        # Serializes concurrent answers/hints on the same session (no-op on SQLite).
        stmt = stmt.with_for_update()
    session = (await db.execute(stmt)).scalar_one_or_none()
    if session is None:
        raise HTTPException(status_code=404, detail=SESSION_NOT_FOUND)
    return session


async def _current_clue(db: AsyncSession, session: GameSession) -> Clue:
    clue = await db.get(Clue, session.current_clue_id) if session.current_clue_id else None
    if clue is None:
        raise HTTPException(status_code=404, detail=SESSION_NOT_FOUND)
    return clue


async def _next_clue(db: AsyncSession, hunt_id: int, after_sequence: int) -> Optional[Clue]:
    result = await db.execute(
        select(Clue)
        .where(Clue.hunt_id == hunt_id, Clue.sequence_order > after_sequence)
        .order_by(Clue.sequence_order)
        .limit(1)
    )
    return result.scalars().first()


async def _used_hint_indices(db: AsyncSession, session_id: int, clue_id: int) -> list[int]:
    result = await db.execute(
        select(HintUsage.hint_index)
        .where(HintUsage.session_id == session_id, HintUsage.clue_id == clue_id)
        .order_by(HintUsage.hint_index)
    )
    return list(result.scalars().all())


def _session_summary(session: GameSession) -> dict:
    return {
        "id": session.id,
        "hunt_id": session.hunt_id,
        "status": session.status,
        "current_clue_sequence": session.current_clue_sequence,
        "total_score": session.total_score,
        "hints_used": session.hints_used,
        "start_time": session.start_time,
        "end_time": session.end_time,
    }


# -------------------------------------------------------------------
# POST /game/start/{hunt_id}
# -------------------------------------------------------------------
@router.post("/start/{hunt_id}")
async def start_game(
    hunt_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    hunt = await db.get(Hunt, hunt_id)
    if hunt is None:
        raise HTTPException(status_code=404, detail="Hunt not found")
    if not hunt.can_view(user.id):
        raise HTTPException(status_code=403, detail="Access denied to private hunt")

    existing = await db.execute(
        select(GameSession.id).where(
            GameSession.user_id == user.id,
            GameSession.hunt_id == hunt_id,
            GameSession.status == SessionStatus.ACTIVE,
        )
    )
    if existing.first() is not None:
        raise HTTPException(status_code=400, detail="You already have an active session for this hunt")

    first_clue = await _next_clue(db, hunt_id, after_sequence=0)
    if first_clue is None:
        raise HTTPException(status_code=400, detail="Hunt has no clues")

    now = utcnow()
    session = GameSession(
        user_id=user.id,
        hunt_id=hunt_id,
        current_clue_id=first_clue.id,
        current_clue_sequence=first_clue.sequence_order,
        current_clue_started_at=now,
        start_time=now,
        status=SessionStatus.ACTIVE,
        total_score=0,
        hints_used=0,
    )
    db.add(session)
    try:
        await db.commit()
    except IntegrityError:
        # The partial unique index caught a concurrent start for the same hunt.
        await db.rollback()
        raise HTTPException(status_code=400, detail="You already have an active session for this hunt")

    logger.info("User %s started hunt %s (session %s)", user.id, hunt_id, session.id)
    return {
        "message": "Game started successfully",
        "session": {
            "id": session.id,
            "hunt_id": hunt_id,
            "hunt_title": hunt.title,
            "total_clues": hunt.total_clues,
            "start_time": session.start_time,
            "current_clue_sequence": session.current_clue_sequence,
        },
    }


# -------------------------------------------------------------------
# GET /game/sessions
# -------------------------------------------------------------------
@router.get("/sessions")
async def list_sessions(
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if status is not None and status not in SessionStatus.ALL:
        raise HTTPException(status_code=400, detail=f"status must be one of {', '.join(SessionStatus.ALL)}")

    stmt = (
        select(GameSession, Hunt.title.label("hunt_title"))
        .join(Hunt, Hunt.id == GameSession.hunt_id)
        .where(GameSession.user_id == user.id)
        .order_by(GameSession.start_time.desc(), GameSession.id.desc())
    )
    if status is not None:
        stmt = stmt.where(GameSession.status == status)

    rows = (await db.execute(stmt)).all()
    return {
        "sessions": [
            {**_session_summary(r.GameSession), "hunt_title": r.hunt_title}
            for r in rows
        ]
    }


# -------------------------------------------------------------------
# GET /game/{session_id}/clue
# -------------------------------------------------------------------
@router.get("/{session_id}/clue")
async def get_current_clue(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    session = await _active_session(db, session_id, user.id)
    clue = await _current_clue(db, session)
    hunt = await db.get(Hunt, session.hunt_id)

    hints = clue.hint_list
    used = await _used_hint_indices(db, session.id, clue.id)

    return {
        "session": {
            "id": session.id,
            "hunt_id": session.hunt_id,
            "hunt_title": hunt.title if hunt else None,
            "total_clues": hunt.total_clues if hunt else None,
            "current_clue_sequence": session.current_clue_sequence,
            "total_score": session.total_score,
            "hints_used": session.hints_used,
            "elapsed_time": seconds_between(session.start_time, utcnow()),
        },
        "clue": {
            "id": clue.id,
            "title": clue.title,
            "content": clue.content,
            "clue_type": clue.clue_type,
            "media_url": clue.media_url,
            "points_value": clue.points_value,
            "available_hints": len(hints),
            "hints_used": used,
            "revealed_hints": [hints[i] for i in used if 0 <= i < len(hints)],
        },
    }


# -------------------------------------------------------------------
# POST /game/{session_id}/answer
# -------------------------------------------------------------------
@router.post("/{session_id}/answer", response_model=AnswerResult, response_model_exclude_none=True)
async def submit_answer(
    session_id: int,
    submission: AnswerSubmission,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    limiter = get_answer_rate_limiter()
    if limiter is not None:
        try:
            await limiter.check(f"user:{user.id}")
        except RateLimitExceeded as exc:
            raise HTTPException(
                status_code=429,
                detail="Too many answers. Please slow down.",
                headers={"Retry-After": str(max(1, math.ceil(exc.retry_after)))},
            )

    try:
        session = await _active_session(db, session_id, user.id, for_update=True)
        clue = await _current_clue(db, session)

        is_correct = evaluate_answer(submission.answer, clue.answer, clue.answer_type)

        previous_attempts = (
            await db.execute(
                select(func.count(ClueAttempt.id)).where(
                    ClueAttempt.session_id == session.id,
                    ClueAttempt.clue_id == clue.id,
                )
            )
        ).scalar_one()
        attempt_number = int(previous_attempts or 0) + 1

        now = utcnow()
        time_taken = seconds_between(session.current_clue_started_at, now)
        score_earned = answer_score(clue.points_value, time_taken, attempt_number) if is_correct else 0
        hints_on_clue = await _used_hint_indices(db, session.id, clue.id)

        db.add(
            ClueAttempt(
                session_id=session.id,
                clue_id=clue.id,
                user_answer=submission.answer,
                is_correct=is_correct,
                hints_used_count=len(hints_on_clue),
                attempt_number=attempt_number,
                time_taken=time_taken,
                score_earned=score_earned,
                created_at=now,
            )
        )

        if not is_correct:
            await db.commit()
            return AnswerResult(
                correct=False,
                score_earned=0,
                attempts=attempt_number,
                message="Incorrect answer. Try again!",
            )

        session.add_score(score_earned)
        next_clue = await _next_clue(db, session.hunt_id, clue.sequence_order)

        if next_clue is None:
            session.mark_completed(at=now)
            await refresh_leaderboard(db)
            await db.commit()
            logger.info(
                "Session %s completed hunt %s with %s points",
                session.id, session.hunt_id, session.total_score,
            )
            return AnswerResult(
                correct=True,
                score_earned=score_earned,
                total_score=session.total_score,
                game_completed=True,
                message="Congratulations! You completed the hunt!",
            )

        session.advance_to(next_clue.id, next_clue.sequence_order, at=now)
        await db.commit()
        return AnswerResult(
            correct=True,
            score_earned=score_earned,
            total_score=session.total_score,
            next_clue=True,
            message="Correct! Moving to the next clue.",
        )

    except HTTPException:
        await db.rollback()
        raise
    except Exception:
        await db.rollback()
        logger.exception("Submit answer error")
        raise HTTPException(status_code=500, detail="Internal server error")


# -------------------------------------------------------------------
# POST /game/{session_id}/hint
# -------------------------------------------------------------------
@router.post("/{session_id}/hint", response_model=HintResult)
async def use_hint(
    session_id: int,
    request: HintRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        session = await _active_session(db, session_id, user.id, for_update=True)
        clue = await _current_clue(db, session)

        hints = clue.hint_list
        index = request.hint_index
        if index < 0 or index >= len(hints):
            raise HTTPException(status_code=400, detail="Invalid hint index")

        existing = await db.execute(
            select(HintUsage.id).where(
                HintUsage.session_id == session.id,
                HintUsage.clue_id == clue.id,
                HintUsage.hint_index == index,
            )
        )
        if existing.first() is not None:
            raise HTTPException(status_code=400, detail="Hint already used")

        penalty = hint_penalty(index)
        db.add(
            HintUsage(
                session_id=session.id,
                clue_id=clue.id,
                hint_index=index,
                penalty_points=penalty,
            )
        )
        session.hints_used = (session.hints_used or 0) + 1
        session.total_score = apply_hint_penalty(session.total_score or 0, index)
        await db.commit()

    except HTTPException:
        await db.rollback()
        raise
    except IntegrityError:
        # A concurrent request recorded the same hint first.
        await db.rollback()
        raise HTTPException(status_code=400, detail="Hint already used")
    except Exception:
        await db.rollback()
        logger.exception("Use hint error")
        raise HTTPException(status_code=500, detail="Internal server error")

    return HintResult(
        hint=hints[index],
        penalty_points=penalty,
        total_score=session.total_score,
        message=f"Hint revealed! -{penalty} points",
    )


# -------------------------------------------------------------------
# POST /game/{session_id}/abandon
# -------------------------------------------------------------------
@router.post("/{session_id}/abandon")
async def abandon_game(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    session = await _active_session(db, session_id, user.id, for_update=True)
    session.mark_abandoned()
    await db.commit()
    logger.info("Session %s abandoned by user %s", session.id, user.id)
    return {"message": "Game session abandoned"}
