import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.answers import normalize_answer
from treasure_hunt.auth_token import get_current_user, get_current_user_optional
from treasure_hunt.database import get_db
from treasure_hunt.models.clue import Clue
from treasure_hunt.models.game_session import GameSession, SessionStatus
from treasure_hunt.models.hunt import Hunt
from treasure_hunt.models.user import User
from treasure_hunt.schemas import ClueRead, DifficultyLevel, HuntCreate, HuntDetail, HuntSummary
from treasure_hunt.utils import paginate

router = APIRouter(prefix="/hunts", tags=["Hunts"])
logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------
def _play_count():
    return func.count(GameSession.id).label("play_count")


def _completion_count():
    return func.count(
        case((GameSession.status == SessionStatus.COMPLETED, GameSession.id))
    ).label("completion_count")


def _summary(hunt: Hunt, *, creator_name=None, play_count=0, completion_count=0, include_visibility=False) -> dict:
    summary = HuntSummary(
        id=hunt.id,
        title=hunt.title,
        description=hunt.description,
        difficulty_level=hunt.difficulty_level,
        estimated_duration=hunt.estimated_duration,
        total_clues=hunt.total_clues,
        created_at=hunt.created_at,
        is_public=hunt.is_public if include_visibility else None,
        creator_name=creator_name,
        play_count=int(play_count or 0),
        completion_count=int(completion_count or 0),
    )
    return summary.model_dump(exclude_none=True)


async def create_hunt_with_clues(db: AsyncSession, creator_id: int, payload: HuntCreate) -> Hunt:
    """Stage a hunt and its clues on ``db``; the caller commits or rolls back."""

    hunt = Hunt(
        title=payload.title,
        description=payload.description,
        creator_id=creator_id,
        is_public=payload.is_public,
        difficulty_level=payload.difficulty_level,
        estimated_duration=payload.estimated_duration,
        total_clues=len(payload.clues),
    )
    for sequence, clue in enumerate(payload.clues, start=1):
        hunt.clues.append(
            Clue(
                sequence_order=sequence,
                title=clue.title,
                content=clue.content,
                clue_type=clue.clue_type,
                media_url=clue.media_url,
                answer=normalize_answer(clue.answer),
                answer_type=clue.answer_type,
                hints=[h for h in clue.hints if h],
                points_value=clue.points_value,
            )
        )
    db.add(hunt)
    await db.flush()
    return hunt


def created_response(hunt: Hunt) -> dict:
    return {
        "message": "Hunt created successfully",
        "hunt": {
            "id": hunt.id,
            "title": hunt.title,
            "description": hunt.description,
            "total_clues": hunt.total_clues,
        },
    }


# -------------------------------------------------------------------
# POST /hunts
# -------------------------------------------------------------------
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_hunt(
    payload: HuntCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        hunt = await create_hunt_with_clues(db, user.id, payload)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Create hunt error")
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info("User %s created hunt %s with %s clues", user.id, hunt.id, hunt.total_clues)
    return created_response(hunt)


# -------------------------------------------------------------------
# GET /hunts – public catalogue
# -------------------------------------------------------------------
@router.get("")
async def list_hunts(
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    difficulty: Optional[DifficultyLevel] = None,
    creator: Optional[str] = Query(None, max_length=50, description="Substring of the creator's username"),
):
    filters = [Hunt.is_public.is_(True)]
    if difficulty:
        filters.append(Hunt.difficulty_level == difficulty)
    if creator:
        filters.append(User.username.ilike(f"%{creator}%"))

    stmt = (
        select(Hunt, User.username.label("creator_name"), _play_count(), _completion_count())
        .join(User, User.id == Hunt.creator_id)
        .outerjoin(GameSession, GameSession.hunt_id == Hunt.id)
        .where(*filters)
        .group_by(Hunt.id, User.username)
        .order_by(Hunt.created_at.desc(), Hunt.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    rows = (await db.execute(stmt)).all()

    total = (
        await db.execute(
            select(func.count(Hunt.id)).join(User, User.id == Hunt.creator_id).where(*filters)
        )
    ).scalar_one()

    return {
        "hunts": [
            _summary(
                r.Hunt,
                creator_name=r.creator_name,
                play_count=r.play_count,
                completion_count=r.completion_count,
            )
            for r in rows
        ],
        "pagination": paginate(page, limit, int(total or 0)),
    }


# -------------------------------------------------------------------
# GET /hunts/my
# -------------------------------------------------------------------
@router.get("/my")
async def list_my_hunts(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    stmt = (
        select(Hunt, _play_count(), _completion_count())
        .outerjoin(GameSession, GameSession.hunt_id == Hunt.id)
        .where(Hunt.creator_id == user.id)
        .group_by(Hunt.id)
        .order_by(Hunt.created_at.desc(), Hunt.id.desc())
    )
    rows = (await db.execute(stmt)).all()
    return {
        "hunts": [
            _summary(
                r.Hunt,
                play_count=r.play_count,
                completion_count=r.completion_count,
                include_visibility=True,
            )
            for r in rows
        ]
    }


# -------------------------------------------------------------------
# GET /hunts/{hunt_id}
# -------------------------------------------------------------------
@router.get("/{hunt_id}")
async def get_hunt(
    hunt_id: int,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_current_user_optional),
):
    stmt = (
        select(Hunt, User.username.label("creator_name"), _play_count(), _completion_count())
        .join(User, User.id == Hunt.creator_id)
        .outerjoin(GameSession, GameSession.hunt_id == Hunt.id)
        .where(Hunt.id == hunt_id)
        .group_by(Hunt.id, User.username)
    )
    row = (await db.execute(stmt)).first()
    if row is None:
        raise HTTPException(status_code=404, detail="Hunt not found")

    hunt = row.Hunt
    user_id = user.id if user else None
    if not hunt.can_view(user_id):
        raise HTTPException(status_code=403, detail="Access denied to private hunt")

    detail = HuntDetail(
        **_summary(
            hunt,
            creator_name=row.creator_name,
            play_count=row.play_count,
            completion_count=row.completion_count,
            include_visibility=True,
        )
    )
    if user_id is not None and hunt.creator_id == user_id:
        clues = (
            await db.execute(
                select(Clue).where(Clue.hunt_id == hunt.id).order_by(Clue.sequence_order)
            )
        ).scalars().all()
        detail.clues = [ClueRead.model_validate(c) for c in clues]

    return {"hunt": detail.model_dump(exclude_none=True)}


# -------------------------------------------------------------------
# DELETE /hunts/{hunt_id}
# -------------------------------------------------------------------
@router.delete("/{hunt_id}")
async def delete_hunt(
    hunt_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    hunt = await db.get(Hunt, hunt_id)
    if hunt is None:
        raise HTTPException(status_code=404, detail="Hunt not found")
    if hunt.creator_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")

    # Clues, sessions, attempts, hint usage and leaderboard rows go via ON DELETE CASCADE.
    await db.delete(hunt)
    await db.commit()
    logger.info("User %s deleted hunt %s", user.id, hunt_id)
    return {"message": "Hunt deleted successfully"}
