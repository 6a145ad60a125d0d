import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from treasure_hunt.auth_token import create_access_token, get_current_user
from treasure_hunt.database import get_db
from treasure_hunt.models.game_session import GameSession, SessionStatus
from treasure_hunt.models.hunt import Hunt
from treasure_hunt.models.user import User
from treasure_hunt.schemas import ProfileStats, UserLogin, UserProfile, UserRead, UserRegister
from treasure_hunt.security import hash_password, needs_rehash, verify_password

router = APIRouter(tags=["Auth"])
logger = logging.getLogger(__name__)

DUPLICATE_USER = "User with this email or username already exists"


def _user_payload(user: User) -> dict:
    return UserRead.model_validate(user).model_dump()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(user: UserRegister, db: AsyncSession = Depends(get_db)):
    conflict_result = await db.execute(
        select(User.id).where(
            or_(User.email == user.email, User.username == user.username)
        )
    )
    if conflict_result.first() is not None:
        raise HTTPException(status_code=400, detail=DUPLICATE_USER)

    new_user = User(
        email=user.email,
        username=user.username,
        password_hash=hash_password(user.password),
    )
    db.add(new_user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email/username.
        await db.rollback()
        raise HTTPException(status_code=400, detail=DUPLICATE_USER)
    await db.refresh(new_user)

    logger.info("Registered user %s", new_user.id)
    return {
        "message": "User created successfully",
        "user": _user_payload(new_user),
        "token": create_access_token({"user_id": new_user.id}),
    }


@router.post("/login")
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == credentials.email))
    db_user = result.scalar_one_or_none()

    stored_hash = db_user.password_hash if db_user else None
    if not verify_password(credentials.password, stored_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if needs_rehash(stored_hash):
        db_user.password_hash = hash_password(credentials.password)
        await db.commit()

    return {
        "message": "Login successful",
        "user": _user_payload(db_user),
        "token": create_access_token({"user_id": db_user.id}),
        "token_type": "bearer",
    }


async def _count(db: AsyncSession, stmt) -> int:
    return int((await db.execute(stmt)).scalar_one() or 0)


@router.get("/profile")
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stats = ProfileStats(
        hunts_created=await _count(
            db, select(func.count(Hunt.id)).where(Hunt.creator_id == current_user.id)
        ),
        hunts_played=await _count(
            db, select(func.count(GameSession.id)).where(GameSession.user_id == current_user.id)
        ),
        hunts_completed=await _count(
            db,
            select(func.count(GameSession.id)).where(
                GameSession.user_id == current_user.id,
                GameSession.status == SessionStatus.COMPLETED,
            ),
        ),
    )
    profile = UserProfile(**_user_payload(current_user), stats=stats)
    return {"user": profile.model_dump()}
