import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy import event
from sqlalchemy.orm import sessionmaker

from treasure_hunt.database import Base, _enable_sqlite_foreign_keys
import treasure_hunt.models  # noqa: F401 (registers every table)
from treasure_hunt.models.clue import Clue
from treasure_hunt.models.hunt import Hunt
from treasure_hunt.models.user import User
from treasure_hunt.rate_limiter import reset_answer_rate_limiter


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _no_answer_rate_limit(monkeypatch):
    monkeypatch.delenv("ANSWER_RATE_LIMIT", raising=False)
    reset_answer_rate_limiter()
    yield
    reset_answer_rate_limiter()


@pytest.fixture
async def session_factory(anyio_backend, tmp_path):
    db_file = tmp_path / "treasure_hunt_test.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}")
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    yield factory
    await engine.dispose()


async def create_user(session, username="player1"):
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash="not-used-in-test",
    )
    session.add(user)
    await session.commit()
    return user


async def create_hunt(session, creator, *, clues, title="Riddle Run", is_public=True):
    """``clues`` is a list of dicts with at least ``answer``; sequence follows list order."""
    hunt = Hunt(
        title=title,
        description="A short hunt",
        creator_id=creator.id,
        is_public=is_public,
        difficulty_level="easy",
        estimated_duration=15,
        total_clues=len(clues),
    )
    for sequence, clue in enumerate(clues, start=1):
        hunt.clues.append(
            Clue(
                sequence_order=sequence,
                title=clue.get("title", f"Clue {sequence}"),
                content=clue.get("content", "Solve me"),
                answer=clue["answer"],
                answer_type=clue.get("answer_type", "exact"),
                hints=clue.get("hints", []),
                points_value=clue.get("points_value", 100),
            )
        )
    session.add(hunt)
    await session.commit()
    return hunt
