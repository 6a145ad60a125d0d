from datetime import timedelta

import pytest
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from conftest import create_hunt, create_user
from treasure_hunt.models.game_session import GameSession, SessionStatus
from treasure_hunt.models.leaderboard import LeaderboardEntry
from treasure_hunt.routes.leaderboard import (
    get_global_leaderboard,
    get_hunt_leaderboard,
    get_user_stats,
    refresh,
)
from treasure_hunt.services.leaderboard import refresh_leaderboard
from treasure_hunt.utils import utcnow

ONE_CLUE = [{"answer": "lantern"}]


async def _completed_run(db, user, hunt, *, score, seconds, hints=0, days_ago=0):
    end = utcnow() - timedelta(days=days_ago)
    game = GameSession(
        user_id=user.id,
        hunt_id=hunt.id,
        status=SessionStatus.COMPLETED,
        total_score=score,
        hints_used=hints,
        start_time=end - timedelta(seconds=seconds),
        end_time=end,
    )
    db.add(game)
    await db.flush()
    return game


@pytest.mark.anyio
async def test_only_the_best_run_per_hunt_is_kept(session_factory):
    async with session_factory() as db:
        creator = await create_user(db, "creator")
        player = await create_user(db, "player1")
        hunt = await create_hunt(db, creator, clues=ONE_CLUE)

        await _completed_run(db, player, hunt, score=50, seconds=100)
        best = await _completed_run(db, player, hunt, score=150, seconds=300, hints=1)
        await _completed_run(db, player, hunt, score=150, seconds=400)
        assert await refresh_leaderboard(db) == 1
        await db.commit()

        entry = (await db.execute(select(LeaderboardEntry))).scalar_one()
        assert entry.session_id == best.id
        assert entry.total_score == 150
        assert entry.total_time == 300
        assert entry.hints_used == 1
        assert entry.hunt_rank == 1


@pytest.mark.anyio
async def test_rebuilding_never_duplicates_rows(session_factory):
    async with session_factory() as db:
        creator = await create_user(db, "creator")
        player = await create_user(db, "player1")
        hunt = await create_hunt(db, creator, clues=ONE_CLUE)
        await _completed_run(db, player, hunt, score=80, seconds=60)

        await refresh_leaderboard(db)
        await refresh_leaderboard(db)
        await db.commit()
        rows = (await db.execute(select(LeaderboardEntry))).scalars().all()
        assert len(rows) == 1

        db.add(
            LeaderboardEntry(
                hunt_id=hunt.id,
                user_id=player.id,
                session_id=rows[0].session_id,
                username="player1",
                total_time=60,
                total_score=80,
                hints_used=0,
                completion_date=utcnow(),
                hunt_rank=2,
            )
        )
        with pytest.raises(IntegrityError):
            await db.flush()
        await db.rollback()


@pytest.mark.anyio
async def test_global_ranking_orders_by_score_then_average_time(session_factory):
    async with session_factory() as db:
        creator = await create_user(db, "creator")
        alice = await create_user(db, "alice")
        bob = await create_user(db, "bob")
        carol = await create_user(db, "carol")
        first = await create_hunt(db, creator, clues=ONE_CLUE, title="First Hunt")
        second = await create_hunt(db, creator, clues=ONE_CLUE, title="Second Hunt")

        # alice and bob tie on 200 points; bob is faster on average.
        await _completed_run(db, alice, first, score=120, seconds=600)
        await _completed_run(db, alice, second, score=80, seconds=600)
        await _completed_run(db, bob, first, score=200, seconds=120)
        await _completed_run(db, carol, first, score=90, seconds=60, days_ago=20)
        await refresh_leaderboard(db)
        await db.commit()

        page_one = await get_global_leaderboard(db=db, page=1, limit=2, timeframe="all")
        assert [(r["username"], r["rank"]) for r in page_one["leaderboard"]] == [("bob", 1), ("alice", 2)]
        assert page_one["leaderboard"][1]["hunts_completed"] == 2
        assert page_one["leaderboard"][1]["avg_time"] == 600
        assert page_one["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

        page_two = await get_global_leaderboard(db=db, page=2, limit=2, timeframe="all")
        assert [(r["username"], r["rank"]) for r in page_two["leaderboard"]] == [("carol", 3)]

        this_week = await get_global_leaderboard(db=db, page=1, limit=10, timeframe="week")
        assert [r["username"] for r in this_week["leaderboard"]] == ["bob", "alice"]

        board = await get_hunt_leaderboard(hunt_id=first.id, db=db, page=1, limit=10)
        assert [(r["username"], r["rank"]) for r in board["leaderboard"]] == [
            ("bob", 1),
            ("alice", 2),
            ("carol", 3),
        ]


@pytest.mark.anyio
async def test_user_stats_for_unknown_user_is_404(session_factory):
    async with session_factory() as db:
        with pytest.raises(HTTPException) as exc:
            await get_user_stats(user_id=9999, db=db)
        assert exc.value.status_code == 404
        assert exc.value.detail == "User not found"


@pytest.mark.anyio
async def test_refresh_requires_matching_token_when_configured(session_factory, monkeypatch):
    async with session_factory() as db:
        creator = await create_user(db, "creator")
        player = await create_user(db, "player1")
        hunt = await create_hunt(db, creator, clues=ONE_CLUE)
        await _completed_run(db, player, hunt, score=100, seconds=30)
        await db.commit()

        monkeypatch.setenv("LEADERBOARD_REFRESH_TOKEN", "s3cret")
        for token in (None, "wrong"):
            with pytest.raises(HTTPException) as exc:
                await refresh(db=db, x_refresh_token=token)
            assert exc.value.status_code == 403
        assert (await db.execute(select(LeaderboardEntry))).first() is None

        result = await refresh(db=db, x_refresh_token="s3cret")
        assert result == {"message": "Leaderboard refreshed successfully", "entries": 1}

        monkeypatch.delenv("LEADERBOARD_REFRESH_TOKEN")
        assert (await refresh(db=db, x_refresh_token=None))["entries"] == 1
