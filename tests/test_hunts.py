import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from conftest import create_hunt, create_user
from treasure_hunt.models.clue import Clue
from treasure_hunt.models.hunt import Hunt
from treasure_hunt.routes.game import start_game
from treasure_hunt.routes.hunts import create_hunt as create_hunt_endpoint
from treasure_hunt.routes.hunts import delete_hunt, get_hunt, list_hunts, list_my_hunts
from treasure_hunt.schemas import HuntCreate


def _payload(**overrides) -> HuntCreate:
    values = {
        "title": "Garden Hunt",
        "description": "Riddles among the roses",
        "difficulty_level": "easy",
        "estimated_duration": 20,
        "clues": [
            {"title": "Sundial", "content": "I tell time with shadows.", "answer": "  SUNDIAL ", "hints": ["Look up", ""]},
            {"title": "Fountain", "content": "I never stop pouring.", "answer": "fountain", "points_value": 50},
        ],
    }
    values.update(overrides)
    return HuntCreate.model_validate(values)


@pytest.mark.anyio
async def test_create_hunt_stores_ordered_clues(session_factory):
    async with session_factory() as db:
        creator = await create_user(db, "creator")
        result = await create_hunt_endpoint(payload=_payload(), db=db, user=creator)

        assert result["message"] == "Hunt created successfully"
        assert result["hunt"]["total_clues"] == 2
        hunt_id = result["hunt"]["id"]

    async with session_factory() as verify:
        clues = (
            await verify.execute(select(Clue).where(Clue.hunt_id == hunt_id).order_by(Clue.sequence_order))
        ).scalars().all()
        assert [c.sequence_order for c in clues] == [1, 2]
        assert clues[0].answer == "sundial"
        assert clues[0].hints == ["Look up"]
        assert clues[1].points_value == 50


def test_hunt_payload_validation():
    with pytest.raises(ValueError):
        _payload(clues=[])
    with pytest.raises(ValueError):
        _payload(title="ab")
    with pytest.raises(ValueError):
        _payload(difficulty_level="extreme")


@pytest.mark.anyio
async def test_public_listing_counts_plays_and_hides_private(session_factory):
    async with session_factory() as db:
        creator = await create_user(db, "creator")
        player = await create_user(db, "player1")
        public = await create_hunt(db, creator, clues=[{"answer": "echo"}], title="Public Hunt")
        await create_hunt(db, creator, clues=[{"answer": "echo"}], title="Secret Hunt", is_public=False)
        await start_game(hunt_id=public.id, db=db, user=player)

        listing = await list_hunts(db=db, page=1, limit=10, difficulty=None, creator=None)
        assert [h["title"] for h in listing["hunts"]] == ["Public Hunt"]
        assert listing["hunts"][0]["creator_name"] == "creator"
        assert listing["hunts"][0]["play_count"] == 1
        assert listing["hunts"][0]["completion_count"] == 0
        assert "is_public" not in listing["hunts"][0]
        assert listing["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}

        filtered = await list_hunts(db=db, page=1, limit=10, difficulty="hard", creator=None)
        assert filtered["hunts"] == []

        by_creator = await list_hunts(db=db, page=1, limit=10, difficulty=None, creator="CRE")
        assert len(by_creator["hunts"]) == 1

        mine = await list_my_hunts(db=db, user=creator)
        assert {h["title"] for h in mine["hunts"]} == {"Public Hunt", "Secret Hunt"}
        assert all("is_public" in h for h in mine["hunts"])


@pytest.mark.anyio
async def test_hunt_detail_visibility(session_factory):
    async with session_factory() as db:
        creator = await create_user(db, "creator")
        player = await create_user(db, "player1")
        secret = await create_hunt(db, creator, clues=[{"answer": "echo"}], is_public=False)

        with pytest.raises(HTTPException) as denied:
            await get_hunt(hunt_id=secret.id, db=db, user=player)
        assert denied.value.status_code == 403

        with pytest.raises(HTTPException) as anonymous:
            await get_hunt(hunt_id=secret.id, db=db, user=None)
        assert anonymous.value.status_code == 403

        owned = await get_hunt(hunt_id=secret.id, db=db, user=creator)
        assert owned["hunt"]["clues"][0]["answer"] == "echo"

        public = await create_hunt(db, creator, clues=[{"answer": "clock"}], title="Open Hunt")
        seen = await get_hunt(hunt_id=public.id, db=db, user=player)
        assert "clues" not in seen["hunt"]

        with pytest.raises(HTTPException) as missing:
            await get_hunt(hunt_id=9999, db=db, user=None)
        assert missing.value.status_code == 404


@pytest.mark.anyio
async def test_only_creator_can_delete_and_children_cascade(session_factory):
    async with session_factory() as db:
        creator = await create_user(db, "creator")
        player = await create_user(db, "player1")
        hunt = await create_hunt(db, creator, clues=[{"answer": "echo"}, {"answer": "clock"}])
        hunt_id = hunt.id
        await start_game(hunt_id=hunt_id, db=db, user=player)

        with pytest.raises(HTTPException) as denied:
            await delete_hunt(hunt_id=hunt_id, db=db, user=player)
        assert denied.value.status_code == 403

        result = await delete_hunt(hunt_id=hunt_id, db=db, user=creator)
        assert result["message"] == "Hunt deleted successfully"

        with pytest.raises(HTTPException) as missing:
            await delete_hunt(hunt_id=hunt_id, db=db, user=creator)
        assert missing.value.status_code == 404

    async with session_factory() as verify:
        assert (await verify.execute(select(func.count(Hunt.id)))).scalar_one() == 0
        assert (await verify.execute(select(func.count(Clue.id)))).scalar_one() == 0
