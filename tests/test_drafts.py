import asyncio

import pytest
from pydantic import ValidationError

from treasure_hunt.drafts import (
    ClueDraft,
    HuntDraft,
    MemoryDraftStore,
    add_clue,
    clear_draft,
    delete_clue,
    draft_key,
    duplicate_clue,
    go_to_step,
    load_draft,
    move_clue,
    next_step,
    prev_step,
    save_draft,
    set_details,
    to_create_payload,
    update_clue,
    validate_hunt,
    validate_step,
)
from treasure_hunt.schemas import HuntCreate


def _complete_clue(**overrides) -> ClueDraft:
    values = {"title": "The Time Keeper", "content": "I have hands but no arms.", "answer": "clock"}
    values.update(overrides)
    return ClueDraft(**values)


def _ready_draft() -> HuntDraft:
    draft = set_details(HuntDraft(), title="Garden Hunt", description="Riddles among the roses")
    return add_clue(draft, _complete_clue())


def test_drafts_are_immutable():
    draft = HuntDraft()
    with pytest.raises(ValidationError):
        draft.title = "changed"

    updated = set_details(draft, title="New title")
    assert draft.title == ""
    assert updated.title == "New title"


def test_set_details_rejects_unknown_fields():
    with pytest.raises(ValueError):
        set_details(HuntDraft(), clues=())


def test_new_clue_defaults():
    clue = ClueDraft()
    assert len(clue.id) == 9
    assert clue.hints == ("", "", "")
    assert clue.points_value == 100
    assert clue.answer_type == "exact"


def test_clue_editing_transitions():
    first = _complete_clue(title="First")
    second = _complete_clue(title="Second")
    draft = add_clue(add_clue(HuntDraft(), first), second)

    draft = move_clue(draft, second.id, "up")
    assert [c.title for c in draft.clues] == ["Second", "First"]

    # Moving past either end is a no-op.
    assert move_clue(draft, second.id, "up") is draft
    assert move_clue(draft, first.id, "down") is draft

    draft = duplicate_clue(draft, second.id)
    titles = [c.title for c in draft.clues]
    assert titles == ["Second", "Second (Copy)", "First"]
    assert draft.clues[1].id != second.id

    draft = update_clue(draft, first.model_copy(update={"answer": "sundial"}))
    assert draft.clues[2].answer == "sundial"

    draft = delete_clue(draft, second.id)
    assert [c.title for c in draft.clues] == ["Second (Copy)", "First"]


def test_step_navigation_is_clamped_and_gated():
    draft = HuntDraft()
    assert prev_step(draft).step == 1
    # Step 1 needs a title and description before moving on.
    assert next_step(draft).step == 1

    draft = set_details(draft, title="Garden Hunt", description="Riddles")
    assert next_step(draft).step == 2
    assert go_to_step(draft, 10).step == 4
    assert go_to_step(draft, 0).step == 1


def test_validate_step_three_requires_complete_clues():
    draft = set_details(HuntDraft(), title="Garden Hunt", description="Riddles")
    assert not validate_step(draft, 3)
    draft = add_clue(draft)
    assert not validate_step(draft, 3)
    draft = update_clue(draft, draft.clues[0].model_copy(update={"title": "A", "content": "B", "answer": "c"}))
    assert validate_step(draft, 3)


def test_validate_hunt_reports_every_problem():
    draft = add_clue(HuntDraft(), ClueDraft(points_value=5, answer_type="regex", answer="(oops"))
    errors = validate_hunt(draft)

    assert "Hunt title is required" in errors
    assert "Hunt description is required" in errors
    assert "Clue 1: Title is required" in errors
    assert "Clue 1: Content is required" in errors
    assert "Clue 1: Points must be between 10 and 1000" in errors
    assert "Clue 1: Invalid regular expression" in errors


def test_validate_hunt_requires_a_clue():
    draft = set_details(HuntDraft(), title="Garden Hunt", description="Riddles")
    assert validate_hunt(draft) == ["At least one clue is required"]
    assert validate_hunt(_ready_draft()) == []


def test_create_payload_drops_blank_hints_and_validates():
    draft = _ready_draft()
    clue = draft.clues[0].model_copy(update={"hints": ("Tick tock", "", "  ")})
    draft = update_clue(draft, clue)

    payload = to_create_payload(draft)
    assert payload["clues"][0]["hints"] == ["Tick tock"]

    hunt = HuntCreate.model_validate(payload)
    assert hunt.clues[0].answer == "clock"


def test_memory_store_roundtrip():
    async def _run():
        store = MemoryDraftStore()
        draft = go_to_step(_ready_draft(), 3)

        saved = await save_draft(store, 7, draft)
        assert "last_saved" in saved
        assert await store.get(draft_key(7)) is not None

        loaded = await load_draft(store, 7)
        assert loaded == draft

        assert await clear_draft(store, 7) is True
        assert await clear_draft(store, 7) is False
        assert await load_draft(store, 7) is None

    asyncio.run(_run())
