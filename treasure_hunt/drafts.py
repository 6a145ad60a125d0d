"""Hunt drafts: an immutable value edited through pure transitions.

The creation wizard walks through four steps (details, settings, clues,
review).  Every edit returns a new :class:`HuntDraft`; nothing is mutated in
place.  Drafts are persisted through a :class:`DraftStore`, a minimal
key-value interface with an in-memory and a SQL-backed implementation.
"""

from __future__ import annotations

import uuid
from typing import Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.answers import is_valid_pattern
from treasure_hunt.models.hunt_draft import HuntDraftRecord
from treasure_hunt.schemas import AnswerTypeName, ClueTypeName, DifficultyLevel
from treasure_hunt.utils import utcnow

TOTAL_STEPS = 4
MIN_POINTS = 10
MAX_POINTS = 1000


def _new_clue_id() -> str:
    return uuid.uuid4().hex[:9]


class ClueDraft(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_clue_id)
    title: str = ""
    content: str = ""
    clue_type: ClueTypeName = "text"
    media_url: Optional[str] = None
    answer: str = ""
    answer_type: AnswerTypeName = "exact"
    hints: tuple[str, ...] = ("", "", "")
    points_value: int = 100


class HuntDraft(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    description: str = ""
    is_public: bool = True
    difficulty_level: DifficultyLevel = "medium"
    estimated_duration: int = 30
    clues: tuple[ClueDraft, ...] = ()
    step: int = Field(default=1, ge=1, le=TOTAL_STEPS)

    def is_empty(self) -> bool:
        return not (self.title or self.description or self.clues)


# ------------------------------------------------------------------
# Transitions
# ------------------------------------------------------------------
def set_details(draft: HuntDraft, **changes) -> HuntDraft:
    """Replace hunt-level fields (title, description, difficulty, ...)."""
    allowed = {"title", "description", "is_public", "difficulty_level", "estimated_duration"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unknown draft fields: {', '.join(sorted(unknown))}")
    return HuntDraft.model_validate({**draft.model_dump(), **changes})


def _index_of(draft: HuntDraft, clue_id: str) -> int:
    for index, clue in enumerate(draft.clues):
        if clue.id == clue_id:
            return index
    raise KeyError(clue_id)


def add_clue(draft: HuntDraft, clue: Optional[ClueDraft] = None) -> HuntDraft:
    return draft.model_copy(update={"clues": draft.clues + (clue or ClueDraft(),)})


def update_clue(draft: HuntDraft, clue: ClueDraft) -> HuntDraft:
    index = _index_of(draft, clue.id)
    clues = draft.clues[:index] + (clue,) + draft.clues[index + 1:]
    return draft.model_copy(update={"clues": clues})


def delete_clue(draft: HuntDraft, clue_id: str) -> HuntDraft:
    return draft.model_copy(update={"clues": tuple(c for c in draft.clues if c.id != clue_id)})


def move_clue(draft: HuntDraft, clue_id: str, direction: Literal["up", "down"]) -> HuntDraft:
    index = _index_of(draft, clue_id)
    target = index - 1 if direction == "up" else index + 1
    if target < 0 or target >= len(draft.clues):
        return draft
    clues = list(draft.clues)
    clues[index], clues[target] = clues[target], clues[index]
    return draft.model_copy(update={"clues": tuple(clues)})


def duplicate_clue(draft: HuntDraft, clue_id: str) -> HuntDraft:
    index = _index_of(draft, clue_id)
    source = draft.clues[index]
    copy = source.model_copy(update={"id": _new_clue_id(), "title": f"{source.title} (Copy)"})
    clues = draft.clues[: index + 1] + (copy,) + draft.clues[index + 1:]
    return draft.model_copy(update={"clues": clues})


def go_to_step(draft: HuntDraft, step: int) -> HuntDraft:
    return draft.model_copy(update={"step": min(max(step, 1), TOTAL_STEPS)})


def next_step(draft: HuntDraft) -> HuntDraft:
    """Advance one step, but only when the current step is complete."""
    if not validate_step(draft, draft.step):
        return draft
    return go_to_step(draft, draft.step + 1)


def prev_step(draft: HuntDraft) -> HuntDraft:
    return go_to_step(draft, draft.step - 1)


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------
def _clue_complete(clue: ClueDraft) -> bool:
    return bool(clue.title.strip() and clue.content.strip() and clue.answer.strip())


def validate_step(draft: HuntDraft, step: int) -> bool:
    if step == 1:
        return bool(draft.title.strip() and draft.description.strip())
    if step == 2:
        return draft.estimated_duration > 0
    if step == 3:
        return bool(draft.clues) and all(_clue_complete(c) for c in draft.clues)
    return True


def validate_hunt(draft: HuntDraft) -> list[str]:
    """Return the list of problems blocking publication (empty when valid)."""
    errors: list[str] = []

    if not draft.title.strip():
        errors.append("Hunt title is required")
    if not draft.description.strip():
        errors.append("Hunt description is required")
    if draft.estimated_duration <= 0:
        errors.append("Estimated duration must be greater than 0")
    if not draft.clues:
        errors.append("At least one clue is required")

    for number, clue in enumerate(draft.clues, start=1):
        if not clue.title.strip():
            errors.append(f"Clue {number}: Title is required")
        if not clue.content.strip():
            errors.append(f"Clue {number}: Content is required")
        if not clue.answer.strip():
            errors.append(f"Clue {number}: Answer is required")
        if clue.points_value < MIN_POINTS or clue.points_value > MAX_POINTS:
            errors.append(f"Clue {number}: Points must be between {MIN_POINTS} and {MAX_POINTS}")
        if clue.answer_type == "regex" and not is_valid_pattern(clue.answer):
            errors.append(f"Clue {number}: Invalid regular expression")

    return errors


def to_create_payload(draft: HuntDraft) -> dict:
    """Build the body accepted by ``POST /hunts``; blank hints are dropped."""
    return {
        "title": draft.title,
        "description": draft.description,
        "is_public": draft.is_public,
        "difficulty_level": draft.difficulty_level,
        "estimated_duration": draft.estimated_duration,
        "clues": [
            {
                "title": clue.title,
                "content": clue.content,
                "clue_type": clue.clue_type,
                "media_url": clue.media_url,
                "answer": clue.answer,
                "answer_type": clue.answer_type,
                "hints": [h for h in clue.hints if h.strip()],
                "points_value": clue.points_value,
            }
            for clue in draft.clues
        ],
    }


# ------------------------------------------------------------------
# Persistence
# ------------------------------------------------------------------
class DraftStore(Protocol):
    async def get(self, key: str) -> Optional[dict]: ...

    async def put(self, key: str, value: dict) -> None: ...

    async def delete(self, key: str) -> bool: ...


class MemoryDraftStore:
    def __init__(self) -> None:
        self._items: dict[str, dict] = {}

    async def get(self, key: str) -> Optional[dict]:
        value = self._items.get(key)
        return dict(value) if value is not None else None

    async def put(self, key: str, value: dict) -> None:
        self._items[key] = dict(value)

    async def delete(self, key: str) -> bool:
        return self._items.pop(key, None) is not None


class SQLDraftStore:
    """Draft store on the ``hunt_drafts`` table. The caller owns the commit."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _record(self, key: str) -> Optional[HuntDraftRecord]:
        result = await self.db.execute(select(HuntDraftRecord).where(HuntDraftRecord.key == key))
        return result.scalar_one_or_none()

    async def get(self, key: str) -> Optional[dict]:
        record = await self._record(key)
        return dict(record.payload) if record is not None else None

    async def put(self, key: str, value: dict) -> None:
        record = await self._record(key)
        if record is None:
            self.db.add(HuntDraftRecord(key=key, payload=value))
        else:
            record.payload = value
            record.updated_at = utcnow()
        await self.db.flush()

    async def delete(self, key: str) -> bool:
        record = await self._record(key)
        if record is None:
            return False
        await self.db.delete(record)
        await self.db.flush()
        return True


def draft_key(user_id: int) -> str:
    return f"hunt-draft:{user_id}"


async def save_draft(store: DraftStore, user_id: int, draft: HuntDraft) -> dict:
    payload = draft.model_dump(mode="json")
    payload["last_saved"] = utcnow().isoformat()
    await store.put(draft_key(user_id), payload)
    return payload


async def load_draft(store: DraftStore, user_id: int) -> Optional[HuntDraft]:
    payload = await store.get(draft_key(user_id))
    if payload is None:
        return None
    payload.pop("last_saved", None)
    return HuntDraft.model_validate(payload)


async def clear_draft(store: DraftStore, user_id: int) -> bool:
    return await store.delete(draft_key(user_id))
