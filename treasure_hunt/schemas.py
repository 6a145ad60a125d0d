# treasure_hunt/schemas.py
# ------------------------------------------------------------
# Pydantic v2 schemas, organized by domain
# ------------------------------------------------------------
from datetime import datetime
import re
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_SCRIPT_TAG_RE = re.compile(r"<\s*/?\s*script", re.IGNORECASE)

DifficultyLevel = Literal["easy", "medium", "hard"]
ClueTypeName = Literal["text", "image", "audio", "mixed"]
AnswerTypeName = Literal["exact", "contains", "regex"]


def _sanitize_single_line_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise ValueError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if any(ch in {"\n", "\r"} for ch in cleaned):
        raise ValueError("Value must be a single line of text")
    if "<" in cleaned or ">" in cleaned:
        raise ValueError("HTML tags are not allowed in this field")
    return cleaned


def _sanitize_multiline_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise ValueError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if _SCRIPT_TAG_RE.search(cleaned):
        raise ValueError("Script tags are not allowed")
    return cleaned


# ============================================================
# Users
# ============================================================

class UserRegister(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9]+$")
    password: str = Field(min_length=6, max_length=128)

    @field_validator("username", mode="before")
    @classmethod
    def _clean_username(cls, value: str) -> str:
        return _sanitize_single_line_text(value)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    created_at: datetime


class ProfileStats(BaseModel):
    hunts_created: int = 0
    hunts_played: int = 0
    hunts_completed: int = 0


class UserProfile(UserRead):
    stats: ProfileStats


# ============================================================
# Hunts and clues
# ============================================================

class ClueCreate(BaseModel):
    title: str = Field(min_length=3, max_length=255)
    content: str = Field(min_length=1)
    clue_type: ClueTypeName = "text"
    media_url: Optional[str] = Field(default=None, max_length=1024)
    answer: str = Field(min_length=1)
    answer_type: AnswerTypeName = "exact"
    hints: List[str] = Field(default_factory=list)
    points_value: int = Field(default=100, ge=1)

    @field_validator("title", mode="before")
    @classmethod
    def _clean_title(cls, value: str) -> str:
        return _sanitize_single_line_text(value)

    @field_validator("content", mode="before")
    @classmethod
    def _clean_content(cls, value: str) -> str:
        return _sanitize_multiline_text(value)

    @field_validator("answer", mode="before")
    @classmethod
    def _clean_answer(cls, value: str) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected string input")
        cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
        if not cleaned:
            raise ValueError("Value cannot be empty")
        return cleaned

    @field_validator("hints", mode="before")
    @classmethod
    def _clean_hints(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [_sanitize_multiline_text(str(h), allow_empty=True) for h in value]


class HuntCreate(BaseModel):
    title: str = Field(min_length=3, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    is_public: bool = True
    difficulty_level: DifficultyLevel = "medium"
    estimated_duration: int = Field(ge=1)
    clues: List[ClueCreate] = Field(min_length=1)

    @field_validator("title", mode="before")
    @classmethod
    def _clean_title(cls, value: str) -> str:
        return _sanitize_single_line_text(value)

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_multiline_text(value, allow_empty=True) if value is not None else value


class ClueRead(BaseModel):
    """Creator view of a clue, answer included."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    sequence_order: int
    title: str
    content: str
    clue_type: str
    media_url: Optional[str] = None
    answer: str
    answer_type: str
    hints: List[str] = Field(default_factory=list)
    points_value: int


class HuntSummary(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    difficulty_level: str
    estimated_duration: int
    total_clues: int
    created_at: datetime
    is_public: Optional[bool] = None
    creator_name: Optional[str] = None
    play_count: int = 0
    completion_count: int = 0


class HuntDetail(HuntSummary):
    clues: Optional[List[ClueRead]] = None


# ============================================================
# Game play
# ============================================================

class AnswerSubmission(BaseModel):
    answer: str = Field(min_length=1, max_length=1000)

    @field_validator("answer", mode="before")
    @classmethod
    def _clean_answer(cls, value: str) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected string input")
        cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
        if not cleaned:
            raise ValueError("Value cannot be empty")
        return cleaned


class HintRequest(BaseModel):
    hint_index: int = Field(ge=0)


class AnswerResult(BaseModel):
    correct: bool
    score_earned: int
    message: str
    total_score: Optional[int] = None
    attempts: Optional[int] = None
    next_clue: Optional[bool] = None
    game_completed: Optional[bool] = None


class HintResult(BaseModel):
    hint: str
    penalty_points: int
    total_score: int
    message: str


# ============================================================
# Media
# ============================================================

class MediaFileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    public_id: str
    url: str
    format: Optional[str] = None
    resource_type: str
    bytes: Optional[int] = None
    content_type: Optional[str] = None
    created_at: Optional[datetime] = None
