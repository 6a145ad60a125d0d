"""Utilities for normalizing and checking clue answers."""

from __future__ import annotations

import re

from treasure_hunt.models.clue import AnswerType


def normalize_answer(value: str | None) -> str:
    """Lowercase and trim an answer; ``None`` becomes the empty string."""

    return (value or "").strip().lower()


def evaluate_answer(submitted: str | None, expected: str | None, answer_type: str) -> bool:
    """Return True when ``submitted`` satisfies the clue's stored answer.

    ``exact`` compares the normalized strings, ``contains`` accepts either
    string being a substring of the other, and ``regex`` treats ``expected``
    as a case-insensitive pattern searched within the submission.  A pattern
    that does not compile is compared with ``exact`` semantics instead of
    raising.
    """

    user_answer = normalize_answer(submitted)
    correct_answer = normalize_answer(expected)

    if answer_type == AnswerType.EXACT:
        return user_answer == correct_answer
    if answer_type == AnswerType.CONTAINS:
        return correct_answer in user_answer or user_answer in correct_answer
    if answer_type == AnswerType.REGEX:
        try:
            pattern = re.compile(correct_answer, re.IGNORECASE)
        except re.error:
            return user_answer == correct_answer
        return pattern.search(user_answer) is not None
    return False


def is_valid_pattern(pattern: str) -> bool:
    try:
        re.compile(pattern)
    except re.error:
        return False
    return True
