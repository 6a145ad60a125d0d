import pytest

from treasure_hunt.answers import evaluate_answer, is_valid_pattern, normalize_answer


def test_normalize_trims_and_lowercases():
    assert normalize_answer("  EcHo \n") == "echo"
    assert normalize_answer(None) == ""


@pytest.mark.parametrize(
    "submitted, expected, result",
    [
        ("Echo", "echo", True),
        ("  ECHO  ", "echo", True),
        ("echoes", "echo", False),
    ],
)
def test_exact_match_ignores_case_and_whitespace(submitted, expected, result):
    assert evaluate_answer(submitted, expected, "exact") is result


def test_contains_accepts_either_direction():
    assert evaluate_answer("my footsteps", "footsteps", "contains") is True
    assert evaluate_answer("foot", "footsteps", "contains") is True
    assert evaluate_answer("shoes", "footsteps", "contains") is False


def test_regex_searches_case_insensitively():
    assert evaluate_answer("The year was 1969", r"\b19\d\d\b", "regex") is True
    assert evaluate_answer("COLOUR", "colou?r", "regex") is True
    assert evaluate_answer("shade", "colou?r", "regex") is False


def test_invalid_regex_falls_back_to_exact():
    assert evaluate_answer("[abc", "[abc", "regex") is True
    assert evaluate_answer("abc", "[abc", "regex") is False


def test_unknown_answer_type_never_matches():
    assert evaluate_answer("echo", "echo", "fuzzy") is False


def test_is_valid_pattern():
    assert is_valid_pattern(r"^\d+$")
    assert not is_valid_pattern("(unclosed")
