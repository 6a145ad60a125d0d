"""Score arithmetic for answers and hints."""

MIN_CORRECT_SCORE = 10
TIME_PENALTY_SECONDS = 30
ATTEMPT_PENALTY = 10
HINT_PENALTY_STEP = 10


def time_penalty(seconds_taken: int) -> int:
    """One point per full 30 seconds spent on the clue."""
    return max(0, int(seconds_taken)) // TIME_PENALTY_SECONDS


def attempt_penalty(attempt_number: int) -> int:
    """Ten points for every earlier wrong attempt on the same clue."""
    return max(0, attempt_number - 1) * ATTEMPT_PENALTY


def answer_score(points_value: int, seconds_taken: int, attempt_number: int) -> int:
    """
    Score for a correct answer:
    - Start from the clue's points
    - Subtract the time and attempt penalties
    - Never below MIN_CORRECT_SCORE
    """
    score = max(MIN_CORRECT_SCORE, points_value - time_penalty(seconds_taken))
    return max(MIN_CORRECT_SCORE, score - attempt_penalty(attempt_number))


def hint_penalty(hint_index: int) -> int:
    return (hint_index + 1) * HINT_PENALTY_STEP


def apply_hint_penalty(total_score: int, hint_index: int) -> int:
    """
    Deduct the hint penalty from a running total.
    Never go below zero.
    """
    return max(0, total_score - hint_penalty(hint_index))
