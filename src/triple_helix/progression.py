"""Skip-number and distractor-level progression ladders."""
from triple_helix.models import DISTRACTOR_LEVELS

SKIP_LADDER = (1, 3, 5, 10, 25, 100)


def next_skip_number(skip_number: int) -> int:
    """Next rung of the skip ladder (1 -> 3 -> 5 -> 10 -> 25 -> 100).

    Values between rungs move to the next rung up; anything at or above the
    top rung stays at 100.
    """
    for rung in SKIP_LADDER:
        if rung > skip_number:
            return rung
    return SKIP_LADDER[-1]


def next_distractor_level(level: str) -> str:
    """Next distractor level (L1 -> L2 -> L3), saturating at L3."""
    index = DISTRACTOR_LEVELS.index(level)
    return DISTRACTOR_LEVELS[min(index + 1, len(DISTRACTOR_LEVELS) - 1)]


def is_perfect(score: int, total_questions: int) -> bool:
    return score == total_questions


def progression_update(perfect: bool, skip_number: int, distractor_level: str) -> dict:
    """Calculate an entry's next scheduling parameters after a pass.

    Args:
        perfect: Whether every question was answered correctly
        skip_number: Current skip number
        distractor_level: Current distractor level (L1-L3)

    Returns:
        Dict with updated skip_number and distractor_level.
    """
    if perfect:
        return {
            "skip_number": next_skip_number(skip_number),
            "distractor_level": next_distractor_level(distractor_level),
        }
    # Imperfect pass: back to the bottom rung, distractors unchanged
    return {"skip_number": SKIP_LADDER[0], "distractor_level": distractor_level}
