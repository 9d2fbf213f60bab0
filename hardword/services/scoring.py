"""Pure scoring for a single guess.

Nothing here touches the database; the ingestion path supplies the count of
earlier correct answers and persists whatever this module returns.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional

GREEN = 'green'
YELLOW = 'yellow'
GRAY = 'gray'

MAX_POINTS = 10
MIN_POINTS = 1

_WHITESPACE = re.compile(r'\s+')


@dataclass(frozen=True)
class ScoreResult:
    correct: bool
    points: int = 0
    rank: Optional[int] = None
    hints: List[str] = field(default_factory=list)


def normalize_answer(value: str) -> str:
    return _WHITESPACE.sub(' ', (value or '').strip().upper())


def points_for_rank(rank: int) -> int:
    """1st correct answer earns 10, 2nd 9, ... 10th and later earn 1."""
    return max(MIN_POINTS, MAX_POINTS + 1 - rank)


def letter_hints(submission: str, answer: str) -> List[str]:
    """Per-letter feedback for an incorrect guess, spaces removed.

    Exact matches are marked first and consume their answer letter, so a
    letter repeated in the guess is never credited more often than it occurs
    in the answer.
    """
    guess = normalize_answer(submission).replace(' ', '')
    target = normalize_answer(answer).replace(' ', '')

    hints = [GRAY] * len(guess)
    consumed = [False] * len(target)

    for i, letter in enumerate(guess):
        if i < len(target) and letter == target[i]:
            hints[i] = GREEN
            consumed[i] = True

    for i, letter in enumerate(guess):
        if hints[i] == GREEN:
            continue
        for j, candidate in enumerate(target):
            if not consumed[j] and candidate == letter:
                hints[i] = YELLOW
                consumed[j] = True
                break

    return hints


def answer_pattern(answer: str) -> List[int]:
    """Word lengths of the canonical answer, e.g. [3, 4] for NEW YORK."""
    normalized = normalize_answer(answer)
    return [len(word) for word in normalized.split(' ')] if normalized else []


def score(answer: str, prior_correct_count: int, submission: str) -> ScoreResult:
    if normalize_answer(submission) == normalize_answer(answer):
        rank = prior_correct_count + 1
        return ScoreResult(correct=True, points=points_for_rank(rank), rank=rank)
    return ScoreResult(correct=False, hints=letter_hints(submission, answer))
