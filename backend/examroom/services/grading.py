"""Pure scoring functions shared by submission, manual grading and re-grade audits.

Nothing here touches the session: callers load questions on the trusted side and
pass them in, so the answer key never has to leave the service layer.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from examroom.models.constants import CHOICE_OPTION_KEYS
from examroom.models.exam import ChoiceQuestion


@dataclass(frozen=True)
class ChoiceGrade:
    is_correct: bool
    awarded_marks: int


@dataclass(frozen=True)
class ScoreSummary:
    score: int
    total_marks: int
    percentage: float
    passed: bool


def normalize_option(value: str | None) -> str | None:
    if value is None:
        return None
    key = value.strip().upper()
    return key or None


def is_valid_option(value: str | None) -> bool:
    return value is None or value in CHOICE_OPTION_KEYS


def grade_choice(question: ChoiceQuestion, selected_option: str | None) -> ChoiceGrade:
    selected = normalize_option(selected_option)
    correct = normalize_option(question.correct_option)
    is_correct = selected is not None and correct is not None and selected == correct
    return ChoiceGrade(is_correct=is_correct, awarded_marks=question.marks if is_correct else 0)


def compute_percentage(score: int, total_marks: int) -> float:
    if total_marks <= 0:
        return 0.0
    return score * 100 / total_marks


def aggregate_score(
    awarded_marks: Iterable[int | None],
    question_marks: Iterable[int],
    passing_marks: int,
) -> ScoreSummary:
    # Ungraded (None) contributes nothing; finalize refuses to run while any remain.
    score = sum(int(mark or 0) for mark in awarded_marks)
    total = sum(int(mark) for mark in question_marks)
    return ScoreSummary(
        score=score,
        total_marks=total,
        percentage=compute_percentage(score, total),
        passed=score >= passing_marks,
    )
