"""Scoring utilities for quiz submissions.

Functions:
- score_mcq: grade multiple choice answers against the answer key.
- percentage_of / is_passing: percentage and pass/fail arithmetic shared by
  automatic and manual grading.
- normalize_mcq_answers: turn the client's answer payload into {question_index: option_index}.
- validate_mcq_selections: check normalised answers against the authored questions and options.
- validate_open_ended_answer: check an open-ended answer against what the quiz accepts.
- validate_grade_score: check a manual grade against the quiz's total points.
"""
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, FrozenSet, List, Optional, Sequence

from manabi.quiz.errors import QuizValidationError
from manabi.quiz.models import UNANSWERED


@dataclass(frozen=True)
class AnswerKey:
    question_index: int
    points: float
    correct_option_index: Optional[int]
    option_indices: FrozenSet[int] = frozenset()

    @classmethod
    def from_question(cls, question) -> "AnswerKey":
        return cls(
            question_index=question.question_index,
            points=float(question.points),
            correct_option_index=question.correct_option_index(),
            option_indices=frozenset(o.option_index for o in question.options),
        )


@dataclass
class ScoredAnswer:
    question_index: int
    selected_option_index: int
    is_correct: bool
    points_earned: float


@dataclass
class McqResult:
    answers: List[ScoredAnswer] = field(default_factory=list)
    score: float = 0.0
    total_points: float = 0.0
    percentage: int = 0
    passed: bool = False

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a.selected_option_index != UNANSWERED)


def percentage_of(score: float, total_points: float) -> int:
    """Return round(100 * score / total_points), halves rounded up; 0 when there are no points."""
    if not total_points or total_points <= 0:
        return 0
    raw = Decimal(str(score)) * 100 / Decimal(str(total_points))
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_passing(percentage: float, passing_score: float) -> bool:
    return percentage >= passing_score


def normalize_mcq_answers(raw) -> Dict[int, int]:
    """
    Accept either a list (position = question index, None = unanswered) or a
    mapping of question index to option index (keys may be strings, as JSON
    objects require). Unanswered entries are dropped.
    """
    if raw is None:
        return {}
    if isinstance(raw, list):
        items = enumerate(raw)
    elif isinstance(raw, dict):
        items = raw.items()
    else:
        raise QuizValidationError("Answers must be a list or an object keyed by question index")

    answers = {}
    for key, value in items:
        if value is None:
            continue
        try:
            question_index = int(key)
        except (TypeError, ValueError):
            raise QuizValidationError(f"Invalid question index: {key!r}")
        if isinstance(value, bool) or not isinstance(value, int):
            raise QuizValidationError(f"Selected option for question {question_index} must be an integer")
        if value == UNANSWERED:
            continue
        answers[question_index] = value
    return answers


def validate_mcq_selections(keys: Sequence[AnswerKey], answers: Dict[int, int]) -> None:
    """Reject answers to questions the quiz does not have, or options a question does not offer."""
    by_index = {key.question_index: key for key in keys}
    for question_index, option_index in answers.items():
        key = by_index.get(question_index)
        if key is None:
            raise QuizValidationError(f"Quiz has no question {question_index}")
        if option_index not in key.option_indices:
            raise QuizValidationError(f"Question {question_index} has no option {option_index}")


def score_mcq(
    keys: Sequence[AnswerKey],
    answers: Dict[int, int],
    total_points: float,
    passing_score: float,
) -> McqResult:
    """
    Grade answers against the answer key.

    Every question gets a ScoredAnswer; unanswered questions are recorded with
    selected_option_index == UNANSWERED and earn nothing. Answers to unknown
    question indices are ignored.
    """
    result = McqResult(total_points=float(total_points))
    for key in keys:
        selected = answers.get(key.question_index, UNANSWERED)
        is_correct = (
            selected != UNANSWERED
            and key.correct_option_index is not None
            and selected == key.correct_option_index
        )
        earned = key.points if is_correct else 0.0
        result.answers.append(ScoredAnswer(
            question_index=key.question_index,
            selected_option_index=selected,
            is_correct=is_correct,
            points_earned=earned,
        ))
        result.score += earned

    result.percentage = percentage_of(result.score, result.total_points)
    result.passed = is_passing(result.percentage, passing_score)
    return result


def validate_open_ended_answer(
    accept_text_answer: bool,
    accept_file_upload: bool,
    text_answer,
    file_url,
    forced: bool = False,
):
    """
    Return the cleaned (text_answer, file_url) pair.

    Args:
        accept_text_answer: Whether the quiz accepts a typed answer
        accept_file_upload: Whether the quiz accepts an uploaded file
        text_answer: Submitted text, may be None
        file_url: URL returned by the upload API, may be None
        forced: True when the countdown expired; an empty answer is then accepted
    """
    if text_answer is not None and not isinstance(text_answer, str):
        raise QuizValidationError("textAnswer must be a string")
    if file_url is not None and not isinstance(file_url, str):
        raise QuizValidationError("fileUrl must be a string")

    text = (text_answer or "").strip() or None
    url = (file_url or "").strip() or None

    if text and not accept_text_answer:
        raise QuizValidationError("This quiz does not accept text answers")
    if url and not accept_file_upload:
        raise QuizValidationError("This quiz does not accept file uploads")
    if not text and not url and not forced:
        raise QuizValidationError("Please provide an answer (text or file upload)")
    return text, url


def validate_grade_score(score, total_points: float) -> float:
    """Return score as a float, rejecting anything outside [0, total_points]."""
    if isinstance(score, bool) or score is None:
        raise QuizValidationError("Score must be a number")
    try:
        value = float(score)
    except (TypeError, ValueError):
        raise QuizValidationError("Score must be a number")
    if math.isnan(value) or value < 0 or value > float(total_points):
        raise QuizValidationError(f"Score must be between 0 and {float(total_points):g}")
    return value
