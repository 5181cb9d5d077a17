# backend/aerolms/apps/training/scoring.py
"""
Pure scoring rules for submitted answers.

The scoring set is passed in explicitly (active questions at submission
time); nothing here touches the database.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from . import models
from .errors import InvalidAnswers


@dataclass(frozen=True)
class ScoreBreakdown:
    earned_points: int
    total_points: int

    @property
    def percentage(self) -> int:
        """Round-half-up integer percentage; requires total_points > 0."""
        ratio = Decimal(100 * self.earned_points) / Decimal(self.total_points)
        return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _as_type(value) -> models.QuestionType:
    if isinstance(value, models.QuestionType):
        return value
    return models.QuestionType(value)


def decode_choice_list(value: Any) -> Optional[List[Any]]:
    """Multiple-choice keys are stored either as a JSON list or a JSON-encoded list string."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return None
        if isinstance(decoded, list):
            return decoded
    return None


_CHOICE_TYPES = (str, int, float, bool)


def _normalise_choice(value: Any) -> Any:
    # "2", 2 and 2.0 refer to the same option index/value.
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _choice_set(values: List[Any]) -> Optional[frozenset]:
    if not all(isinstance(v, _CHOICE_TYPES) for v in values):
        return None
    return frozenset(_normalise_choice(v) for v in values)


def is_correct(question: models.TestQuestion, answer: Any) -> bool:
    qtype = _as_type(question.type)
    if answer is None:
        return False

    if qtype == models.QuestionType.MULTIPLE:
        expected = decode_choice_list(question.correct_answer)
        submitted = decode_choice_list(answer)
        if expected is None or submitted is None:
            return False
        expected_set = _choice_set(expected)
        # A malformed stored key never matches.
        return expected_set is not None and _choice_set(submitted) == expected_set

    if qtype in (models.QuestionType.SINGLE, models.QuestionType.YES_NO):
        if not isinstance(question.correct_answer, _CHOICE_TYPES):
            return False
        return _normalise_choice(answer) == _normalise_choice(question.correct_answer)

    return False


def validate_answers(
    answers: Any,
    questions_by_id: Mapping[str, models.TestQuestion],
) -> Dict[str, Any]:
    """
    Check the shape of a submission against every question of the test,
    including soft-deleted ones. Raises InvalidAnswers; returns a plain dict.
    """
    if not isinstance(answers, Mapping):
        raise InvalidAnswers("Answers must be an object keyed by question id.")

    cleaned: Dict[str, Any] = {}
    for question_id, value in answers.items():
        question = questions_by_id.get(str(question_id))
        if question is None:
            raise InvalidAnswers("Answer references an unknown question.", question_id=question_id)
        if value is None:
            cleaned[str(question_id)] = None
            continue

        qtype = _as_type(question.type)
        if qtype == models.QuestionType.MULTIPLE:
            choices = decode_choice_list(value)
            if choices is None:
                raise InvalidAnswers(
                    "Multiple-choice answers must be a list.",
                    question_id=question_id,
                )
            if not all(isinstance(v, _CHOICE_TYPES) for v in choices):
                raise InvalidAnswers(
                    "Multiple-choice options must be plain values.",
                    question_id=question_id,
                )
        elif qtype in (models.QuestionType.SINGLE, models.QuestionType.YES_NO):
            if isinstance(value, (list, tuple, dict)):
                raise InvalidAnswers(
                    "Single-choice answers must be a single value.",
                    question_id=question_id,
                )
        elif not isinstance(value, str):
            raise InvalidAnswers("Free-text answers must be text.", question_id=question_id)
        cleaned[str(question_id)] = value
    return cleaned


def score_answers(
    scoring_set: Iterable[models.TestQuestion],
    answers: Mapping[str, Any],
) -> ScoreBreakdown:
    """
    Sum points of correctly answered auto-scored questions over the
    auto-scored point total of `scoring_set`. Unanswered questions earn 0.
    """
    earned = 0
    total = 0
    for question in scoring_set:
        if _as_type(question.type) not in models.AUTO_SCORED_TYPES:
            continue
        points = int(question.points or 0)
        total += points
        if is_correct(question, answers.get(question.id)):
            earned += points
    return ScoreBreakdown(earned_points=earned, total_points=total)
