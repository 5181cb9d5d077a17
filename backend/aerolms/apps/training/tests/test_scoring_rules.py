from __future__ import annotations

import pytest

from aerolms.apps.training import models as training_models
from aerolms.apps.training import scoring
from aerolms.apps.training.errors import InvalidAnswers

QT = training_models.QuestionType


def _q(qid, qtype, correct, points=1):
    return training_models.TestQuestion(id=qid, type=qtype, correct_answer=correct, points=points, prompt=qid)


def test_single_choice_uses_value_equality():
    q = _q("q1", QT.SINGLE, "B")
    assert scoring.is_correct(q, "B") is True
    assert scoring.is_correct(q, "C") is False
    assert scoring.is_correct(q, None) is False


def test_single_choice_index_matches_across_int_and_str():
    q = _q("q1", QT.SINGLE, 2)
    assert scoring.is_correct(q, "2") is True


def test_integral_float_matches_stored_int():
    q = _q("q1", QT.SINGLE, 2)
    assert scoring.is_correct(q, 2.0) is True
    assert scoring.is_correct(_q("q2", QT.MULTIPLE, [1, 3]), [3.0, "1"]) is True
    assert scoring.is_correct(q, 2.5) is False


def test_multiple_choice_is_order_independent():
    q = _q("q1", QT.MULTIPLE, ["A", "C"])
    assert scoring.is_correct(q, ["C", "A"]) is True
    assert scoring.is_correct(q, ["A"]) is False
    assert scoring.is_correct(q, ["A", "B", "C"]) is False


def test_multiple_choice_key_stored_as_json_string():
    q = _q("q1", QT.MULTIPLE, '["0", "2"]')
    assert scoring.is_correct(q, ["2", "0"]) is True
    assert scoring.is_correct(q, [0, 2]) is True


def test_malformed_stored_keys_never_match():
    assert scoring.is_correct(_q("q1", QT.MULTIPLE, [["A"], "B"]), ["A", "B"]) is False
    assert scoring.is_correct(_q("q2", QT.SINGLE, {"value": "A"}), "A") is False


def test_yes_no_scored_like_single_choice():
    q = _q("q1", QT.YES_NO, "yes")
    assert scoring.is_correct(q, "yes") is True
    assert scoring.is_correct(q, "no") is False


def test_free_text_is_excluded_from_auto_scored_total():
    questions = [_q("q1", QT.SINGLE, "A", 2), _q("q2", QT.TEXT, None, 5)]

    breakdown = scoring.score_answers(questions, {"q1": "A", "q2": "anything"})

    assert (breakdown.earned_points, breakdown.total_points) == (2, 2)
    assert breakdown.percentage == 100


@pytest.mark.parametrize(
    "earned,total,expected",
    [(3, 4, 75), (1, 8, 13), (1, 3, 33), (2, 3, 67), (0, 5, 0)],
)
def test_percentage_rounds_half_up(earned, total, expected):
    assert scoring.ScoreBreakdown(earned_points=earned, total_points=total).percentage == expected


def test_unanswered_questions_earn_nothing():
    questions = [_q("q1", QT.SINGLE, "A"), _q("q2", QT.SINGLE, "B")]

    breakdown = scoring.score_answers(questions, {"q1": "A"})

    assert breakdown.percentage == 50


def test_validate_rejects_unknown_question_ids():
    by_id = {"q1": _q("q1", QT.SINGLE, "A")}
    with pytest.raises(InvalidAnswers):
        scoring.validate_answers({"q9": "A"}, by_id)


def test_validate_rejects_shape_mismatches():
    by_id = {"s": _q("s", QT.SINGLE, "A"), "m": _q("m", QT.MULTIPLE, ["A"])}
    with pytest.raises(InvalidAnswers):
        scoring.validate_answers({"s": ["A"]}, by_id)
    with pytest.raises(InvalidAnswers):
        scoring.validate_answers({"m": "A"}, by_id)
    with pytest.raises(InvalidAnswers):
        scoring.validate_answers(["A"], by_id)


def test_validate_returns_plain_dict():
    by_id = {"s": _q("s", QT.SINGLE, "A"), "m": _q("m", QT.MULTIPLE, ["A"])}
    assert scoring.validate_answers({"s": "A", "m": ["A"]}, by_id) == {"s": "A", "m": ["A"]}


def test_validate_rejects_nested_multiple_choice_options():
    questions = {"q1": _q("q1", QT.MULTIPLE, ["A", "B"])}

    with pytest.raises(InvalidAnswers):
        scoring.validate_answers({"q1": [["A"], "B"]}, questions)
    with pytest.raises(InvalidAnswers):
        scoring.validate_answers({"q1": '[{"A": 1}]'}, questions)
