# backend/aerolms/apps/training/ledger.py
"""
Attempt ledger: start, submit, abandon and manually record test attempts.

Completion is a single conditional UPDATE guarded by `completed_at IS NULL`,
so an attempt transitions to completed exactly once even under concurrent
submissions. At most one open attempt per (user, test) is enforced by the
partial unique index `uq_training_attempts_one_open`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aerolms.apps.accounts import models as account_models

from . import certificates, models, requirements, schemas, scoring
from .errors import AlreadyCompleted, Forbidden, IntegrityFault, InvalidAnswers, NoScorableQuestions, NotFound
from .queries import get_attempt, get_test, open_attempt

logger = logging.getLogger(__name__)


@dataclass
class AttemptStart:
    attempt: models.TestAttempt
    resumed: bool


def _load_attempt(db: Session, attempt_id: str) -> models.TestAttempt:
    attempt = get_attempt(db, attempt_id)
    if attempt is None:
        raise NotFound("Attempt not found.", attempt_id=attempt_id)
    return attempt


def _complete(db: Session, attempt: models.TestAttempt, values: Dict[str, Any]) -> None:
    updated = (
        db.query(models.TestAttempt)
        .filter(
            models.TestAttempt.id == attempt.id,
            models.TestAttempt.completed_at.is_(None),
        )
        .update(values, synchronize_session=False)
    )
    if updated == 0:
        db.rollback()
        raise AlreadyCompleted("Attempt is already completed.", attempt_id=attempt.id)
    db.flush()
    db.refresh(attempt)


def _record_pass(
    db: Session,
    attempt: models.TestAttempt,
    now: datetime,
) -> Optional[models.Certificate]:
    certificate = certificates.issue_if_passed(db, attempt, now=now)
    requirements.record_completion(
        db,
        user_id=attempt.user_id,
        training_code=attempt.test.training.code,
        completed_on=attempt.completed_at.date(),
    )
    return certificate


def _result(
    attempt: models.TestAttempt,
    test: models.TrainingTest,
    certificate: Optional[models.Certificate],
    breakdown: Optional[scoring.ScoreBreakdown] = None,
) -> schemas.AttemptResult:
    return schemas.AttemptResult(
        attempt_id=attempt.id,
        score=attempt.score,
        passed=attempt.passed,
        earned_points=breakdown.earned_points if breakdown else None,
        total_points=breakdown.total_points if breakdown else None,
        passing_score=test.passing_score,
        certificate=schemas.CertificateRead.model_validate(certificate) if certificate else None,
    )


# ---------------------------------------------------------------------------
# START
# ---------------------------------------------------------------------------


def start_attempt(
    db: Session,
    *,
    user_id: str,
    test_id: str,
    now: Optional[datetime] = None,
) -> AttemptStart:
    """
    Create an in-progress attempt, or return the one already open for
    (user, test).
    """
    test = get_test(db, test_id)
    if test is None or not test.is_active:
        raise NotFound("Active test not found.", test_id=test_id)

    existing = open_attempt(db, user_id=user_id, test_id=test_id)
    if existing is not None:
        return AttemptStart(attempt=existing, resumed=True)

    now = now or datetime.utcnow()
    attempt = models.TestAttempt(
        user_id=user_id,
        test_id=test_id,
        started_at=now,
        created_at=now,
    )
    try:
        with db.begin_nested():
            db.add(attempt)
            db.flush()
    except IntegrityError:
        winner = open_attempt(db, user_id=user_id, test_id=test_id)
        if winner is None:
            raise IntegrityFault(
                "Attempt insert failed without a conflicting open attempt.",
                user_id=user_id,
                test_id=test_id,
            )
        logger.warning(
            "Concurrent start detected; resuming the open attempt",
            extra={"user_id": user_id, "test_id": test_id, "attempt_id": winner.id},
        )
        db.commit()
        return AttemptStart(attempt=winner, resumed=True)

    db.commit()
    db.refresh(attempt)
    logger.info(
        "Started test attempt",
        extra={"user_id": user_id, "test_id": test_id, "attempt_id": attempt.id},
    )
    return AttemptStart(attempt=attempt, resumed=False)


# ---------------------------------------------------------------------------
# SUBMIT
# ---------------------------------------------------------------------------


def submit_attempt(
    db: Session,
    attempt_id: str,
    answers: Any,
    *,
    requesting_user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> schemas.AttemptResult:
    """
    Score and complete an attempt.

    The scoring set is read once: questions of the attempt's test that are
    not soft-deleted at this moment. Answers to soft-deleted questions are
    kept in the stored snapshot but earn nothing.
    """
    attempt = _load_attempt(db, attempt_id)
    if requesting_user_id is not None and requesting_user_id != attempt.user_id:
        raise Forbidden("Attempt belongs to another user.", attempt_id=attempt_id)
    if attempt.is_completed:
        raise AlreadyCompleted("Attempt is already completed.", attempt_id=attempt_id)

    test = attempt.test
    all_questions: List[models.TestQuestion] = (
        db.query(models.TestQuestion).filter(models.TestQuestion.test_id == test.id).all()
    )
    cleaned = scoring.validate_answers(answers, {q.id: q for q in all_questions})
    scoring_set = [q for q in all_questions if q.deleted_at is None]

    breakdown = scoring.score_answers(scoring_set, cleaned)
    if breakdown.total_points <= 0:
        logger.error(
            "Test has no scorable questions; attempt left open",
            extra={"attempt_id": attempt.id, "test_id": test.id},
        )
        raise NoScorableQuestions(
            "This test has no scorable questions. Please contact an administrator.",
            attempt_id=attempt.id,
            test_id=test.id,
        )

    now = now or datetime.utcnow()
    score = breakdown.percentage
    passed = score >= int(test.passing_score)
    _complete(
        db,
        attempt,
        {
            models.TestAttempt.answers: cleaned,
            models.TestAttempt.score: score,
            models.TestAttempt.passed: passed,
            models.TestAttempt.completed_at: now,
        },
    )

    certificate = _record_pass(db, attempt, now) if passed else None
    db.commit()

    logger.info(
        "Submitted test attempt",
        extra={
            "attempt_id": attempt.id,
            "score": score,
            "passed": passed,
            "earned_points": breakdown.earned_points,
            "total_points": breakdown.total_points,
        },
    )
    return _result(attempt, test, certificate, breakdown)


# ---------------------------------------------------------------------------
# ABANDON
# ---------------------------------------------------------------------------


def abandon_attempt(
    db: Session,
    attempt_id: str,
    requesting_user_id: str,
    *,
    now: Optional[datetime] = None,
) -> models.TestAttempt:
    attempt = _load_attempt(db, attempt_id)
    if requesting_user_id != attempt.user_id:
        raise Forbidden("Only the attempt owner can abandon it.", attempt_id=attempt_id)
    if attempt.is_completed:
        raise AlreadyCompleted("Attempt is already completed.", attempt_id=attempt_id)

    _complete(
        db,
        attempt,
        {
            models.TestAttempt.answers: dict(models.ABANDONED_SENTINEL),
            models.TestAttempt.score: 0,
            models.TestAttempt.passed: False,
            models.TestAttempt.completed_at: now or datetime.utcnow(),
        },
    )
    db.commit()
    logger.info("Abandoned test attempt", extra={"attempt_id": attempt.id, "user_id": attempt.user_id})
    return attempt


# ---------------------------------------------------------------------------
# MANUAL (IN-PERSON) COMPLETION
# ---------------------------------------------------------------------------


def _trainer_assigned(db: Session, trainer_id: str, training_id: str) -> bool:
    return (
        db.query(models.TrainingAssignment.id)
        .filter(
            models.TrainingAssignment.trainer_id == trainer_id,
            models.TrainingAssignment.training_id == training_id,
        )
        .first()
        is not None
    )


def record_manual_attempt(
    db: Session,
    *,
    test_id: str,
    user_id: str,
    score: int,
    passed: bool,
    recorded_by: str,
    role: account_models.AccountRole,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> schemas.AttemptResult:
    """
    Record a proctored (in-person) result as a completed attempt.

    Allowed for ADMIN, or a TRAINER assigned to the test's training.
    """
    test = get_test(db, test_id)
    if test is None:
        raise NotFound("Test not found.", test_id=test_id)

    if not account_models.is_admin(role):
        if not (account_models.is_trainer(role) and _trainer_assigned(db, recorded_by, test.training_id)):
            raise Forbidden(
                "Only admins or trainers assigned to this training can record in-person results.",
                training_id=test.training_id,
            )

    if db.query(account_models.User.id).filter(account_models.User.id == user_id).first() is None:
        raise NotFound("User not found.", user_id=user_id)
    if score < 0 or score > 100:
        raise InvalidAnswers("Score must be between 0 and 100.", score=score)

    now = now or datetime.utcnow()
    answers: Dict[str, Any] = {models.MANUAL_SENTINEL_KEY: True}
    if notes:
        answers["notes"] = notes

    attempt = models.TestAttempt(
        user_id=user_id,
        test_id=test.id,
        started_at=now,
        completed_at=now,
        created_at=now,
        answers=answers,
        score=score,
        passed=bool(passed),
        is_manual=True,
        evaluator_user_id=recorded_by,
        notes=notes,
    )
    db.add(attempt)
    db.flush()

    certificate = _record_pass(db, attempt, now) if attempt.passed else None
    db.commit()
    db.refresh(attempt)

    logger.info(
        "Recorded manual test attempt",
        extra={
            "attempt_id": attempt.id,
            "user_id": user_id,
            "test_id": test.id,
            "passed": attempt.passed,
            "recorded_by": recorded_by,
        },
    )
    return _result(attempt, test, certificate)
