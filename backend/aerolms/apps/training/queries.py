# backend/aerolms/apps/training/queries.py
"""
Shared query helpers.

`not_deleted` is the single soft-delete predicate; every scoring and
eligibility query goes through it.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


def not_deleted(model):
    return model.deleted_at.is_(None)


def get_training(db: Session, training_id: str) -> Optional[models.Training]:
    return (
        db.query(models.Training)
        .filter(models.Training.id == training_id, not_deleted(models.Training))
        .first()
    )


def get_training_by_code(db: Session, code: str) -> Optional[models.Training]:
    return (
        db.query(models.Training)
        .filter(models.Training.code == code, not_deleted(models.Training))
        .first()
    )


def get_test(db: Session, test_id: str) -> Optional[models.TrainingTest]:
    return (
        db.query(models.TrainingTest)
        .filter(models.TrainingTest.id == test_id, not_deleted(models.TrainingTest))
        .first()
    )


def get_attempt(db: Session, attempt_id: str) -> Optional[models.TestAttempt]:
    return (
        db.query(models.TestAttempt)
        .filter(models.TestAttempt.id == attempt_id, not_deleted(models.TestAttempt))
        .first()
    )


def resolve_active_test(db: Session, training_id: str) -> Optional[models.TrainingTest]:
    """
    Return the active test for a training.

    More than one active test is a misconfiguration: the most recently
    created one wins and the condition is logged.
    """
    tests: List[models.TrainingTest] = (
        db.query(models.TrainingTest)
        .filter(
            models.TrainingTest.training_id == training_id,
            models.TrainingTest.is_active.is_(True),
            not_deleted(models.TrainingTest),
        )
        .order_by(models.TrainingTest.created_at.desc(), models.TrainingTest.id.desc())
        .all()
    )
    if not tests:
        return None
    if len(tests) > 1:
        logger.warning(
            "Multiple active tests for training; using the most recent",
            extra={
                "training_id": training_id,
                "chosen_test_id": tests[0].id,
                "active_test_ids": [t.id for t in tests],
            },
        )
    return tests[0]


def active_questions(db: Session, test_id: str) -> List[models.TestQuestion]:
    return (
        db.query(models.TestQuestion)
        .filter(models.TestQuestion.test_id == test_id, not_deleted(models.TestQuestion))
        .order_by(models.TestQuestion.order.asc(), models.TestQuestion.id.asc())
        .all()
    )


def open_attempt(db: Session, *, user_id: str, test_id: str) -> Optional[models.TestAttempt]:
    return (
        db.query(models.TestAttempt)
        .filter(
            models.TestAttempt.user_id == user_id,
            models.TestAttempt.test_id == test_id,
            models.TestAttempt.completed_at.is_(None),
            not_deleted(models.TestAttempt),
        )
        .order_by(models.TestAttempt.created_at.asc())
        .first()
    )
