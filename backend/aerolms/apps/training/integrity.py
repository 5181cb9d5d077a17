# backend/aerolms/apps/training/integrity.py
"""
Read-only scan for data that breaks the engine's invariants.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models, schemas
from .queries import not_deleted

logger = logging.getLogger(__name__)


def _multiple_active_tests(db: Session) -> List[schemas.MultipleActiveTests]:
    rows = (
        db.query(models.TrainingTest.training_id, models.TrainingTest.id, models.Training.code)
        .join(models.Training, models.Training.id == models.TrainingTest.training_id)
        .filter(
            models.TrainingTest.is_active.is_(True),
            not_deleted(models.TrainingTest),
            not_deleted(models.Training),
        )
        .order_by(models.TrainingTest.training_id, models.TrainingTest.created_at.desc())
        .all()
    )
    grouped: Dict[Tuple[str, str], List[str]] = defaultdict(list)
    for training_id, test_id, code in rows:
        grouped[(training_id, code)].append(test_id)
    return [
        schemas.MultipleActiveTests(training_id=training_id, code=code, test_ids=test_ids)
        for (training_id, code), test_ids in grouped.items()
        if len(test_ids) > 1
    ]


def _duplicate_open_attempts(db: Session) -> List[schemas.DuplicateOpenAttempts]:
    pairs = (
        db.query(models.TestAttempt.user_id, models.TestAttempt.test_id)
        .filter(models.TestAttempt.completed_at.is_(None), not_deleted(models.TestAttempt))
        .group_by(models.TestAttempt.user_id, models.TestAttempt.test_id)
        .having(func.count(models.TestAttempt.id) > 1)
        .all()
    )
    result = []
    for user_id, test_id in pairs:
        ids = [
            row[0]
            for row in db.query(models.TestAttempt.id)
            .filter(
                models.TestAttempt.user_id == user_id,
                models.TestAttempt.test_id == test_id,
                models.TestAttempt.completed_at.is_(None),
                not_deleted(models.TestAttempt),
            )
            .order_by(models.TestAttempt.created_at.asc())
            .all()
        ]
        result.append(schemas.DuplicateOpenAttempts(user_id=user_id, test_id=test_id, attempt_ids=ids))
    return result


def scoring_set_summaries(db: Session) -> List[schemas.ScoringSetSummary]:
    """Per active test: points that count for scoring vs points sitting on soft-deleted questions."""
    tests = (
        db.query(models.TrainingTest)
        .filter(models.TrainingTest.is_active.is_(True), not_deleted(models.TrainingTest))
        .order_by(models.TrainingTest.training_id, models.TrainingTest.created_at)
        .all()
    )
    summaries = []
    for test in tests:
        questions = db.query(models.TestQuestion).filter(models.TestQuestion.test_id == test.id).all()
        active = [q for q in questions if q.deleted_at is None]
        deleted = [q for q in questions if q.deleted_at is not None]
        summaries.append(
            schemas.ScoringSetSummary(
                test_id=test.id,
                title=test.title,
                active_points=sum(q.points or 0 for q in active),
                auto_scored_points=sum(
                    q.points or 0 for q in active if models.QuestionType(q.type) in models.AUTO_SCORED_TYPES
                ),
                deleted_questions=len(deleted),
                deleted_points=sum(q.points or 0 for q in deleted),
            )
        )
    return summaries


def find_integrity_faults(db: Session) -> schemas.IntegrityReport:
    report = schemas.IntegrityReport(
        multiple_active_tests=_multiple_active_tests(db),
        duplicate_open_attempts=_duplicate_open_attempts(db),
        unscorable_tests=[s for s in scoring_set_summaries(db) if s.auto_scored_points <= 0],
    )
    if report.is_clean:
        logger.info("Training integrity scan found no faults")
    else:
        logger.warning(
            "Training integrity faults found",
            extra={
                "multiple_active_tests": len(report.multiple_active_tests),
                "duplicate_open_attempts": len(report.duplicate_open_attempts),
                "unscorable_tests": len(report.unscorable_tests),
            },
        )
    return report
