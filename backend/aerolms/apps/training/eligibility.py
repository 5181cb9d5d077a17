# backend/aerolms/apps/training/eligibility.py
"""
Eligibility gate: may this user start an attempt for this training now?

Read-only. Outcomes are verdicts, not exceptions; only an unknown training
raises. Evaluation order (first match wins):

1. no_test            - no active test for the training
2. unrestricted roles skip straight to 6
   training_data_not_found - worker's requirement row cannot be resolved
3. max_attempts       - failed attempts since the last pass reached the limit
4. first_test         - required but never completed: proctored in person
5. too_early          - before next_due minus the renewal window
6. continue_existing / can_start
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from aerolms.apps.accounts import models as account_models
from aerolms.utils.dates import add_months, start_of_day

from . import models, requirements, schemas
from .errors import NotFound
from .policy import EligibilityPolicy, PassWindowPolicy, load_policy
from .queries import get_training, not_deleted, open_attempt, resolve_active_test

logger = logging.getLogger(__name__)

Reason = schemas.EligibilityReason


def _latest_pass(
    db: Session,
    *,
    user_id: str,
    test_id: str,
    pass_window: PassWindowPolicy,
) -> Optional[models.TestAttempt]:
    query = db.query(models.TestAttempt).filter(
        models.TestAttempt.user_id == user_id,
        models.TestAttempt.test_id == test_id,
        models.TestAttempt.completed_at.isnot(None),
        models.TestAttempt.passed.is_(True),
    )
    if pass_window == PassWindowPolicy.IGNORE_DELETED_PASSES:
        query = query.filter(not_deleted(models.TestAttempt))
    return query.order_by(models.TestAttempt.created_at.desc()).first()


def count_failed_since_last_pass(
    db: Session,
    *,
    user_id: str,
    test_id: str,
    pass_window: PassWindowPolicy = PassWindowPolicy.IGNORE_DELETED_PASSES,
) -> int:
    """
    Failed, completed, non-deleted attempts created strictly after the most
    recent passed attempt (all-time when there is none).
    """
    anchor = _latest_pass(db, user_id=user_id, test_id=test_id, pass_window=pass_window)
    query = db.query(models.TestAttempt).filter(
        models.TestAttempt.user_id == user_id,
        models.TestAttempt.test_id == test_id,
        models.TestAttempt.completed_at.isnot(None),
        models.TestAttempt.passed.is_(False),
        not_deleted(models.TestAttempt),
    )
    if anchor is not None:
        query = query.filter(models.TestAttempt.created_at > anchor.created_at)
    return query.count()


def can_start_attempt(
    db: Session,
    *,
    user_id: str,
    training_id: str,
    role: account_models.AccountRole,
    policy: Optional[EligibilityPolicy] = None,
    now: Optional[datetime] = None,
) -> schemas.EligibilityVerdict:
    policy = policy or load_policy()
    now = now or datetime.utcnow()

    training = get_training(db, training_id)
    if training is None:
        raise NotFound("Training not found.", training_id=training_id)

    test = resolve_active_test(db, training.id)
    if test is None:
        return schemas.EligibilityVerdict(
            can_start=False,
            reason=Reason.NO_TEST,
            message="This training has no active test.",
        )

    if not account_models.has_unrestricted_access(role):
        requirement = requirements.get_user_training_data(db, user_id, training.code)
        if requirement is None:
            return schemas.EligibilityVerdict(
                can_start=False,
                reason=Reason.TRAINING_DATA_NOT_FOUND,
                message="No training record was found for your account. Please contact an administrator.",
                test_id=test.id,
            )

        failed = count_failed_since_last_pass(
            db,
            user_id=user_id,
            test_id=test.id,
            pass_window=policy.pass_window,
        )
        if failed >= policy.max_failed_attempts:
            return schemas.EligibilityVerdict(
                can_start=False,
                reason=Reason.MAX_ATTEMPTS,
                message=(
                    f"You have failed this test {failed} times. "
                    "Please arrange an in-person session with your trainer."
                ),
                test_id=test.id,
                failed_attempts=failed,
                requires_in_person=True,
            )

        if requirement.required and requirement.last_completed_at is None:
            return schemas.EligibilityVerdict(
                can_start=False,
                reason=Reason.FIRST_TEST,
                message="The first certification for this training must be completed in person.",
                test_id=test.id,
                failed_attempts=failed,
                requires_in_person=True,
            )

        if requirement.required and requirement.next_due_at is not None:
            allowed_from = add_months(requirement.next_due_at, -policy.renewal_window_months)
            allowed_at = start_of_day(allowed_from)
            if now < allowed_at:
                days = math.ceil((allowed_at - now).total_seconds() / 86400)
                return schemas.EligibilityVerdict(
                    can_start=False,
                    reason=Reason.TOO_EARLY,
                    message=f"The test can be taken from {allowed_from.isoformat()} (in {days} days).",
                    test_id=test.id,
                    failed_attempts=failed,
                    next_allowed_date=allowed_from,
                    days_until_allowed=days,
                )

    existing = open_attempt(db, user_id=user_id, test_id=test.id)
    if existing is not None:
        return schemas.EligibilityVerdict(
            can_start=True,
            reason=Reason.CONTINUE_EXISTING,
            message="You have a test in progress.",
            test_id=test.id,
            existing_attempt_id=existing.id,
        )

    return schemas.EligibilityVerdict(
        can_start=True,
        reason=Reason.CAN_START,
        message="You can start the test.",
        test_id=test.id,
    )
