# backend/aerolms/apps/training/requirements.py
"""
Requirement resolver: which trainings a user must hold and when they are due.

Reads the personnel table through the personnel adapter; only trainings that
are both in the catalog and backed by a complete column set are considered.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, Optional, Set

from sqlalchemy.orm import Session

from aerolms.apps.accounts import models as account_models
from aerolms.apps.personnel import services as personnel_services
from aerolms.apps.personnel.columns import (
    ColumnConvention,
    InvalidTrainingCode,
    complete_training_codes,
    validate_training_code,
)

from . import models, schemas
from .errors import NotFound
from .queries import not_deleted

logger = logging.getLogger(__name__)

_UNSET = personnel_services._UNSET


def _get_user(db: Session, user_id: str) -> Optional[account_models.User]:
    return db.query(account_models.User).filter(account_models.User.id == user_id).first()


def requirement_status(
    fields: personnel_services.RequirementFields,
    today: date,
) -> schemas.RequirementStatus:
    if not fields.required:
        return schemas.RequirementStatus.NOT_REQUIRED
    if fields.next_due_at is None:
        return schemas.RequirementStatus.MISSING
    if fields.next_due_at < today:
        return schemas.RequirementStatus.EXPIRED
    return schemas.RequirementStatus.VALID


def get_user_training_data(
    db: Session,
    user_id: str,
    training_code: str,
    *,
    convention: Optional[ColumnConvention] = None,
) -> Optional[schemas.RequirementSnapshot]:
    """
    Requirement snapshot for one user and training code, or None when the
    user, their personnel row, or the training's column set cannot be found.
    """
    try:
        validate_training_code(training_code)
    except InvalidTrainingCode:
        logger.warning("Rejected unsafe training code", extra={"code": training_code})
        return None

    user = _get_user(db, user_id)
    if user is None:
        return None

    if training_code not in complete_training_codes(db, convention):
        return None

    personnel_id = personnel_services.find_personnel_record_id(db, user)
    if personnel_id is None:
        return None

    fields = personnel_services.read_requirement_fields(
        db,
        personnel_id=personnel_id,
        codes=[training_code],
        convention=convention,
    ).get(training_code)
    if fields is None:
        return None

    return schemas.RequirementSnapshot(
        required=fields.required,
        last_completed_at=fields.last_completed_at,
        next_due_at=fields.next_due_at,
    )


def _trainings_with_trainer(db: Session, training_ids: Iterable[str]) -> Set[str]:
    ids = list(training_ids)
    if not ids:
        return set()
    rows = (
        db.query(models.TrainingAssignment.training_id)
        .filter(models.TrainingAssignment.training_id.in_(ids))
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def get_all_requirements_for_user(
    db: Session,
    user_id: str,
    *,
    today: Optional[date] = None,
    convention: Optional[ColumnConvention] = None,
) -> Dict[str, schemas.UserRequirement]:
    """
    Mapping of training code -> requirement for every catalogued training.

    Trainer-assignment existence is exposed as `has_trainer`; role-based
    filtering is applied by the caller through `visible_requirements`.
    """
    today = today or date.today()

    user = _get_user(db, user_id)
    if user is None:
        return {}
    personnel_id = personnel_services.find_personnel_record_id(db, user)
    if personnel_id is None:
        return {}

    complete = set(complete_training_codes(db, convention))
    trainings = (
        db.query(models.Training)
        .filter(not_deleted(models.Training))
        .order_by(models.Training.code.asc())
        .all()
    )
    trainings = [t for t in trainings if t.code in complete]
    if not trainings:
        return {}

    fields_by_code = personnel_services.read_requirement_fields(
        db,
        personnel_id=personnel_id,
        codes=[t.code for t in trainings],
        convention=convention,
    )
    with_trainer = _trainings_with_trainer(db, [t.id for t in trainings])

    result: Dict[str, schemas.UserRequirement] = {}
    for training in trainings:
        fields = fields_by_code.get(training.code)
        if fields is None:
            continue
        result[training.code] = schemas.UserRequirement(
            training_id=training.id,
            code=training.code,
            name=training.name,
            required=fields.required,
            last_completed_at=fields.last_completed_at,
            next_due_at=fields.next_due_at,
            status=requirement_status(fields, today),
            has_trainer=training.id in with_trainer,
        )
    return result


def visible_requirements(
    requirements: Dict[str, schemas.UserRequirement],
    role: account_models.AccountRole,
) -> Dict[str, schemas.UserRequirement]:
    """WORKERs only see required trainings that have an assigned trainer."""
    if account_models.has_unrestricted_access(role):
        return dict(requirements)
    return {
        code: item
        for code, item in requirements.items()
        if item.required and item.has_trainer
    }


def set_user_requirement(
    db: Session,
    user_id: str,
    training_code: str,
    *,
    required=_UNSET,
    last_completed_at=_UNSET,
    convention: Optional[ColumnConvention] = None,
) -> schemas.RequirementSnapshot:
    """Admin edit of the writable requirement fields."""
    user = _get_user(db, user_id)
    if user is None:
        raise NotFound("User not found.", user_id=user_id)
    personnel_id = personnel_services.find_personnel_record_id(db, user)
    if personnel_id is None:
        raise NotFound("No personnel record for user.", user_id=user_id)

    try:
        personnel_services.write_requirement_fields(
            db,
            personnel_id=personnel_id,
            code=training_code,
            required=required,
            last_completed_at=last_completed_at,
            convention=convention,
        )
    except InvalidTrainingCode as exc:
        raise NotFound(str(exc), code=training_code) from exc
    db.commit()

    snapshot = get_user_training_data(db, user_id, training_code, convention=convention)
    if snapshot is None:
        raise NotFound("Requirement not found after update.", code=training_code)
    return snapshot


def record_completion(
    db: Session,
    *,
    user_id: str,
    training_code: str,
    completed_on: date,
    convention: Optional[ColumnConvention] = None,
) -> bool:
    """
    Write the last-completion date after a passing attempt. Does not commit.

    Returns False when the user has no personnel row or the training has no
    complete column set; the certificate is still valid in that case.
    """
    user = _get_user(db, user_id)
    personnel_id = personnel_services.find_personnel_record_id(db, user) if user else None
    if personnel_id is None:
        logger.warning(
            "Cannot record completion: no personnel record",
            extra={"user_id": user_id, "code": training_code},
        )
        return False
    try:
        personnel_services.write_requirement_fields(
            db,
            personnel_id=personnel_id,
            code=training_code,
            last_completed_at=completed_on,
            convention=convention,
        )
    except InvalidTrainingCode:
        logger.warning(
            "Cannot record completion: training has no complete column set",
            extra={"user_id": user_id, "code": training_code},
        )
        return False
    return True
