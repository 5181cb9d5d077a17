from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...database import get_db
from ...security import get_current_active_user, require_roles
from ..accounts import models as accounts_models
from . import catalog, certificates, eligibility, integrity, ledger, queries, requirements
from . import models as training_models
from . import schemas as training_schemas
from .errors import (
    AlreadyCompleted,
    AttemptInProgress,
    Forbidden,
    IntegrityFault,
    InvalidAnswers,
    NoScorableQuestions,
    NotFound,
    TrainingEngineError,
)

router = APIRouter(prefix="/training", tags=["training"])

_STATUS_BY_ERROR = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (AlreadyCompleted, status.HTTP_409_CONFLICT),
    (AttemptInProgress, status.HTTP_409_CONFLICT),
    (InvalidAnswers, status.HTTP_400_BAD_REQUEST),
    (NoScorableQuestions, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (IntegrityFault, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


# ---------------------------------------------------------------------------
# HELPERS
# ---------------------------------------------------------------------------


def _http_error(exc: TrainingEngineError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(
                status_code=status_code,
                detail={"code": exc.code, "message": exc.message},
            )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": exc.code, "message": exc.message},
    )


def _require_self_or_staff(
    current_user: accounts_models.User,
    user_id: str,
) -> None:
    if current_user.id == user_id or accounts_models.has_unrestricted_access(current_user.role):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You can only view your own training records.",
    )


# ---------------------------------------------------------------------------
# CATALOG
# ---------------------------------------------------------------------------


@router.get(
    "/catalog",
    response_model=List[training_schemas.TrainingRead],
    summary="List synchronized trainings",
)
def list_trainings(
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(get_current_active_user),
):
    return (
        db.query(training_models.Training)
        .filter(queries.not_deleted(training_models.Training))
        .order_by(training_models.Training.code.asc())
        .all()
    )


@router.post(
    "/catalog/sync",
    response_model=training_schemas.CatalogSyncResult,
    summary="Synchronize trainings from personnel columns (admin only)",
)
def sync_catalog(
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(require_roles(accounts_models.AccountRole.ADMIN)),
):
    return catalog.synchronize_catalog(db)


# ---------------------------------------------------------------------------
# REQUIREMENTS
# ---------------------------------------------------------------------------


@router.get(
    "/requirements/me",
    response_model=Dict[str, training_schemas.UserRequirement],
    summary="Requirements for the current user",
)
def get_my_requirements(
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(get_current_active_user),
):
    """
    Workers only see required trainings that have an assigned trainer;
    trainers and admins see everything.
    """
    reqs = requirements.get_all_requirements_for_user(db, current_user.id)
    return requirements.visible_requirements(reqs, current_user.role)


@router.get(
    "/requirements/{user_id}",
    response_model=Dict[str, training_schemas.UserRequirement],
    summary="All requirements for a user (trainer / admin)",
)
def get_user_requirements(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(require_roles(accounts_models.AccountRole.TRAINER)),
):
    return requirements.get_all_requirements_for_user(db, user_id)


@router.get(
    "/requirements/{user_id}/{code}",
    response_model=training_schemas.RequirementSnapshot,
    summary="One requirement for a user",
)
def get_user_requirement(
    user_id: str,
    code: str,
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(get_current_active_user),
):
    _require_self_or_staff(current_user, user_id)
    snapshot = requirements.get_user_training_data(db, user_id, code)
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Training data not found for this user.",
        )
    return snapshot


@router.put(
    "/requirements/{user_id}/{code}",
    response_model=training_schemas.RequirementSnapshot,
    summary="Edit a user's requirement (admin only)",
)
def update_user_requirement(
    user_id: str,
    code: str,
    payload: training_schemas.RequirementUpdate,
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(require_roles(accounts_models.AccountRole.ADMIN)),
):
    changes = payload.model_dump(include=payload.model_fields_set)
    try:
        return requirements.set_user_requirement(db, user_id, code, **changes)
    except TrainingEngineError as exc:
        raise _http_error(exc)


# ---------------------------------------------------------------------------
# ELIGIBILITY & ATTEMPTS
# ---------------------------------------------------------------------------


@router.get(
    "/trainings/{training_id}/eligibility",
    response_model=training_schemas.EligibilityVerdict,
    summary="Can the current user start the training's test?",
)
def get_eligibility(
    training_id: str,
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(get_current_active_user),
):
    try:
        return eligibility.can_start_attempt(
            db,
            user_id=current_user.id,
            training_id=training_id,
            role=current_user.role,
        )
    except TrainingEngineError as exc:
        raise _http_error(exc)


@router.post(
    "/trainings/{training_id}/attempts",
    response_model=training_schemas.AttemptStartRead,
    summary="Start (or resume) the training's active test",
)
def start_attempt(
    training_id: str,
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(get_current_active_user),
):
    try:
        verdict = eligibility.can_start_attempt(
            db,
            user_id=current_user.id,
            training_id=training_id,
            role=current_user.role,
        )
        if not verdict.can_start:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=verdict.model_dump(mode="json"),
            )
        started = ledger.start_attempt(db, user_id=current_user.id, test_id=verdict.test_id)
    except TrainingEngineError as exc:
        raise _http_error(exc)

    return training_schemas.AttemptStartRead(
        attempt=training_schemas.TestAttemptRead.model_validate(started.attempt),
        resumed=started.resumed,
        questions=[
            training_schemas.QuestionRead.model_validate(q)
            for q in queries.active_questions(db, started.attempt.test_id)
        ],
    )


@router.post(
    "/attempts/manual",
    response_model=training_schemas.AttemptResult,
    summary="Record an in-person result (admin / assigned trainer)",
)
def record_manual_attempt(
    payload: training_schemas.ManualAttemptCreate,
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(require_roles(accounts_models.AccountRole.TRAINER)),
):
    try:
        return ledger.record_manual_attempt(
            db,
            test_id=payload.test_id,
            user_id=payload.user_id,
            score=payload.score,
            passed=payload.passed,
            recorded_by=current_user.id,
            role=current_user.role,
            notes=payload.notes,
        )
    except TrainingEngineError as exc:
        raise _http_error(exc)


@router.post(
    "/attempts/{attempt_id}/submit",
    response_model=training_schemas.AttemptResult,
    summary="Submit answers and score the attempt",
)
def submit_attempt(
    attempt_id: str,
    payload: training_schemas.AttemptSubmit,
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(get_current_active_user),
):
    try:
        return ledger.submit_attempt(
            db,
            attempt_id,
            payload.answers,
            requesting_user_id=current_user.id,
        )
    except TrainingEngineError as exc:
        raise _http_error(exc)


@router.post(
    "/attempts/{attempt_id}/abandon",
    response_model=training_schemas.TestAttemptRead,
    summary="Abandon an in-progress attempt (counts as failed)",
)
def abandon_attempt(
    attempt_id: str,
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(get_current_active_user),
):
    try:
        return ledger.abandon_attempt(db, attempt_id, current_user.id)
    except TrainingEngineError as exc:
        raise _http_error(exc)


@router.get(
    "/attempts/{attempt_id}/certificate",
    response_model=training_schemas.CertificateRead,
    summary="Certificate issued for a passing attempt",
)
def get_attempt_certificate(
    attempt_id: str,
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(get_current_active_user),
):
    cert = certificates.get_certificate_for_attempt(db, attempt_id)
    if cert is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No certificate for this attempt.",
        )
    _require_self_or_staff(current_user, cert.user_id)
    return cert


# ---------------------------------------------------------------------------
# INTEGRITY
# ---------------------------------------------------------------------------


@router.get(
    "/integrity",
    response_model=training_schemas.IntegrityReport,
    summary="Invariant violations in training data (admin only)",
)
def get_integrity_report(
    db: Session = Depends(get_db),
    current_user: accounts_models.User = Depends(require_roles(accounts_models.AccountRole.ADMIN)),
):
    return integrity.find_integrity_faults(db)
