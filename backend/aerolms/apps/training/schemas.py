# backend/aerolms/apps/training/schemas.py

from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .models import QuestionType


# ---------------------------------------------------------------------------
# CATALOG
# ---------------------------------------------------------------------------


class TrainingRead(BaseModel):
    id: str
    code: str
    name: str
    description: Optional[str] = None
    validity_months: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CatalogSyncResult(BaseModel):
    """
    Outcome of one catalog synchronisation run.

    - created: codes that got a new catalog row
    - updated: previously retired codes restored because their columns are back
    - marked_incomplete: codes with a partial column set (no catalog row)
    - retired: catalog codes soft-deleted because their columns disappeared
    """

    created: List[str] = Field(default_factory=list)
    updated: List[str] = Field(default_factory=list)
    marked_incomplete: List[str] = Field(default_factory=list)
    retired: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# REQUIREMENTS
# ---------------------------------------------------------------------------


class RequirementStatus(str, enum.Enum):
    NOT_REQUIRED = "not_required"
    MISSING = "missing"
    VALID = "valid"
    EXPIRED = "expired"


class RequirementSnapshot(BaseModel):
    required: bool
    last_completed_at: Optional[date] = None
    next_due_at: Optional[date] = None


class UserRequirement(RequirementSnapshot):
    """Dashboard row: one training requirement for one user."""

    training_id: str
    code: str
    name: str
    status: RequirementStatus
    has_trainer: bool = Field(False, description="At least one trainer is assigned to the training.")


class RequirementUpdate(BaseModel):
    """Admin edit. The next-due date is derived by the personnel system and cannot be set."""

    required: Optional[bool] = None
    last_completed_at: Optional[date] = None


# ---------------------------------------------------------------------------
# ELIGIBILITY
# ---------------------------------------------------------------------------


class EligibilityReason(str, enum.Enum):
    NO_TEST = "no_test"
    TRAINING_DATA_NOT_FOUND = "training_data_not_found"
    MAX_ATTEMPTS = "max_attempts"
    FIRST_TEST = "first_test"
    TOO_EARLY = "too_early"
    CONTINUE_EXISTING = "continue_existing"
    CAN_START = "can_start"


class EligibilityVerdict(BaseModel):
    can_start: bool
    reason: EligibilityReason
    message: str

    test_id: Optional[str] = None
    failed_attempts: Optional[int] = None
    requires_in_person: bool = False
    next_allowed_date: Optional[date] = None
    days_until_allowed: Optional[int] = None
    existing_attempt_id: Optional[str] = None


# ---------------------------------------------------------------------------
# ATTEMPTS
# ---------------------------------------------------------------------------


class QuestionRead(BaseModel):
    """Question as shown to the test taker (no correct answer)."""

    id: str
    order: int
    type: QuestionType
    prompt: str
    options: Optional[List[Any]] = None
    points: int
    required: bool

    class Config:
        from_attributes = True


class TestAttemptRead(BaseModel):
    id: str
    user_id: str
    test_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    score: Optional[int] = None
    passed: Optional[bool] = None
    is_manual: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class AttemptStartRead(BaseModel):
    attempt: TestAttemptRead
    resumed: bool
    questions: List[QuestionRead] = Field(default_factory=list)


class AttemptSubmit(BaseModel):
    answers: Dict[str, Any] = Field(
        ...,
        description="Question id -> submitted value (scalar for single choice, list for multiple choice).",
    )


class ManualAttemptCreate(BaseModel):
    user_id: str
    test_id: str
    score: int = Field(..., ge=0, le=100)
    passed: bool
    notes: Optional[str] = None


# ---------------------------------------------------------------------------
# CERTIFICATES
# ---------------------------------------------------------------------------


class CertificateRead(BaseModel):
    id: str
    certificate_number: str
    user_id: str
    training_id: str
    test_attempt_id: str
    issued_at: datetime
    valid_until: date

    class Config:
        from_attributes = True


class AttemptResult(BaseModel):
    attempt_id: str
    score: int
    passed: bool
    earned_points: Optional[int] = None
    total_points: Optional[int] = None
    passing_score: int
    certificate: Optional[CertificateRead] = None


# ---------------------------------------------------------------------------
# INTEGRITY
# ---------------------------------------------------------------------------


class MultipleActiveTests(BaseModel):
    training_id: str
    code: str
    test_ids: List[str]


class DuplicateOpenAttempts(BaseModel):
    user_id: str
    test_id: str
    attempt_ids: List[str]


class ScoringSetSummary(BaseModel):
    test_id: str
    title: str
    active_points: int
    auto_scored_points: int
    deleted_questions: int
    deleted_points: int


class IntegrityReport(BaseModel):
    multiple_active_tests: List[MultipleActiveTests] = Field(default_factory=list)
    duplicate_open_attempts: List[DuplicateOpenAttempts] = Field(default_factory=list)
    unscorable_tests: List[ScoringSetSummary] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.multiple_active_tests or self.duplicate_open_attempts or self.unscorable_tests)
