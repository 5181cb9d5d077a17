# backend/aerolms/apps/training/errors.py
"""
Failures raised by the training engine.

Policy outcomes (attempt limit, proctored first test, renewal window) are
not errors; they come back as `EligibilityVerdict` values.
"""

from __future__ import annotations


class TrainingEngineError(Exception):
    """Base class; `code` is the machine-readable reason."""

    code = "training_error"

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFound(TrainingEngineError):
    code = "not_found"


class Forbidden(TrainingEngineError):
    code = "forbidden"


class AlreadyCompleted(TrainingEngineError):
    code = "already_completed"


class AttemptInProgress(TrainingEngineError):
    """Raised where a completed attempt is required but the attempt is still open."""

    code = "attempt_in_progress"


class InvalidAnswers(TrainingEngineError):
    code = "invalid_answers"


class NoScorableQuestions(TrainingEngineError):
    """The test has no auto-scored points left; the attempt stays open."""

    code = "no_scorable_questions"


class IntegrityFault(TrainingEngineError):
    """Stored data violates an engine invariant."""

    code = "integrity_fault"
