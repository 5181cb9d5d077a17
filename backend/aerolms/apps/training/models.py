# backend/aerolms/apps/training/models.py

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.identifiers import prefixed_id


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class QuestionType(str, enum.Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    YES_NO = "yesno"
    TEXT = "text"  # free text, graded manually


AUTO_SCORED_TYPES = frozenset({QuestionType.SINGLE, QuestionType.MULTIPLE, QuestionType.YES_NO})

ABANDONED_SENTINEL = {"abandoned": True}
MANUAL_SENTINEL_KEY = "manual"


def _training_id() -> str:
    return prefixed_id("TRN")


def _test_id() -> str:
    return prefixed_id("TST")


def _question_id() -> str:
    return prefixed_id("Q")


def _attempt_id() -> str:
    return prefixed_id("ATT")


def _certificate_id() -> str:
    return prefixed_id("CRT")


# ---------------------------------------------------------------------------
# TRAINING CATALOG
# ---------------------------------------------------------------------------


class Training(Base):
    """
    One compliance topic.

    Rows are created and retired by the catalog synchronizer from the
    personnel table's column sets; `code` is the column-name fragment.
    """

    __tablename__ = "trainings"
    __table_args__ = (
        UniqueConstraint("code", name="uq_trainings_code"),
        Index("idx_trainings_deleted", "deleted_at"),
    )

    id = Column(String(36), primary_key=True, default=_training_id)

    code = Column(String(50), nullable=False, doc="Column-name fragment, e.g. 'CMM'.")
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    validity_months = Column(Integer, nullable=False, default=12)
    content = Column(JSON, nullable=True, doc="Opaque rich-text document for the training page.")

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    retired_by_sync = Column(
        Boolean,
        nullable=False,
        default=False,
        doc="True when the synchronizer soft-deleted the row because its columns vanished.",
    )

    tests = relationship("TrainingTest", back_populates="training", lazy="selectin")
    assignments = relationship("TrainingAssignment", back_populates="training", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Training {self.code}>"


class TrainingAssignment(Base):
    """Trainer responsible for a training (feeds WORKER visibility and manual completions)."""

    __tablename__ = "training_assignments"
    __table_args__ = (
        UniqueConstraint("trainer_id", "training_id", name="uq_training_assignments_trainer_training"),
    )

    id = Column(String(36), primary_key=True, default=prefixed_id)

    trainer_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    training_id = Column(
        String(36),
        ForeignKey("trainings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    training = relationship("Training", back_populates="assignments", lazy="joined")

    def __repr__(self) -> str:
        return f"<TrainingAssignment trainer={self.trainer_id} training={self.training_id}>"


# ---------------------------------------------------------------------------
# TESTS & QUESTIONS
# ---------------------------------------------------------------------------


class TrainingTest(Base):
    """
    A test belonging to one training.

    Policy: at most one active, non-deleted test per training. Not enforced by
    the schema; readers pick the most recently created one and log the fault.
    """

    __tablename__ = "training_tests"
    __table_args__ = (
        Index("idx_training_tests_training_active", "training_id", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=_test_id)

    training_id = Column(
        String(36),
        ForeignKey("trainings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    passing_score = Column(Integer, nullable=False, default=70, doc="Percentage 0-100.")
    time_limit_minutes = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    training = relationship("Training", back_populates="tests", lazy="joined")
    questions = relationship(
        "TestQuestion",
        back_populates="test",
        lazy="selectin",
        order_by="TestQuestion.order",
    )

    def __repr__(self) -> str:
        return f"<TrainingTest {self.id} training={self.training_id} active={self.is_active}>"


class TestQuestion(Base):
    __tablename__ = "training_test_questions"
    __table_args__ = (
        Index("idx_training_questions_test_order", "test_id", "sort_order"),
    )

    id = Column(String(36), primary_key=True, default=_question_id)

    test_id = Column(
        String(36),
        ForeignKey("training_tests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    order = Column("sort_order", Integer, nullable=False, default=1, doc="1-based display and scoring order.")
    type = Column(
        Enum(QuestionType, name="training_question_type_enum"),
        nullable=False,
        default=QuestionType.SINGLE,
    )
    prompt = Column(Text, nullable=False)
    options = Column(JSON, nullable=True)
    correct_answer = Column(
        JSON,
        nullable=True,
        doc="Scalar for single/yes-no; list (or JSON-encoded list) for multiple choice.",
    )
    points = Column(Integer, nullable=False, default=1)
    required = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    test = relationship("TrainingTest", back_populates="questions", lazy="joined")

    def __repr__(self) -> str:
        return f"<TestQuestion {self.id} test={self.test_id} order={self.order}>"


# ---------------------------------------------------------------------------
# ATTEMPTS
# ---------------------------------------------------------------------------


class TestAttempt(Base):
    """
    One worker's pass at one test.

    In progress while `completed_at` is NULL; completion sets score, passed
    and completed_at together and is irreversible. The partial unique index
    keeps at most one open attempt per (user, test).
    """

    __tablename__ = "training_test_attempts"
    __table_args__ = (
        Index("idx_training_attempts_user_test_created", "user_id", "test_id", "created_at"),
        Index(
            "uq_training_attempts_one_open",
            "user_id",
            "test_id",
            unique=True,
            postgresql_where=text("completed_at IS NULL AND deleted_at IS NULL"),
            sqlite_where=text("completed_at IS NULL AND deleted_at IS NULL"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_attempt_id)

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    test_id = Column(
        String(36),
        ForeignKey("training_tests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    started_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    answers = Column(JSON, nullable=True)
    score = Column(Integer, nullable=True)
    passed = Column(Boolean, nullable=True)

    is_manual = Column(Boolean, nullable=False, default=False)
    evaluator_user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    test = relationship("TrainingTest", lazy="joined")

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_abandoned(self) -> bool:
        return isinstance(self.answers, dict) and self.answers.get("abandoned") is True

    def __repr__(self) -> str:
        return f"<TestAttempt {self.id} user={self.user_id} test={self.test_id} completed={self.completed_at}>"


# ---------------------------------------------------------------------------
# CERTIFICATES
# ---------------------------------------------------------------------------


class Certificate(Base):
    """
    Issued once per passing attempt and never mutated afterwards.

    `valid_until` is a snapshot of the training's validity at issuance.
    """

    __tablename__ = "training_certificates"
    __table_args__ = (
        UniqueConstraint("certificate_number", name="uq_training_certificates_number"),
        UniqueConstraint("test_attempt_id", name="uq_training_certificates_attempt"),
        Index("idx_training_certificates_user_training", "user_id", "training_id"),
    )

    id = Column(String(36), primary_key=True, default=_certificate_id)

    certificate_number = Column(String(64), nullable=False)

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    training_id = Column(
        String(36),
        ForeignKey("trainings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    test_attempt_id = Column(
        String(36),
        ForeignKey("training_test_attempts.id", ondelete="CASCADE"),
        nullable=False,
    )

    issued_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    valid_until = Column(Date, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    training = relationship("Training", lazy="joined")

    def __repr__(self) -> str:
        return f"<Certificate {self.certificate_number} attempt={self.test_attempt_id}>"
