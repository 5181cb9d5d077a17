from __future__ import annotations

from datetime import datetime

import pytest
import sqlalchemy as sa

from aerolms.apps.accounts import models as account_models
from aerolms.apps.personnel import models as personnel_models
from aerolms.apps.training import models as training_models

_FIELD_TYPES = {
    "Required": sa.Boolean,
    "LastCompleted": sa.Date,
    "NextDue": sa.Date,
}


def _typed_column(name: str):
    for suffix, type_ in _FIELD_TYPES.items():
        if name.endswith(suffix):
            return sa.column(name, type_)
    raise ValueError(name)


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=account_models.AccountRole.WORKER, *, employee_code=None, email=None):
        counter["n"] += 1
        user = account_models.User(
            employee_code=employee_code,
            email=email or f"user{counter['n']}@example.com",
            first_name="Test",
            last_name=f"User{counter['n']}",
            role=role,
            is_active=True,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def set_personnel_fields(db_session):
    """
    Create (or update) the personnel row matching a user and set training
    fields by column name, e.g. `_CMMRequired=True`.
    """

    def _set(user, **fields):
        record = (
            db_session.query(personnel_models.PersonnelRecord)
            .filter(personnel_models.PersonnelRecord.email == user.email)
            .first()
        )
        if record is None:
            record = personnel_models.PersonnelRecord(
                employee_code=user.employee_code,
                email=user.email,
                first_name=user.first_name,
                last_name=user.last_name,
            )
            db_session.add(record)
            db_session.flush()
        if fields:
            id_column = sa.column("id", sa.Integer)
            columns = [_typed_column(name) for name in fields]
            table = sa.table(personnel_models.PERSONNEL_TABLE, id_column, *columns)
            db_session.execute(sa.update(table).where(id_column == record.id).values(fields))
        db_session.commit()
        return record.id

    return _set


@pytest.fixture()
def make_training(db_session):
    def _make(code: str = "CMM", *, validity_months: int = 12):
        training = training_models.Training(
            code=code,
            name=f"Training {code}",
            validity_months=validity_months,
        )
        db_session.add(training)
        db_session.commit()
        db_session.refresh(training)
        return training

    return _make


@pytest.fixture()
def make_test(db_session):
    """
    Build a test with questions given as (type, correct_answer, points) tuples.
    """

    def _make(
        training,
        questions=((training_models.QuestionType.SINGLE, "A", 1),),
        *,
        passing_score: int = 70,
        is_active: bool = True,
        created_at=None,
    ):
        test = training_models.TrainingTest(
            training_id=training.id,
            title=f"{training.code} test",
            passing_score=passing_score,
            is_active=is_active,
            created_at=created_at or datetime.utcnow(),
        )
        db_session.add(test)
        db_session.flush()
        for index, (qtype, correct, points) in enumerate(questions, start=1):
            db_session.add(
                training_models.TestQuestion(
                    test_id=test.id,
                    order=index,
                    type=qtype,
                    prompt=f"Question {index}",
                    options=["A", "B", "C", "D"],
                    correct_answer=correct,
                    points=points,
                )
            )
        db_session.commit()
        db_session.refresh(test)
        return test

    return _make


@pytest.fixture()
def make_attempt(db_session):
    """Insert a completed (or open) attempt directly, bypassing the ledger."""

    def _make(user, test, *, passed=None, created_at, deleted=False, completed=True):
        attempt = training_models.TestAttempt(
            user_id=user.id,
            test_id=test.id,
            started_at=created_at,
            created_at=created_at,
            completed_at=created_at if completed else None,
            score=(100 if passed else 0) if completed else None,
            passed=passed if completed else None,
            answers={},
            deleted_at=created_at if deleted else None,
        )
        db_session.add(attempt)
        db_session.commit()
        db_session.refresh(attempt)
        return attempt

    return _make


@pytest.fixture()
def question_ids(db_session):
    def _ids(test):
        return [
            row[0]
            for row in db_session.query(training_models.TestQuestion.id)
            .filter(training_models.TestQuestion.test_id == test.id)
            .order_by(training_models.TestQuestion.order.asc())
            .all()
        ]

    return _ids
