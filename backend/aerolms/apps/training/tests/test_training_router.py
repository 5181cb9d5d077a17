from __future__ import annotations

from datetime import date, datetime

import pytest
from fastapi import HTTPException

from aerolms.apps.accounts import models as account_models
from aerolms.apps.training import models as training_models
from aerolms.apps.training import router as training_router
from aerolms.apps.training import schemas as training_schemas

QT = training_models.QuestionType


@pytest.fixture()
def setup(db_session, add_personnel_columns, make_training, make_test, make_user, set_personnel_fields):
    add_personnel_columns("CMM")
    training = make_training("CMM")
    test = make_test(training, questions=[(QT.SINGLE, "A", 1), (QT.MULTIPLE, ["A", "B"], 1)])
    worker = make_user(employee_code=10)
    set_personnel_fields(
        worker,
        _CMMRequired=True,
        _CMMLastCompleted=date(2020, 1, 1),
        _CMMNextDue=date(2021, 1, 1),
    )
    admin = make_user(account_models.AccountRole.ADMIN)
    return training, test, worker, admin


def test_worker_starts_submits_and_gets_certificate(db_session, setup, question_ids):
    training, test, worker, _ = setup

    started = training_router.start_attempt(training.id, db=db_session, current_user=worker)
    assert started.resumed is False
    assert [q.id for q in started.questions] == question_ids(test)
    assert all(not hasattr(q, "correct_answer") for q in started.questions)

    q1, q2 = question_ids(test)
    result = training_router.submit_attempt(
        started.attempt.id,
        training_schemas.AttemptSubmit(answers={q1: "A", q2: ["B", "A"]}),
        db=db_session,
        current_user=worker,
    )
    assert result.score == 100
    assert result.certificate is not None

    cert = training_router.get_attempt_certificate(started.attempt.id, db=db_session, current_user=worker)
    assert cert.id == result.certificate.id


def test_ineligible_start_returns_403_with_verdict(db_session, setup, make_user, set_personnel_fields):
    training, _, _, _ = setup
    newcomer = make_user(employee_code=11)
    set_personnel_fields(newcomer, _CMMRequired=True)

    with pytest.raises(HTTPException) as excinfo:
        training_router.start_attempt(training.id, db=db_session, current_user=newcomer)

    assert excinfo.value.status_code == 403
    assert excinfo.value.detail["reason"] == "first_test"
    assert excinfo.value.detail["can_start"] is False


def test_engine_errors_map_to_http_status(db_session, setup, make_user):
    training, _, worker, _ = setup
    other = make_user()
    started = training_router.start_attempt(training.id, db=db_session, current_user=worker)

    with pytest.raises(HTTPException) as forbidden:
        training_router.abandon_attempt(started.attempt.id, db=db_session, current_user=other)
    assert forbidden.value.status_code == 403

    training_router.abandon_attempt(started.attempt.id, db=db_session, current_user=worker)
    with pytest.raises(HTTPException) as conflict:
        training_router.abandon_attempt(started.attempt.id, db=db_session, current_user=worker)
    assert conflict.value.status_code == 409
    assert conflict.value.detail["code"] == "already_completed"

    with pytest.raises(HTTPException) as missing:
        training_router.get_eligibility("TRN-MISSING", db=db_session, current_user=worker)
    assert missing.value.status_code == 404


def test_invalid_answers_are_400(db_session, setup):
    training, _, worker, _ = setup
    started = training_router.start_attempt(training.id, db=db_session, current_user=worker)

    with pytest.raises(HTTPException) as excinfo:
        training_router.submit_attempt(
            started.attempt.id,
            training_schemas.AttemptSubmit(answers={"Q-NOPE": "A"}),
            db=db_session,
            current_user=worker,
        )
    assert excinfo.value.status_code == 400


def test_unscorable_submission_is_422(db_session, setup, question_ids):
    training, test, worker, _ = setup
    started = training_router.start_attempt(training.id, db=db_session, current_user=worker)
    for qid in question_ids(test):
        db_session.get(training_models.TestQuestion, qid).deleted_at = datetime(2025, 1, 1)
    db_session.commit()

    with pytest.raises(HTTPException) as excinfo:
        training_router.submit_attempt(
            started.attempt.id,
            training_schemas.AttemptSubmit(answers={}),
            db=db_session,
            current_user=worker,
        )
    assert excinfo.value.status_code == 422
    assert "administrator" in excinfo.value.detail["message"]


def test_my_requirements_are_filtered_for_workers(db_session, setup, make_user):
    training, _, worker, _ = setup

    assert training_router.get_my_requirements(db=db_session, current_user=worker) == {}

    trainer = make_user(account_models.AccountRole.TRAINER)
    db_session.add(training_models.TrainingAssignment(trainer_id=trainer.id, training_id=training.id))
    db_session.commit()

    visible = training_router.get_my_requirements(db=db_session, current_user=worker)
    assert list(visible) == ["CMM"]


def test_requirement_lookup_is_limited_to_self_or_staff(db_session, setup, make_user):
    _, _, worker, admin = setup
    stranger = make_user()

    snapshot = training_router.get_user_requirement(worker.id, "CMM", db=db_session, current_user=worker)
    assert snapshot.required is True
    assert training_router.get_user_requirement(worker.id, "CMM", db=db_session, current_user=admin) == snapshot

    with pytest.raises(HTTPException) as excinfo:
        training_router.get_user_requirement(worker.id, "CMM", db=db_session, current_user=stranger)
    assert excinfo.value.status_code == 403


def test_admin_requirement_edit_only_touches_sent_fields(db_session, setup):
    _, _, worker, admin = setup

    snapshot = training_router.update_user_requirement(
        worker.id,
        "CMM",
        training_schemas.RequirementUpdate(required=False),
        db=db_session,
        current_user=admin,
    )

    assert snapshot.required is False
    assert snapshot.last_completed_at == date(2020, 1, 1)
    assert snapshot.next_due_at == date(2021, 1, 1)


def test_sync_and_integrity_endpoints(db_session, setup, add_personnel_columns):
    _, _, _, admin = setup
    add_personnel_columns("HF")

    result = training_router.sync_catalog(db=db_session, current_user=admin)
    assert result.created == ["HF"]
    assert [t.code for t in training_router.list_trainings(db=db_session, current_user=admin)] == ["CMM", "HF"]

    report = training_router.get_integrity_report(db=db_session, current_user=admin)
    assert report.is_clean


def test_manual_attempt_endpoint(db_session, setup):
    _, test, worker, admin = setup

    result = training_router.record_manual_attempt(
        training_schemas.ManualAttemptCreate(user_id=worker.id, test_id=test.id, score=85, passed=True),
        db=db_session,
        current_user=admin,
    )

    assert result.passed is True
    assert result.certificate is not None
