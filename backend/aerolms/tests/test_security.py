from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException

from aerolms import security
from aerolms.apps.accounts import models as account_models


def _user(db_session, role=account_models.AccountRole.WORKER, *, is_active=True):
    user = account_models.User(first_name="Sam", last_name="Crew", role=role, is_active=is_active)
    db_session.add(user)
    db_session.commit()
    return user


def test_token_round_trip_resolves_user(db_session):
    user = _user(db_session)
    token = security.create_access_token(data={"sub": user.id})

    assert security.get_current_user(token=token, db=db_session).id == user.id


def test_expired_or_garbage_tokens_are_rejected(db_session):
    user = _user(db_session)
    expired = security.create_access_token(data={"sub": user.id}, expires_delta=timedelta(minutes=-5))

    for token in (expired, "not-a-jwt"):
        with pytest.raises(HTTPException) as excinfo:
            security.get_current_user(token=token, db=db_session)
        assert excinfo.value.status_code == 401


def test_token_for_unknown_user_is_rejected(db_session):
    token = security.create_access_token(data={"sub": "USR-GONE"})

    with pytest.raises(HTTPException):
        security.get_current_user(token=token, db=db_session)


def test_inactive_user_is_rejected(db_session):
    user = _user(db_session, is_active=False)

    with pytest.raises(HTTPException) as excinfo:
        security.get_current_active_user(current_user=user)
    assert excinfo.value.status_code == 400


def test_require_roles_lets_admin_through(db_session):
    trainer_only = security.require_roles(account_models.AccountRole.TRAINER)
    admin = _user(db_session, account_models.AccountRole.ADMIN)
    trainer = _user(db_session, account_models.AccountRole.TRAINER)
    worker = _user(db_session)

    assert trainer_only(current_user=admin) is admin
    assert trainer_only(current_user=trainer) is trainer
    with pytest.raises(HTTPException) as excinfo:
        trainer_only(current_user=worker)
    assert excinfo.value.status_code == 403


def test_require_roles_rejects_unknown_role_names():
    with pytest.raises(ValueError):
        security.require_roles("PILOT")
