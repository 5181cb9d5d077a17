from __future__ import annotations

import pytest

from aerolms.apps.accounts import models as account_models

Role = account_models.AccountRole


@pytest.mark.parametrize(
    "role,unrestricted",
    [(Role.ADMIN, True), (Role.TRAINER, True), (Role.WORKER, False), ("trainer", True), ("worker", False)],
)
def test_unrestricted_access(role, unrestricted):
    assert account_models.has_unrestricted_access(role) is unrestricted


def test_unknown_role_has_no_access():
    assert account_models.has_unrestricted_access("PILOT") is False
    assert account_models.is_admin(None) is False


def test_full_name_joins_parts():
    user = account_models.User(first_name="Ada", last_name="Pilot")
    assert user.full_name == "Ada Pilot"
