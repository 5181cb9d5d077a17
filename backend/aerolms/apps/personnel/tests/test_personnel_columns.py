from __future__ import annotations

from datetime import date

import pytest
import sqlalchemy as sa

from aerolms.apps.accounts import models as account_models
from aerolms.apps.personnel import columns
from aerolms.apps.personnel import models as personnel_models
from aerolms.apps.personnel import services as personnel_services


def _user(db_session, *, employee_code=None, email=None):
    user = account_models.User(
        employee_code=employee_code,
        email=email,
        first_name="Ada",
        last_name="Pilot",
    )
    db_session.add(user)
    db_session.commit()
    return user


def _personnel(db_session, *, employee_code=None, email=None):
    record = personnel_models.PersonnelRecord(employee_code=employee_code, email=email)
    db_session.add(record)
    db_session.commit()
    return record


# ---------------------------------------------------------------------------
# NAMING CONVENTION
# ---------------------------------------------------------------------------


def test_convention_parses_training_columns():
    convention = columns.ColumnConvention()

    assert convention.parse("_CMMRequired") == ("CMM", columns.FIELD_REQUIRED)
    assert convention.parse("_CMMLastCompleted") == ("CMM", columns.FIELD_LAST_COMPLETED)
    assert convention.parse("_CMMNextDue") == ("CMM", columns.FIELD_NEXT_DUE)
    assert convention.parse("__VendorRequired") is None
    assert convention.parse("email") is None
    assert convention.parse("_Required") is None


def test_column_name_rejects_unsafe_codes():
    convention = columns.ColumnConvention()

    assert convention.column_name("HF2", columns.FIELD_NEXT_DUE) == "_HF2NextDue"
    with pytest.raises(columns.InvalidTrainingCode):
        convention.column_name('x"; DROP TABLE users; --', columns.FIELD_REQUIRED)
    with pytest.raises(columns.InvalidTrainingCode):
        columns.validate_training_code("A")
    with pytest.raises(columns.InvalidTrainingCode):
        columns.validate_training_code("A" * 51)


def test_convention_reads_prefixes_from_environment(monkeypatch):
    monkeypatch.setenv("TRAINING_COLUMN_PREFIX", "t_")
    monkeypatch.setenv("TRAINING_COLUMN_RESERVED_PREFIX", "sys_")

    convention = columns.load_convention()

    assert convention.parse("t_CMMRequired") == ("CMM", columns.FIELD_REQUIRED)
    assert convention.parse("_CMMRequired") is None


# ---------------------------------------------------------------------------
# DISCOVERY
# ---------------------------------------------------------------------------


def test_discovery_reports_completeness_per_code(db_session, add_personnel_columns):
    add_personnel_columns("CMM")
    add_personnel_columns("HF", suffixes=["Required", "LastCompleted"])
    add_personnel_columns("Vendor", prefix="__")

    found = columns.discover_training_columns(db_session)

    assert [s.code for s in found] == ["CMM", "HF"]
    assert found[0].is_complete is True
    assert found[1].is_complete is False
    assert found[1].missing_fields() == [columns.FIELD_NEXT_DUE]
    assert columns.complete_training_codes(db_session) == ["CMM"]


def test_discovery_skips_codes_that_are_not_identifier_safe(db_session, add_personnel_columns):
    add_personnel_columns("CMM")
    db_session.execute(sa.text('ALTER TABLE personnel_records ADD COLUMN "_C-MRequired" BOOLEAN'))
    db_session.commit()

    assert [s.code for s in columns.discover_training_columns(db_session)] == ["CMM"]


def test_complete_codes_inspect_the_table_once_per_session(db_session, add_personnel_columns, monkeypatch):
    add_personnel_columns("CMM")
    calls = []
    real_list = columns.list_personnel_columns

    def _counting(db, convention):
        calls.append(convention.table_name)
        return real_list(db, convention)

    monkeypatch.setattr(columns, "list_personnel_columns", _counting)

    for _ in range(3):
        assert columns.complete_training_codes(db_session) == ["CMM"]

    assert len(calls) == 1


def test_discovery_refreshes_cached_codes(db_session, add_personnel_columns):
    add_personnel_columns("CMM")
    assert columns.complete_training_codes(db_session) == ["CMM"]

    db_session.execute(sa.text('ALTER TABLE personnel_records ADD COLUMN "_HFRequired" BOOLEAN'))
    db_session.execute(sa.text('ALTER TABLE personnel_records ADD COLUMN "_HFLastCompleted" DATE'))
    db_session.execute(sa.text('ALTER TABLE personnel_records ADD COLUMN "_HFNextDue" DATE'))
    db_session.commit()
    assert columns.complete_training_codes(db_session) == ["CMM"]

    columns.discover_training_columns(db_session)

    assert columns.complete_training_codes(db_session) == ["CMM", "HF"]


# ---------------------------------------------------------------------------
# IDENTITY JOIN & FIELD ACCESS
# ---------------------------------------------------------------------------


def test_employee_code_wins_over_email(db_session):
    by_email = _personnel(db_session, email="ada@example.com")
    by_code = _personnel(db_session, employee_code=77)
    user = _user(db_session, employee_code=77, email="ada@example.com")

    assert personnel_services.find_personnel_record_id(db_session, user) == by_code.id
    assert by_email.id != by_code.id


def test_email_match_is_case_insensitive(db_session):
    record = _personnel(db_session, email="Ada@Example.com")
    user = _user(db_session, email="ada@example.COM")

    assert personnel_services.find_personnel_record_id(db_session, user) == record.id


def test_unmatched_user_has_no_record(db_session):
    _personnel(db_session, employee_code=1, email="someone@example.com")
    user = _user(db_session, employee_code=2)

    assert personnel_services.find_personnel_record_id(db_session, user) is None


def test_read_and_write_requirement_fields(db_session, add_personnel_columns):
    add_personnel_columns("CMM")
    add_personnel_columns("HF")
    record = _personnel(db_session, employee_code=5)

    personnel_services.write_requirement_fields(
        db_session,
        personnel_id=record.id,
        code="CMM",
        required=True,
        last_completed_at=date(2024, 5, 1),
    )
    db_session.commit()

    fields = personnel_services.read_requirement_fields(
        db_session,
        personnel_id=record.id,
        codes=["CMM", "HF"],
    )

    assert fields["CMM"] == personnel_services.RequirementFields(
        required=True,
        last_completed_at=date(2024, 5, 1),
        next_due_at=None,
    )
    assert fields["HF"].required is False


def test_read_for_missing_row_is_empty(db_session, add_personnel_columns):
    add_personnel_columns("CMM")

    assert personnel_services.read_requirement_fields(db_session, personnel_id=999, codes=["CMM"]) == {}
