# backend/aerolms/apps/personnel/services.py
"""
Requirement reader/writer for the personnel table.

All dynamically-named column access happens here. Callers pass training
codes; column identifiers are derived through `ColumnConvention` from codes
that were validated against the table's own metadata, and every query is
built with SQLAlchemy constructs (no string-formatted SQL).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Session

from aerolms.apps.accounts import models as account_models
from aerolms.utils.dates import as_date

from . import models
from .columns import (
    FIELD_LAST_COMPLETED,
    FIELD_NEXT_DUE,
    FIELD_REQUIRED,
    ColumnConvention,
    InvalidTrainingCode,
    complete_training_codes,
    load_convention,
    validate_training_code,
)

_UNSET = object()


@dataclass(frozen=True)
class RequirementFields:
    required: bool
    last_completed_at: Optional[date]
    next_due_at: Optional[date]


def _normalise_email(value: str) -> str:
    return value.strip().lower()


def find_personnel_record_id(
    db: Session,
    user: account_models.User,
) -> Optional[int]:
    """
    Join a login account to the personnel table: employee code first, email
    as fallback.
    """
    if user.employee_code is not None:
        record_id = (
            db.query(models.PersonnelRecord.id)
            .filter(models.PersonnelRecord.employee_code == user.employee_code)
            .scalar()
        )
        if record_id is not None:
            return record_id

    if user.email:
        return (
            db.query(models.PersonnelRecord.id)
            .filter(sa.func.lower(models.PersonnelRecord.email) == _normalise_email(user.email))
            .order_by(models.PersonnelRecord.id.asc())
            .limit(1)
            .scalar()
        )
    return None


def _requirement_columns(convention: ColumnConvention, code: str):
    return (
        sa.column(convention.column_name(code, FIELD_REQUIRED), sa.Boolean),
        sa.column(convention.column_name(code, FIELD_LAST_COMPLETED), sa.Date),
        sa.column(convention.column_name(code, FIELD_NEXT_DUE), sa.Date),
    )


def read_requirement_fields(
    db: Session,
    *,
    personnel_id: int,
    codes: Iterable[str],
    convention: Optional[ColumnConvention] = None,
) -> Dict[str, RequirementFields]:
    """
    Project the requirement triplets for `codes` out of one personnel row in
    a single query. Codes are expected to be complete column sets.
    """
    convention = convention or load_convention()
    codes = list(codes)
    if not codes:
        return {}

    per_code = {code: _requirement_columns(convention, code) for code in codes}
    id_column = sa.column("id", sa.Integer)
    all_columns = [col for cols in per_code.values() for col in cols]
    table = sa.table(convention.table_name, id_column, *all_columns)

    row = db.execute(
        sa.select(*all_columns).select_from(table).where(id_column == personnel_id)
    ).first()
    if row is None:
        return {}

    mapping = row._mapping
    result: Dict[str, RequirementFields] = {}
    for code, (required_col, last_col, next_col) in per_code.items():
        result[code] = RequirementFields(
            required=bool(mapping[required_col.name]) if mapping[required_col.name] is not None else False,
            last_completed_at=as_date(mapping[last_col.name]),
            next_due_at=as_date(mapping[next_col.name]),
        )
    return result


def _ensure_known_code(db: Session, code: str, convention: ColumnConvention) -> None:
    validate_training_code(code)
    if code not in complete_training_codes(db, convention):
        raise InvalidTrainingCode(f"Training code {code!r} has no complete column set.")


def write_requirement_fields(
    db: Session,
    *,
    personnel_id: int,
    code: str,
    required=_UNSET,
    last_completed_at=_UNSET,
    convention: Optional[ColumnConvention] = None,
) -> None:
    """
    Update the writable requirement fields of one personnel row.

    The next-due column is derived by the source system from the last
    completion date and is never written from here.
    """
    convention = convention or load_convention()
    _ensure_known_code(db, code, convention)

    required_col, last_col, _ = _requirement_columns(convention, code)
    id_column = sa.column("id", sa.Integer)
    table = sa.table(convention.table_name, id_column, required_col, last_col)

    values = {}
    if required is not _UNSET:
        values[required_col.name] = bool(required)
    if last_completed_at is not _UNSET:
        values[last_col.name] = last_completed_at
    if not values:
        return

    db.execute(sa.update(table).where(id_column == personnel_id).values(values))
