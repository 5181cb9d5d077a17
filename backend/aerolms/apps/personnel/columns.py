# backend/aerolms/apps/personnel/columns.py
"""
Column registry for the personnel table.

The personnel system encodes trainings as column triplets named by
convention. This module is the only place that knows the convention: it
reads column metadata and hands back typed `TrainingColumnSet` entries, so
nothing else does string matching on column names.

The request path only needs the complete codes, and asks for them many
times per request (eligibility polling, requirement lists). They are
cached in `Session.info`, so the table is inspected once per session;
catalog discovery always re-inspects and refreshes that cache.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .models import PERSONNEL_TABLE

logger = logging.getLogger(__name__)

TRAINING_CODE_PATTERN = re.compile(r"^[A-Za-z0-9]{2,50}$")

FIELD_REQUIRED = "required"
FIELD_LAST_COMPLETED = "last_completed"
FIELD_NEXT_DUE = "next_due"

_DEFAULT_SUFFIXES: Dict[str, str] = {
    FIELD_REQUIRED: "Required",
    FIELD_LAST_COMPLETED: "LastCompleted",
    FIELD_NEXT_DUE: "NextDue",
}


class InvalidTrainingCode(ValueError):
    """Raised when a training code is not a safe column-name fragment."""


def validate_training_code(code: str) -> str:
    if not code or not TRAINING_CODE_PATTERN.match(code):
        raise InvalidTrainingCode(
            f"Invalid training code {code!r}: expected 2-50 alphanumeric characters."
        )
    return code


@dataclass(frozen=True)
class ColumnConvention:
    table_name: str = PERSONNEL_TABLE
    prefix: str = "_"
    reserved_prefix: str = "__"
    required_suffix: str = _DEFAULT_SUFFIXES[FIELD_REQUIRED]
    last_completed_suffix: str = _DEFAULT_SUFFIXES[FIELD_LAST_COMPLETED]
    next_due_suffix: str = _DEFAULT_SUFFIXES[FIELD_NEXT_DUE]

    def _suffixes(self) -> Tuple[Tuple[str, str], ...]:
        return (
            (FIELD_REQUIRED, self.required_suffix),
            (FIELD_LAST_COMPLETED, self.last_completed_suffix),
            (FIELD_NEXT_DUE, self.next_due_suffix),
        )

    def column_name(self, code: str, field: str) -> str:
        suffix = dict(self._suffixes())[field]
        return f"{self.prefix}{validate_training_code(code)}{suffix}"

    def parse(self, column: str) -> Optional[Tuple[str, str]]:
        """
        Split a column name into (code, field); None when the column is not a
        training column.
        """
        if self.reserved_prefix and column.startswith(self.reserved_prefix):
            return None
        if not column.startswith(self.prefix):
            return None
        body = column[len(self.prefix):]
        for field, suffix in self._suffixes():
            if body.endswith(suffix) and len(body) > len(suffix):
                return body[: -len(suffix)], field
        return None


def load_convention() -> ColumnConvention:
    return ColumnConvention(
        table_name=PERSONNEL_TABLE,
        prefix=os.getenv("TRAINING_COLUMN_PREFIX", "_"),
        reserved_prefix=os.getenv("TRAINING_COLUMN_RESERVED_PREFIX", "__"),
    )


@dataclass
class TrainingColumnSet:
    code: str
    has_required: bool = False
    has_last_completed: bool = False
    has_next_due: bool = False

    @property
    def is_complete(self) -> bool:
        return self.has_required and self.has_last_completed and self.has_next_due

    def missing_fields(self) -> List[str]:
        missing = []
        if not self.has_required:
            missing.append(FIELD_REQUIRED)
        if not self.has_last_completed:
            missing.append(FIELD_LAST_COMPLETED)
        if not self.has_next_due:
            missing.append(FIELD_NEXT_DUE)
        return missing


def list_personnel_columns(db: Session, convention: ColumnConvention) -> List[str]:
    # Inspect through the session's connection so DDL applied in the current
    # transaction is visible.
    inspector = sa.inspect(db.connection())
    return [col["name"] for col in inspector.get_columns(convention.table_name)]


def discover_training_columns(
    db: Session,
    convention: Optional[ColumnConvention] = None,
) -> List[TrainingColumnSet]:
    """
    Return every training code found in the personnel table, complete or not,
    ordered by code.
    """
    convention = convention or load_convention()
    sets: Dict[str, TrainingColumnSet] = {}

    for column in list_personnel_columns(db, convention):
        parsed = convention.parse(column)
        if parsed is None:
            continue
        code, field = parsed
        if not TRAINING_CODE_PATTERN.match(code):
            logger.warning(
                "Ignoring personnel column with unsafe training code",
                extra={"column": column},
            )
            continue
        entry = sets.setdefault(code, TrainingColumnSet(code=code))
        if field == FIELD_REQUIRED:
            entry.has_required = True
        elif field == FIELD_LAST_COMPLETED:
            entry.has_last_completed = True
        else:
            entry.has_next_due = True

    found = [sets[code] for code in sorted(sets)]
    _code_cache(db)[convention] = [s.code for s in found if s.is_complete]
    return found


_CACHE_KEY = "aerolms.personnel.complete_training_codes"


def _code_cache(db: Session) -> Dict[ColumnConvention, List[str]]:
    return db.info.setdefault(_CACHE_KEY, {})


def forget_training_columns(db: Session) -> None:
    """Drop the cached codes, e.g. after DDL on the personnel table."""
    db.info.pop(_CACHE_KEY, None)


def complete_training_codes(
    db: Session,
    convention: Optional[ColumnConvention] = None,
) -> List[str]:
    convention = convention or load_convention()
    cached = _code_cache(db).get(convention)
    if cached is None:
        discover_training_columns(db, convention)
        cached = _code_cache(db)[convention]
    return list(cached)
