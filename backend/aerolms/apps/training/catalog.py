# backend/aerolms/apps/training/catalog.py
"""
Training catalog synchronizer.

Keeps one `Training` row per complete personnel column set. Safe to run
repeatedly and concurrently: rows are keyed by the unique `code`, and a
losing concurrent insert is treated as "already created".
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aerolms.apps.personnel.columns import ColumnConvention, discover_training_columns

from . import models, schemas
from .policy import default_validity_months

logger = logging.getLogger(__name__)


def _create_training(db: Session, code: str) -> bool:
    training = models.Training(
        code=code,
        name=f"Training {code}",
        description=f"Created automatically for personnel columns of {code}.",
        validity_months=default_validity_months(),
    )
    try:
        with db.begin_nested():
            db.add(training)
            db.flush()
    except IntegrityError:
        logger.info("Training created concurrently; keeping existing row", extra={"code": code})
        return False
    logger.info("Created training from personnel columns", extra={"code": code})
    return True


def synchronize_catalog(
    db: Session,
    *,
    convention: Optional[ColumnConvention] = None,
    now: Optional[datetime] = None,
) -> schemas.CatalogSyncResult:
    """
    Bring the catalog in line with the personnel table's column sets.

    Existing rows keep their customised name/description. Codes with a
    partial column set are reported and never get a catalog row.
    """
    now = now or datetime.utcnow()
    result = schemas.CatalogSyncResult()

    column_sets = discover_training_columns(db, convention)
    if not column_sets:
        logger.warning("No training columns detected in personnel table; catalog left untouched")
        return result

    complete = [s.code for s in column_sets if s.is_complete]
    for entry in column_sets:
        if not entry.is_complete:
            result.marked_incomplete.append(entry.code)
            logger.warning(
                "Incomplete training column set",
                extra={"code": entry.code, "missing": entry.missing_fields()},
            )

    existing: Dict[str, models.Training] = {
        t.code: t for t in db.query(models.Training).all()
    }

    for code in complete:
        training = existing.get(code)
        if training is None:
            if _create_training(db, code):
                result.created.append(code)
            continue
        if training.deleted_at is not None and training.retired_by_sync:
            training.deleted_at = None
            training.retired_by_sync = False
            result.updated.append(code)
            logger.info("Restored training whose columns reappeared", extra={"code": code})

    complete_codes = set(complete)
    for code, training in sorted(existing.items()):
        if code in complete_codes or training.deleted_at is not None:
            continue
        training.deleted_at = now
        training.retired_by_sync = True
        result.retired.append(code)
        logger.info("Retired training whose columns are gone or incomplete", extra={"code": code})

    db.commit()

    logger.info(
        "Training catalog sync completed",
        extra={
            "detected_count": len(column_sets),
            "created_count": len(result.created),
            "updated_count": len(result.updated),
            "incomplete_count": len(result.marked_incomplete),
            "retired_count": len(result.retired),
        },
    )
    return result
