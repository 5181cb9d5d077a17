# backend/aerolms/apps/training/certificates.py
"""
Certificate issuer.

One certificate per passing attempt. Idempotency rests on the unique
`test_attempt_id` constraint: a losing concurrent writer re-reads and
returns the winner's row.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aerolms.utils.identifiers import generate_certificate_number
from aerolms.utils.dates import add_months

from . import models
from .errors import IntegrityFault
from .policy import certificate_number_max_retries

logger = logging.getLogger(__name__)


def _existing_certificate(db: Session, attempt_id: str) -> Optional[models.Certificate]:
    return (
        db.query(models.Certificate)
        .filter(models.Certificate.test_attempt_id == attempt_id)
        .first()
    )


def get_certificate_for_attempt(db: Session, attempt_id: str) -> Optional[models.Certificate]:
    cert = _existing_certificate(db, attempt_id)
    if cert is None or cert.deleted_at is not None:
        return None
    return cert


def issue_if_passed(
    db: Session,
    attempt: models.TestAttempt,
    *,
    now: Optional[datetime] = None,
) -> Optional[models.Certificate]:
    """
    Issue (or return the already issued) certificate for a passed attempt.

    Returns None for attempts that are open, failed or soft-deleted. Flushes
    but does not commit; the caller owns the transaction.
    """
    if attempt.deleted_at is not None or attempt.completed_at is None or not attempt.passed:
        return None

    existing = _existing_certificate(db, attempt.id)
    if existing is not None:
        return existing if existing.deleted_at is None else None

    now = now or datetime.utcnow()
    training = attempt.test.training
    valid_until = add_months(now.date(), int(training.validity_months or 0))

    retries = certificate_number_max_retries()
    for try_no in range(1, retries + 1):
        cert = models.Certificate(
            certificate_number=generate_certificate_number(now.year),
            user_id=attempt.user_id,
            training_id=training.id,
            test_attempt_id=attempt.id,
            issued_at=now,
            valid_until=valid_until,
        )
        try:
            with db.begin_nested():
                db.add(cert)
                db.flush()
        except IntegrityError:
            winner = _existing_certificate(db, attempt.id)
            if winner is not None:
                logger.info(
                    "Certificate already issued by a concurrent request",
                    extra={"attempt_id": attempt.id, "certificate_number": winner.certificate_number},
                )
                return winner if winner.deleted_at is None else None
            logger.info(
                "Certificate number collision; retrying",
                extra={"attempt_id": attempt.id, "try": try_no},
            )
            continue

        logger.info(
            "Issued certificate",
            extra={
                "attempt_id": attempt.id,
                "user_id": attempt.user_id,
                "training_id": training.id,
                "certificate_number": cert.certificate_number,
                "valid_until": valid_until.isoformat(),
            },
        )
        return cert

    raise IntegrityFault(
        "Could not mint a unique certificate number.",
        attempt_id=attempt.id,
        retries=retries,
    )
