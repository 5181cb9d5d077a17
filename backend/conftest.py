from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["TRAINING_SYNC_ON_STARTUP"] = "0"

from aerolms.database import Base  # noqa: E402
from aerolms.apps.accounts import models as account_models  # noqa: E402
from aerolms.apps.personnel import columns as personnel_columns  # noqa: E402
from aerolms.apps.personnel import models as personnel_models  # noqa: E402
from aerolms.apps.training import models as training_models  # noqa: E402

_COLUMN_TYPES = {
    "Required": "BOOLEAN",
    "LastCompleted": "DATE",
    "NextDue": "DATE",
}


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(
        bind=engine,
        tables=[
            account_models.User.__table__,
            personnel_models.PersonnelRecord.__table__,
            training_models.Training.__table__,
            training_models.TrainingAssignment.__table__,
            training_models.TrainingTest.__table__,
            training_models.TestQuestion.__table__,
            training_models.TestAttempt.__table__,
            training_models.Certificate.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def add_personnel_columns(db_session):
    """
    Add training columns to the personnel table the way a DBA would.

        add_personnel_columns("CMM")                       # full set
        add_personnel_columns("HF", suffixes=["Required"])  # partial set
    """

    def _add(code: str, suffixes=("Required", "LastCompleted", "NextDue"), prefix: str = "_"):
        for suffix in suffixes:
            column = f"{prefix}{code}{suffix}"
            db_session.execute(
                text(
                    f'ALTER TABLE {personnel_models.PERSONNEL_TABLE} ADD COLUMN "{column}" {_COLUMN_TYPES[suffix]}'
                )
            )
        db_session.commit()
        personnel_columns.forget_training_columns(db_session)

    return _add
