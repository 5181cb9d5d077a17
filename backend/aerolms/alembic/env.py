# backend/aerolms/alembic/env.py
"""
Alembic environment for AeroLMS.

The URL comes from DATABASE_WRITE_URL / DATABASE_URL; alembic.ini only
carries a `driver://` placeholder. The personnel table is shared with the
HR system, so autogenerate ignores columns it finds there that the
models do not declare (the per-training Required/LastCompleted/NextDue
columns).
"""

from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context

# backend/ on sys.path so `aerolms` imports when alembic runs from backend/
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url() -> str:
    url = (os.getenv("DATABASE_WRITE_URL") or os.getenv("DATABASE_URL") or "").strip()
    if not url:
        url = (config.get_main_option("sqlalchemy.url") or "").strip()
    if url.startswith("driver://"):
        url = ""
    if not url:
        raise RuntimeError("Set DATABASE_WRITE_URL or DATABASE_URL before running migrations.")
    return url


# aerolms.database reads the URL from env at import time.
os.environ.setdefault("DATABASE_URL", _database_url())

import aerolms  # noqa: E402,F401  registers every model on Base.metadata
from aerolms.apps.personnel.models import PERSONNEL_TABLE  # noqa: E402
from aerolms.database import Base, engine  # noqa: E402

target_metadata = Base.metadata


def _include_object(obj, name, type_, reflected, compare_to):
    if type_ == "column" and reflected and compare_to is None:
        return obj.table.name != PERSONNEL_TABLE
    return True


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        include_object=_include_object,
        **kwargs,
    )


if context.is_offline_mode():
    _configure(url=_database_url(), literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()
else:
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()
