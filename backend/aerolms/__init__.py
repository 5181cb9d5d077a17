# backend/aerolms/__init__.py
"""
Import ORM models from each app so that Alembic and
Base.metadata.create_all() see all tables.

The model classes live in aerolms/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models          # users + roles
from .apps.personnel import models as personnel_models        # wide personnel table (fixed columns)
from .apps.training import models as training_models          # catalog, tests, attempts, certificates

__all__ = [
    "accounts_models",
    "personnel_models",
    "training_models",
]
