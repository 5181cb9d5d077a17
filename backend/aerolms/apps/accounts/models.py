# backend/aerolms/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
)

from aerolms.database import Base
from aerolms.utils.identifiers import prefixed_id


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class AccountRole(str, enum.Enum):
    """Closed set of portal roles.

    ADMIN and TRAINER have unrestricted access to tests; WORKER is subject to
    the compliance policy (attempt limit, proctored first test, renewal window).
    """

    ADMIN = "ADMIN"
    TRAINER = "TRAINER"
    WORKER = "WORKER"


UNRESTRICTED_ROLES = frozenset({AccountRole.ADMIN, AccountRole.TRAINER})


def is_admin(role) -> bool:
    return _coerce_role(role) == AccountRole.ADMIN


def is_trainer(role) -> bool:
    return _coerce_role(role) == AccountRole.TRAINER


def has_unrestricted_access(role) -> bool:
    return _coerce_role(role) in UNRESTRICTED_ROLES


def _coerce_role(role):
    if isinstance(role, AccountRole) or role is None:
        return role
    try:
        return AccountRole(str(role).upper())
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


def _user_id() -> str:
    return prefixed_id("USR")


class User(Base):
    """
    Login account.

    The personnel system of record is a separate wide table; the join keys are
    `employee_code` (preferred) and `email` (fallback).
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
    )

    id = Column(
        String(36),
        primary_key=True,
        default=_user_id,
    )

    employee_code = Column(
        Integer,
        nullable=True,
        unique=True,
        doc="Numeric HR employee code, joins to personnel_records.employee_code.",
    )
    email = Column(String(255), nullable=True, index=True)

    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)

    role = Column(
        Enum(AccountRole, name="account_role_enum"),
        nullable=False,
        default=AccountRole.WORKER,
        index=True,
    )

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self) -> str:
        return f"<User {self.id} role={self.role}>"
