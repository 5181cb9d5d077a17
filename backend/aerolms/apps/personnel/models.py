# backend/aerolms/apps/personnel/models.py

from __future__ import annotations

import os

from sqlalchemy import Column, Integer, String

from aerolms.database import Base

PERSONNEL_TABLE = os.getenv("PERSONNEL_TABLE", "personnel_records")


class PersonnelRecord(Base):
    """
    Wide personnel table owned by the HR system of record.

    Only the identity columns are mapped. Per-training columns
    (`_<Code>Required`, `_<Code>LastCompleted`, `_<Code>NextDue`) are added
    by database administrators and are reached exclusively through
    `personnel.columns` and `personnel.services`.
    """

    __tablename__ = PERSONNEL_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_code = Column(Integer, nullable=True, unique=True, index=True)
    email = Column(String(255), nullable=True, index=True)
    first_name = Column(String(128), nullable=True)
    last_name = Column(String(128), nullable=True)

    def __repr__(self) -> str:
        return f"<PersonnelRecord {self.id} code={self.employee_code}>"
