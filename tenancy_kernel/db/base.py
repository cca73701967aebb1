"""
Module: tenancy_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
Architecture position: Kernel > DB.  Lowest-level import target in the kernel;
    MUST NOT import from models/, services/, selectors/ or outer layers.

Invariants enforced:
    - UUID primary keys on every table (uuid4, stored as String(36) so the
      same schema runs on PostgreSQL and SQLite).
    - Decimal maps to Numeric(18, 2).  Amounts are cents-exact; never float.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character string form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all models.

    Guarantees:
        - id is a uuid4 UUID.
        - Decimal columns are Numeric(18, 2); datetimes are timezone-aware.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: DateTime(timezone=True),
        date: Date,
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """Abstract base adding created_at / updated_at audit timestamps.

    updated_at is audit metadata and may change even on posted rows
    (see db/immutability.py).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


UUID = PyUUID
