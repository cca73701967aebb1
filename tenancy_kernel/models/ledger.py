"""
Module: tenancy_kernel.models.ledger
Responsibility: ORM persistence for ledger entries and their lines -- the
    single source of financial truth.  Obligations, settlements, balances and
    statements are all derived from these rows; nothing else is stored.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - idempotency_key is UNIQUE (one accrual per student-month, one
      settlement slice per payment/month/category).
    - reversal_of_id is UNIQUE (an entry is reversed at most once).
    - Balance and line shape are checked by LedgerRepository before insert;
      is_balanced re-checks on the read side.
    - Posted entries and their lines are immutable (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate idempotency_key or reversal_of_id.
    - ImmutabilityViolationError on UPDATE/DELETE of a posted entry or line.

Audit relevance:
    entry_metadata keeps the camelCase document shape of the stored ledger
    (studentId, monthSettled, allocationType, ...) so exports stay
    interoperable, while student_id / month_key are lifted into indexed
    columns for querying.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenancy_kernel.db.base import Base, TrackedBase, UUIDString

BALANCE_TOLERANCE = Decimal("0.01")


class EntrySource(str, Enum):
    """Origin tag of a ledger entry."""

    RENTAL_ACCRUAL = "rental_accrual"
    PAYMENT = "payment"
    ADVANCE_PAYMENT = "advance_payment"
    RENTAL_ACCRUAL_REVERSAL = "rental_accrual_reversal"
    MANUAL = "manual"


class EntryStatus(str, Enum):
    """Lifecycle status of a ledger entry."""

    DRAFT = "draft"
    POSTED = "posted"


class LineCategory(str, Enum):
    """Obligation category a receivable line belongs to."""

    RENT = "rent"
    ADMIN = "admin"
    DEPOSIT = "deposit"


class LedgerEntry(TrackedBase):
    """
    One balanced accounting event.

    Guarantees:
        - total_debit == total_credit within BALANCE_TOLERANCE.
        - lines are ordered by line_seq.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_ledger_idempotency"),
        UniqueConstraint("reversal_of_id", name="uq_ledger_reversal_of"),
        Index("idx_ledger_entry_date", "entry_date"),
        Index("idx_ledger_source", "source"),
        Index("idx_ledger_student_month", "student_id", "month_key"),
        Index("idx_ledger_residence", "residence_id"),
        Index("idx_ledger_status", "status"),
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    source: Mapped[str] = mapped_column(String(40), nullable=False)

    # Originating business object (lease, payment, reversed entry, memo ref)
    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(
        String(10),
        default=EntryStatus.POSTED.value,
        nullable=False,
    )

    total_debit: Mapped[Decimal] = mapped_column(nullable=False)

    total_credit: Mapped[Decimal] = mapped_column(nullable=False)

    student_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    residence_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # YYYY-MM: accrual month for accruals/reversals, monthSettled for settlements
    month_key: Mapped[str | None] = mapped_column(String(7), nullable=True)

    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_entries.id"),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    entry_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    lines: Mapped[list["LedgerLine"]] = relationship(
        back_populates="entry",
        order_by="LedgerLine.line_seq",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.id} {self.source} {self.entry_date}>"

    @property
    def is_posted(self) -> bool:
        return self.status == EntryStatus.POSTED.value

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @property
    def is_balanced(self) -> bool:
        debits = sum((line.debit for line in self.lines), Decimal("0"))
        credits = sum((line.credit for line in self.lines), Decimal("0"))
        return abs(debits - credits) <= BALANCE_TOLERANCE


class LedgerLine(Base):
    """
    One side of a ledger entry.

    Exactly one of debit/credit is nonzero and neither is negative.
    account_name/account_type are copied from the chart at posting time.
    """

    __tablename__ = "ledger_lines"

    __table_args__ = (
        UniqueConstraint("entry_id", "line_seq", name="uq_ledger_line_seq"),
        Index("idx_ledger_line_account", "account_code"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_entries.id"),
        nullable=False,
    )

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    account_code: Mapped[str] = mapped_column(String(64), nullable=False)

    account_name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[str] = mapped_column(String(20), nullable=False)

    debit: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    credit: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    category: Mapped[str | None] = mapped_column(String(10), nullable=True)

    entry: Mapped["LedgerEntry"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<LedgerLine {self.account_code} Dr {self.debit} Cr {self.credit}>"

    @property
    def net_debit(self) -> Decimal:
        return self.debit - self.credit
