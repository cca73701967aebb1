"""
Module: tenancy_kernel.models.account
Responsibility: ORM persistence for the chart of accounts, the target of
    every ledger line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Account.code is unique.  Per-student receivables are
      ``1100-{studentId}`` children of the ``1100`` control account.
    - Only active accounts accept new postings (checked by LedgerRepository).
"""

from enum import Enum

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tenancy_kernel.db.base import TrackedBase


class AccountType(str, Enum):
    """Financial statement classification of an account."""

    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    INCOME = "Income"
    EXPENSE = "Expense"

    @property
    def normal_balance(self) -> "NormalBalance":
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class Account(TrackedBase):
    """
    Chart of accounts entry.

    Guarantees:
        - code is unique and non-null.
        - normal_balance agrees with account_type.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_parent", "parent_code"),
    )

    code: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[str] = mapped_column(String(20), nullable=False)

    normal_balance: Mapped[str] = mapped_column(String(10), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Control account this account rolls up into (e.g. 1100 for 1100-{sid})
    parent_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def type(self) -> AccountType:
        return AccountType(self.account_type)

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT.value
