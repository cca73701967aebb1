"""ORM models for the tenancy kernel."""

from tenancy_kernel.models.account import Account, AccountType, NormalBalance
from tenancy_kernel.models.ledger import (
    EntrySource,
    EntryStatus,
    LedgerEntry,
    LedgerLine,
    LineCategory,
)
from tenancy_kernel.models.student_lock import StudentLock

__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "EntrySource",
    "EntryStatus",
    "LedgerEntry",
    "LedgerLine",
    "LineCategory",
    "StudentLock",
]
