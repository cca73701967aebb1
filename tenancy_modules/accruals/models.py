"""
Accrual result models (``tenancy_modules.accruals.models``).

Frozen value objects returned by ``AccrualService``.  ZERO I/O.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from tenancy_kernel.domain.money import ZERO

RESIDENCE_NOT_FOUND = "RESIDENCE_NOT_FOUND"
RENT_AMOUNT_MISSING = "RENT_AMOUNT_MISSING"


@dataclass(frozen=True)
class AccrualItemError:
    """Why one student was not accrued in a batch."""

    student_id: str
    code: str
    message: str


@dataclass(frozen=True)
class AccrualOutcome:
    """
    Result of accruing one student for one month.

    created is False when the month was already accrued (entry_id then
    points at the existing entry) or when nothing was due.
    """

    student_id: str
    month_key: str
    created: bool
    entry_id: str | None = None
    rent: Decimal = ZERO
    admin_fee: Decimal = ZERO
    deposit: Decimal = ZERO
    prorated: bool = False
    credit_applied: Decimal = ZERO
    reason: str | None = None

    @property
    def total(self) -> Decimal:
        return self.rent + self.admin_fee + self.deposit


@dataclass(frozen=True)
class AccrualRunResult:
    """Outcome of a monthly accrual batch."""

    month_key: str
    batch_id: str
    created: int = 0
    skipped: int = 0
    errors: tuple[AccrualItemError, ...] = ()
    entry_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def failed(self) -> int:
        """Errors other than the expected skips for missing reference data."""
        return sum(
            1 for e in self.errors if e.code not in (RESIDENCE_NOT_FOUND, RENT_AMOUNT_MISSING)
        )


@dataclass(frozen=True)
class AccrualSummary:
    """Amounts accrued for a month, net of reversals."""

    month_key: str
    student_count: int
    rent: Decimal
    admin_fee: Decimal
    deposit: Decimal
    reversed_count: int = 0

    @property
    def total(self) -> Decimal:
        return self.rent + self.admin_fee + self.deposit
