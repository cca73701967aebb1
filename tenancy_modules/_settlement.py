"""
Shared settlement writes for module services.

Used by ``tenancy_modules/accruals/service.py`` (releasing unapplied credit
into a newly accrued month) and ``tenancy_modules/payments/service.py``
(allocating a payment).  Every write goes through ``LedgerRepository``; this
module never commits.

Architecture: Modules layer.  Imports only from tenancy_kernel, tenancy_config
and tenancy_engines.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from tenancy_config.schema import LedgerSettings
from tenancy_engines.allocation import AllocationTarget, FifoAllocator
from tenancy_engines.outstanding import (
    CATEGORIES,
    MonthlyOutstanding,
    apply_settlement,
    compute_outstanding,
)
from tenancy_kernel.domain.metadata import (
    PaymentAllocationMetadata,
    UnappliedCreditMetadata,
)
from tenancy_kernel.domain.money import ZERO, round_money
from tenancy_kernel.logging_config import get_logger
from tenancy_kernel.models.ledger import EntrySource, LedgerEntry
from tenancy_kernel.selectors.ledger_selector import LedgerSelector
from tenancy_kernel.services.ledger_repository import (
    EntryDraft,
    LedgerRepository,
    LineDraft,
)
from tenancy_kernel.utils.idempotency import generate_idempotency_key, settlement_key

logger = get_logger("modules.settlement")

CREDIT_APPLIED = "credit_applied"
PAYMENT_ALLOCATION = "payment_allocation"


@dataclass(frozen=True)
class SettlementSlice:
    """One (month, category) portion of a payment and the entry that records it."""

    month: str
    category: str
    amount: Decimal
    ledger_entry_id: str


class SettlementWriter:
    """Reads a student's receivable position and posts settlement entries."""

    def __init__(
        self,
        session: Session,
        repository: LedgerRepository,
        settings: LedgerSettings,
        allocator: FifoAllocator | None = None,
    ):
        self._session = session
        self._repository = repository
        self._settings = settings
        self._codes = settings.account_codes
        self._selector = LedgerSelector(session)
        self._allocator = allocator or FifoAllocator()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def outstanding(self, student_id: str) -> list[MonthlyOutstanding]:
        lines = self._selector.lines(account_code=self._codes.receivable_for(student_id))
        return compute_outstanding(lines)

    def unapplied_credit_by_category(self, student_id: str) -> dict[str, Decimal]:
        """Balance of the unapplied-credit account held for the student, per category."""
        balances = {category: ZERO for category in CATEGORIES}
        for line in self._selector.lines(
            account_code=self._codes.unapplied_credit,
            student_id=student_id,
        ):
            if line.category in balances:
                balances[line.category] += line.credit - line.debit
        return {category: round_money(amount) for category, amount in balances.items()}

    def residence_for(self, student_id: str) -> str | None:
        accruals = self._selector.entries(
            sources=[EntrySource.RENTAL_ACCRUAL],
            student_id=student_id,
        )
        for entry in reversed(accruals):
            if entry.residence_id:
                return entry.residence_id
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def settle(
        self,
        *,
        student_id: str,
        month: str,
        category: str,
        amount: Decimal,
        debit_account: str,
        payment_id: str,
        entry_date: date,
        allocation_type: str = PAYMENT_ALLOCATION,
        payment_method: str | None = None,
        residence_id: str | None = None,
    ) -> LedgerEntry:
        """Dr ``debit_account`` / Cr the student's receivable for one month and category."""
        receivable = self._codes.receivable_for(student_id)
        label = "Unapplied credit applied" if allocation_type == CREDIT_APPLIED else "Payment"
        return self._repository.post_entry(
            EntryDraft(
                entry_date=entry_date,
                description=f"{label}: {category} for {month}",
                source=EntrySource.PAYMENT,
                lines=(
                    LineDraft.dr(debit_account, amount, category=category),
                    LineDraft.cr(receivable, amount, category=category),
                ),
                idempotency_key=settlement_key(payment_id, month, category),
                metadata=PaymentAllocationMetadata(
                    student_id=student_id,
                    payment_id=payment_id,
                    payment_type=category,
                    month_settled=month,
                    allocation_type=allocation_type,
                    payment_method=payment_method,
                ),
                source_id=payment_id,
                student_id=student_id,
                residence_id=residence_id,
                month_key=month,
            )
        )

    def record_unapplied_credit(
        self,
        *,
        student_id: str,
        category: str,
        amount: Decimal,
        cash_account: str,
        payment_id: str,
        entry_date: date,
        payment_method: str | None = None,
        residence_id: str | None = None,
    ) -> LedgerEntry:
        """Dr cash / Cr unapplied credit for the part of a payment with nothing to settle."""
        return self._repository.post_entry(
            EntryDraft(
                entry_date=entry_date,
                description=f"Advance payment: {category}",
                source=EntrySource.ADVANCE_PAYMENT,
                lines=(
                    LineDraft.dr(cash_account, amount, category=category),
                    LineDraft.cr(self._codes.unapplied_credit, amount, category=category),
                ),
                idempotency_key=generate_idempotency_key(
                    EntrySource.ADVANCE_PAYMENT.value, payment_id, category
                ),
                metadata=UnappliedCreditMetadata(
                    student_id=student_id,
                    payment_id=payment_id,
                    payment_type=category,
                    payment_method=payment_method,
                ),
                source_id=payment_id,
                student_id=student_id,
                residence_id=residence_id,
            )
        )

    def release_credit(
        self,
        *,
        student_id: str,
        credit_ref: str,
        entry_date: date,
        residence_id: str | None = None,
    ) -> list[SettlementSlice]:
        """
        Apply the student's unapplied credit FIFO to outstanding months.

        Each category's credit only settles the same category.  ``credit_ref``
        stands in for the payment id on the settlement entries.
        """
        credit = self.unapplied_credit_by_category(student_id)
        if not any(amount > ZERO for amount in credit.values()):
            return []

        rows = {row.month_key: row for row in self.outstanding(student_id)}
        slices: list[SettlementSlice] = []
        for category in self._settings.allocation_category_order:
            available = credit.get(category, ZERO)
            if available <= ZERO:
                continue
            targets = [
                AllocationTarget(key, key, row.outstanding(category))
                for key, row in rows.items()
                if row.outstanding(category) > ZERO
            ]
            result = self._allocator.allocate(available, targets)
            for line in result.funded_lines:
                entry = self.settle(
                    student_id=student_id,
                    month=line.month_key,
                    category=category,
                    amount=line.allocated,
                    debit_account=self._codes.unapplied_credit,
                    payment_id=credit_ref,
                    entry_date=entry_date,
                    allocation_type=CREDIT_APPLIED,
                    residence_id=residence_id,
                )
                rows[line.month_key] = apply_settlement(rows[line.month_key], category, line.allocated)
                slices.append(
                    SettlementSlice(line.month_key, category, line.allocated, str(entry.id))
                )

        if slices:
            logger.info(
                "unapplied_credit_released",
                extra={
                    "student_id": student_id,
                    "credit_ref": credit_ref,
                    "settlements": len(slices),
                    "amount": str(sum((s.amount for s in slices), ZERO)),
                },
            )
        return slices
