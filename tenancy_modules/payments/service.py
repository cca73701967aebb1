"""
Payment Allocation Service (``tenancy_modules.payments.service``).

Responsibility
--------------
"Smart FIFO" allocation of a student's payment.  A payment arrives split by
category (rent, admin fee, deposit).  Each category amount settles that
category's outstanding months oldest first; every (month, category) slice is
one balanced ``payment`` entry crediting the student's receivable.  Whatever
cannot be settled is parked on the unapplied-credit account and released
into the next accrued month.

Architecture position
---------------------
**Modules layer**.  Reads the receivable through ``LedgerSelector`` and the
pure ``compute_outstanding`` fold, allocates with ``FifoAllocator`` and
writes through ``LedgerRepository``.  Owns the transaction boundary.

Invariants enforced
-------------------
* The whole read-allocate-write-commit runs under the student's lock, so two
  payments for the same student never read the same outstanding snapshot.
* No month/category is settled beyond what is owed (post-check before
  commit; ``OverSettlementError`` otherwise).
* A payment id is allocated at most once (``PaymentAlreadyAllocatedError``;
  settlement idempotency keys back this at the database level).
* One payment is one transaction: on any error nothing is persisted.

Failure modes
-------------
* ``InvalidPaymentError`` for negative, non-numeric or empty splits.
* ``PaymentAlreadyAllocatedError`` for a repeated payment id.
* ``OverSettlementError`` if the post-check finds a negative outstanding.

Audit relevance
---------------
Every settlement entry carries ``paymentId`` and ``monthSettled`` in its
metadata and ``source_id``; the allocation is reconstructable from the
ledger alone.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from tenancy_config import get_active_config
from tenancy_config.schema import LedgerSettings
from tenancy_engines.allocation import AllocationTarget, FifoAllocator
from tenancy_engines.outstanding import MonthlyOutstanding, apply_settlement
from tenancy_kernel.domain.clock import Clock, SystemClock
from tenancy_kernel.domain.money import ZERO
from tenancy_kernel.exceptions import OverSettlementError, PaymentAlreadyAllocatedError
from tenancy_kernel.logging_config import LogContext, get_logger
from tenancy_kernel.models.ledger import EntrySource
from tenancy_kernel.services.chart_of_accounts import ChartOfAccountsService
from tenancy_kernel.services.ledger_repository import LedgerRepository
from tenancy_kernel.services.student_lock import StudentLockManager
from tenancy_modules._settlement import SettlementWriter
from tenancy_modules.payments.models import (
    AllocationOutcome,
    PaymentSplit,
    Settlement,
    UnappliedCredit,
)

logger = get_logger("modules.payments.service")


class AllocationService:
    """
    Allocates payments against a student's outstanding obligations.

    Transaction boundary: allocate_payment() commits on success and rolls
    back on failure.  Read methods never write.
    """

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        locks: StudentLockManager | None = None,
    ):
        self._session = session
        self._settings = settings or get_active_config()
        self._codes = self._settings.account_codes
        self._clock = clock or SystemClock()
        self._locks = locks or StudentLockManager()
        self._chart = ChartOfAccountsService(session, self._codes.receivable_control)
        self._repository = LedgerRepository(
            session,
            self._clock,
            chart=self._chart,
            tolerance=self._settings.balance_tolerance,
        )
        self._allocator = FifoAllocator()
        self._settlements = SettlementWriter(
            session, self._repository, self._settings, self._allocator
        )

    # =========================================================================
    # Allocation
    # =========================================================================

    def allocate_payment(
        self,
        student_id: str,
        payment: PaymentSplit | dict[str, Any],
        payment_date: date,
        payment_id: str | None = None,
        payment_method: str | None = None,
    ) -> AllocationOutcome:
        """
        Allocate one payment FIFO per category.

        Args:
            student_id: Whose receivable is settled.
            payment: Amount per category (``rent``, ``admin``, ``deposit``).
            payment_date: Date of the settlement entries.
            payment_id: Business id of the payment; generated when omitted.
            payment_method: Free text; bank/transfer/ecocash methods settle
                into the bank account, anything else into cash.

        Returns:
            AllocationOutcome with one Settlement per month/category funded
            and the unallocated remainder.
        """
        payment_id = payment_id or str(uuid4())
        split = PaymentSplit.coerce(payment, payment_id)
        cash_account = self._settings.cash_account_for(payment_method)

        with LogContext.bind(student_id=student_id, payment_id=payment_id):
            logger.info(
                "allocation_started",
                extra={
                    "rent": str(split.rent),
                    "admin": str(split.admin),
                    "deposit": str(split.deposit),
                    "payment_method": payment_method,
                    "cash_account": cash_account,
                },
            )
            with self._locks.hold(self._session, student_id):
                try:
                    outcome = self._allocate(
                        student_id, split, payment_date, payment_id, payment_method, cash_account
                    )
                    self._session.commit()
                except Exception:
                    # Roll back while still holding the student lock
                    self._session.rollback()
                    logger.warning("allocation_rolled_back", exc_info=True)
                    raise

            logger.info(
                "allocation_completed",
                extra={
                    "settlement_count": len(outcome.settlements),
                    "total_settled": str(outcome.total_settled),
                    "unallocated": str(outcome.unallocated),
                },
            )
        return outcome

    def _allocate(
        self,
        student_id: str,
        split: PaymentSplit,
        payment_date: date,
        payment_id: str,
        payment_method: str | None,
        cash_account: str,
    ) -> AllocationOutcome:
        if self._repository.find_by_source_id(
            payment_id, (EntrySource.PAYMENT, EntrySource.ADVANCE_PAYMENT)
        ):
            raise PaymentAlreadyAllocatedError(payment_id)

        rows: dict[str, MonthlyOutstanding] = {
            row.month_key: row for row in self._settlements.outstanding(student_id)
        }
        residence_id = self._settlements.residence_for(student_id)
        settlements: list[Settlement] = []
        credits: list[UnappliedCredit] = []

        for category in self._settings.allocation_category_order:
            amount = split.amount_for(category)
            if amount <= ZERO:
                continue

            targets = [
                AllocationTarget(key, key, row.outstanding(category))
                for key, row in rows.items()
                if row.outstanding(category) > ZERO
            ]
            result = self._allocator.allocate(amount, targets)

            for line in result.funded_lines:
                entry = self._settlements.settle(
                    student_id=student_id,
                    month=line.month_key,
                    category=category,
                    amount=line.allocated,
                    debit_account=cash_account,
                    payment_id=payment_id,
                    entry_date=payment_date,
                    payment_method=payment_method,
                    residence_id=residence_id,
                )
                rows[line.month_key] = apply_settlement(rows[line.month_key], category, line.allocated)
                settlements.append(
                    Settlement(line.month_key, category, line.allocated, str(entry.id))
                )

            if result.unallocated > ZERO:
                entry = self._settlements.record_unapplied_credit(
                    student_id=student_id,
                    category=category,
                    amount=result.unallocated,
                    cash_account=cash_account,
                    payment_id=payment_id,
                    entry_date=payment_date,
                    payment_method=payment_method,
                    residence_id=residence_id,
                )
                credits.append(UnappliedCredit(category, result.unallocated, str(entry.id)))
                logger.info(
                    "payment_excess_parked",
                    extra={"category": category, "amount": str(result.unallocated)},
                )

        self._check_not_over_settled(student_id, {s.month for s in settlements})

        return AllocationOutcome(
            payment_id=payment_id,
            student_id=student_id,
            payment_date=payment_date,
            payment=split,
            settlements=tuple(settlements),
            credits=tuple(credits),
            cash_account=cash_account,
        )

    def _check_not_over_settled(self, student_id: str, months: set[str]) -> None:
        for row in self._settlements.outstanding(student_id):
            if row.month_key not in months:
                continue
            for category in self._settings.allocation_category_order:
                raw = row.raw_outstanding(category)
                if raw < ZERO:
                    raise OverSettlementError(student_id, row.month_key, category, str(raw))

    # =========================================================================
    # Queries
    # =========================================================================

    def get_outstanding_balances(self, student_id: str) -> list[MonthlyOutstanding]:
        """Owed, paid and outstanding per category for every month with an obligation."""
        return self._settlements.outstanding(student_id)

    def total_outstanding(self, student_id: str) -> Decimal:
        return sum(
            (row.total_outstanding for row in self._settlements.outstanding(student_id)),
            ZERO,
        )

    def unapplied_credit(self, student_id: str) -> Decimal:
        """Advance payments held for the student and not yet applied."""
        return sum(self._settlements.unapplied_credit_by_category(student_id).values(), ZERO)
