"""
Security deposit handling (``tenancy_modules.payments.deposits``).

The deposit is accrued at lease start as Dr receivable / Cr 2020 (a
liability: the money belongs to the student until forfeited).  This service
covers what happens at lease end:

    reverse_unpaid_deposit   Dr 2020 / Cr receivable  (deposit never paid)
    forfeit_deposit          Dr 2020 / Cr 4200        (held deposit kept)

Both are ``manual`` entries.  The reversal is tagged with the deposit month
and category so the receivable fold treats it as settling that month.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

from sqlalchemy.orm import Session

from tenancy_config import get_active_config
from tenancy_config.schema import LedgerSettings
from tenancy_kernel.domain.clock import Clock, SystemClock
from tenancy_kernel.domain.metadata import ManualMetadata
from tenancy_kernel.domain.money import ZERO, round_money
from tenancy_kernel.exceptions import DepositAlreadyPaidError, DepositNotHeldError
from tenancy_kernel.logging_config import LogContext, get_logger
from tenancy_kernel.models.ledger import EntrySource, LedgerEntry
from tenancy_kernel.selectors.ledger_selector import LedgerSelector
from tenancy_kernel.services.chart_of_accounts import ChartOfAccountsService
from tenancy_kernel.services.ledger_repository import (
    EntryDraft,
    LedgerRepository,
    LineDraft,
)
from tenancy_kernel.services.student_lock import StudentLockManager
from tenancy_kernel.utils.idempotency import generate_idempotency_key
from tenancy_modules._settlement import SettlementWriter
from tenancy_modules.payments.models import DepositStatus

logger = get_logger("modules.payments.deposits")

DEPOSIT = "deposit"
DEPOSIT_REVERSAL = "security_deposit_reversal"
DEPOSIT_FORFEITURE = "deposit_forfeiture"

_OWED_SOURCES = frozenset({EntrySource.RENTAL_ACCRUAL.value, EntrySource.RENTAL_ACCRUAL_REVERSAL.value})


class DepositService:
    """Deposit reversal, forfeiture and status.  Commits its own writes."""

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
        self._repository = LedgerRepository(
            session,
            self._clock,
            chart=ChartOfAccountsService(session, self._codes.receivable_control),
            tolerance=self._settings.balance_tolerance,
        )
        self._selector = LedgerSelector(session)
        self._settlements = SettlementWriter(session, self._repository, self._settings)

    def deposit_status(self, student_id: str) -> DepositStatus:
        required = paid = reversed_ = forfeited = ZERO
        for line in self._selector.lines(account_code=self._codes.receivable_for(student_id)):
            if line.category != DEPOSIT:
                continue
            if line.source in _OWED_SOURCES:
                required += line.debit - line.credit
            elif line.source == EntrySource.PAYMENT.value:
                paid += line.credit - line.debit
            elif line.source == EntrySource.MANUAL.value:
                reversed_ += line.credit - line.debit

        for line in self._selector.lines(
            account_code=self._codes.forfeited_deposit_income,
            student_id=student_id,
            sources=[EntrySource.MANUAL],
        ):
            forfeited += line.credit - line.debit

        return DepositStatus(
            student_id=student_id,
            required=round_money(required),
            paid=round_money(paid),
            reversed=round_money(reversed_),
            forfeited=round_money(forfeited),
        )

    def reverse_unpaid_deposit(
        self,
        student_id: str,
        reason: str,
        reversal_date: date | None = None,
    ) -> list[LedgerEntry]:
        """
        Write the unpaid part of the deposit back off the receivable.

        One entry per month with deposit outstanding (normally just the
        lease-start month).

        Raises:
            DepositAlreadyPaidError: no deposit is outstanding.
        """
        entry_date = reversal_date or self._clock.today()
        entries: list[LedgerEntry] = []
        with LogContext.bind(student_id=student_id):
            with self._locks.hold(self._session, student_id):
                try:
                    rows = [
                        row
                        for row in self._settlements.outstanding(student_id)
                        if row.outstanding(DEPOSIT) > ZERO
                    ]
                    if not rows:
                        raise DepositAlreadyPaidError(student_id)

                    residence_id = self._settlements.residence_for(student_id)
                    receivable = self._codes.receivable_for(student_id)
                    for row in rows:
                        amount = row.outstanding(DEPOSIT)
                        entries.append(
                            self._repository.post_entry(
                                EntryDraft(
                                    entry_date=entry_date,
                                    description=f"Unpaid security deposit reversed ({row.month_key}): {reason}",
                                    source=EntrySource.MANUAL,
                                    lines=(
                                        LineDraft.dr(self._codes.security_deposits, amount, category=DEPOSIT),
                                        LineDraft.cr(receivable, amount, category=DEPOSIT),
                                    ),
                                    idempotency_key=generate_idempotency_key(
                                        EntrySource.MANUAL.value, DEPOSIT_REVERSAL, student_id, row.month_key
                                    ),
                                    metadata=ManualMetadata(
                                        memo=reason,
                                        student_id=student_id,
                                        month_settled=row.month_key,
                                        payment_type=DEPOSIT,
                                        type=DEPOSIT_REVERSAL,
                                    ),
                                    source_id=student_id,
                                    student_id=student_id,
                                    residence_id=residence_id,
                                    month_key=row.month_key,
                                )
                            )
                        )
                    self._session.commit()
                except Exception:
                    self._session.rollback()
                    raise

        logger.info(
            "unpaid_deposit_reversed",
            extra={
                "student_id": student_id,
                "entry_count": len(entries),
                "amount": str(sum((e.total_debit for e in entries), ZERO)),
            },
        )
        return entries

    def forfeit_deposit(
        self,
        student_id: str,
        amount: Decimal,
        reason: str,
        forfeiture_date: date | None = None,
        forfeiture_id: str | None = None,
    ) -> LedgerEntry:
        """
        Recognize part or all of the held deposit as income.

        Raises:
            ValueError: amount is not positive.
            DepositNotHeldError: amount exceeds what is held for the student.
        """
        amount = round_money(amount)
        if amount <= ZERO:
            raise ValueError(f"Forfeiture amount must be positive: {amount}")
        forfeiture_id = forfeiture_id or str(uuid4())
        entry_date = forfeiture_date or self._clock.today()

        with LogContext.bind(student_id=student_id):
            with self._locks.hold(self._session, student_id):
                try:
                    status = self.deposit_status(student_id)
                    if amount > status.held:
                        raise DepositNotHeldError(student_id, str(amount), str(status.held))

                    entry = self._repository.post_entry(
                        EntryDraft(
                            entry_date=entry_date,
                            description=f"Security deposit forfeited: {reason}",
                            source=EntrySource.MANUAL,
                            lines=(
                                LineDraft.dr(self._codes.security_deposits, amount, category=DEPOSIT),
                                LineDraft.cr(self._codes.forfeited_deposit_income, amount, category=DEPOSIT),
                            ),
                            idempotency_key=generate_idempotency_key(
                                EntrySource.MANUAL.value, DEPOSIT_FORFEITURE, student_id, forfeiture_id
                            ),
                            metadata=ManualMetadata(
                                memo=reason,
                                student_id=student_id,
                                is_forfeiture=True,
                                payment_type=DEPOSIT,
                                type=DEPOSIT_FORFEITURE,
                            ),
                            source_id=forfeiture_id,
                            student_id=student_id,
                            residence_id=self._settlements.residence_for(student_id),
                        )
                    )
                    self._session.commit()
                except Exception:
                    self._session.rollback()
                    raise

        logger.info(
            "deposit_forfeited",
            extra={
                "student_id": student_id,
                "entry_id": str(entry.id),
                "amount": str(amount),
                "held_before": str(status.held),
            },
        )
        return entry
