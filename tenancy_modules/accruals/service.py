"""
Accrual Service (``tenancy_modules.accruals.service``).

Responsibility
--------------
Recognizes what students owe.  Once per month (and once at lease start) each
active lease produces one balanced ``rental_accrual`` entry debiting the
student's receivable and crediting rental income, admin income and, in the
lease-start month, the security-deposit liability.  Also reverses accruals
that should not have been made (early lease end, data corrections).

Architecture position
---------------------
**Modules layer**.  Reads leases through ``LeaseSource``, computes what is
due with ``tenancy_engines.obligations`` and writes through
``LedgerRepository``.  Owns the transaction boundary.

Invariants enforced
-------------------
* At most one accrual per student-month (idempotency key
  ``rental_accrual:{studentId}:{YYYY-MM}``), so re-running a batch is safe.
* Every accrual for a student is written under that student's lock.
* Each student in a batch is its own transaction, committed under that
  student's lock: a failure rolls back that student only, and no
  transaction is open while the next student's lock is requested.
* An accrual is reversed at most once and never after money was settled
  against its month.

Failure modes
-------------
* Missing residence or rent amount  -> ``MissingReferenceDataError``
  (single-student calls) or a skipped item with a code (batch).
* Reversal of a non-accrual  -> ``InvalidReversalTargetError``.
* Second reversal  -> ``EntryAlreadyReversedError``.
* Month already settled  -> ``AccrualSettledError``.

Audit relevance
---------------
Each batch carries a ``batch_id`` in every log record.  Reversals reference
the original entry through ``reversal_of_id`` and keep its date and month so
they net in the same reporting period.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from tenancy_config import get_active_config
from tenancy_config.schema import LedgerSettings
from tenancy_engines.obligations import MonthlyObligation, months_for, obligation_for
from tenancy_engines.outstanding import CATEGORIES
from tenancy_kernel.domain.clock import Clock, SystemClock
from tenancy_kernel.domain.metadata import AccrualMetadata, ReversalMetadata, parse_metadata
from tenancy_kernel.domain.money import ZERO, round_money
from tenancy_kernel.domain.months import make_month_key, month_bounds_for_key, month_key
from tenancy_kernel.exceptions import (
    AccrualSettledError,
    EntryAlreadyReversedError,
    InvalidReversalTargetError,
    MissingReferenceDataError,
)
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
from tenancy_kernel.utils.idempotency import accrual_key, generate_idempotency_key
from tenancy_modules._settlement import SettlementWriter
from tenancy_modules.accruals.models import (
    RENT_AMOUNT_MISSING,
    RESIDENCE_NOT_FOUND,
    AccrualItemError,
    AccrualOutcome,
    AccrualRunResult,
    AccrualSummary,
)
from tenancy_modules.lease.models import LeaseTerms
from tenancy_modules.lease.source import LeaseSource

logger = get_logger("modules.accruals.service")

LEASE_START = "lease_start"
MONTHLY_RENT_ACCRUAL = "monthly_rent_accrual"

_SKIP_CODES = {"residence": RESIDENCE_NOT_FOUND, "monthly_rent": RENT_AMOUNT_MISSING}

_LINE_LABELS = {
    "rent": "Rent",
    "admin": "Admin fee",
    "deposit": "Security deposit",
}


class AccrualService:
    """
    Creates and reverses rent accruals.

    Transaction boundary: every public write method commits on success and
    rolls back on failure.
    """

    def __init__(
        self,
        session: Session,
        lease_source: LeaseSource,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        locks: StudentLockManager | None = None,
    ):
        self._session = session
        self._leases = lease_source
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
        self._selector = LedgerSelector(session)
        self._settlements = SettlementWriter(session, self._repository, self._settings)

    # =========================================================================
    # Accrual
    # =========================================================================

    def create_monthly_accruals(self, month: int, year: int) -> AccrualRunResult:
        """
        Accrue every lease active in the month.

        Each student is written and committed in its own transaction under
        that student's lock: a failure affects one student only, and the
        batch never holds more than one student's lock at a time.
        Already-accrued students are skipped, so the batch can be re-run
        after a partial failure.
        """
        key = make_month_key(year, month)
        batch_id = str(uuid4())
        created = 0
        skipped = 0
        errors: list[AccrualItemError] = []
        entry_ids: list[str] = []

        with LogContext.bind(batch_id=batch_id, month_key=key):
            try:
                leases = self._leases.active_leases(year, month)
                # No transaction may be open when a student lock is requested
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise
            logger.info("accrual_batch_started", extra={"lease_count": len(leases)})

            for lease in leases:
                try:
                    outcome = self._accrue_committed(lease, key)
                except MissingReferenceDataError as exc:
                    skipped += 1
                    code = _SKIP_CODES.get(exc.field, exc.code)
                    errors.append(AccrualItemError(lease.student_id, code, str(exc)))
                    logger.warning(
                        "accrual_skipped_missing_data",
                        extra={"student_id": lease.student_id, "error_code": code},
                    )
                    continue
                except Exception as exc:
                    code = getattr(exc, "code", type(exc).__name__)
                    errors.append(AccrualItemError(lease.student_id, code, str(exc)))
                    logger.error(
                        "accrual_student_failed",
                        extra={"student_id": lease.student_id, "error_code": code},
                        exc_info=True,
                    )
                    continue

                if outcome.created:
                    created += 1
                    entry_ids.append(outcome.entry_id)
                else:
                    skipped += 1

            result = AccrualRunResult(
                month_key=key,
                batch_id=batch_id,
                created=created,
                skipped=skipped,
                errors=tuple(errors),
                entry_ids=tuple(entry_ids),
            )
            logger.info(
                "accrual_batch_completed",
                extra={
                    "created_count": result.created,
                    "skipped_count": result.skipped,
                    "error_count": len(result.errors),
                    "failed_count": result.failed,
                },
            )
        return result

    def create_student_accrual(self, lease: LeaseTerms, month: int, year: int) -> AccrualOutcome:
        """Accrue one student for one month and commit."""
        return self._accrue_committed(lease, make_month_key(year, month))

    def process_lease_start(self, lease: LeaseTerms) -> AccrualOutcome:
        """Accrue the lease-start month (prorated rent, admin fee, deposit) right away."""
        start = lease.lease_start
        outcome = self.create_student_accrual(lease, start.month, start.year)
        logger.info(
            "lease_start_processed",
            extra={
                "student_id": lease.student_id,
                "lease_id": lease.lease_id,
                "accrual_created": outcome.created,
            },
        )
        return outcome

    def obligation_schedule(
        self, lease: LeaseTerms, as_of: date | None = None
    ) -> tuple[MonthlyObligation, ...]:
        """
        What the lease asks for, month by month.

        An ongoing lease runs to ``as_of``, or to today by the service clock.
        """
        if as_of is None and lease.lease_end is None:
            as_of = self._clock.today()
        return months_for(lease, as_of)

    def _accrue_committed(self, lease: LeaseTerms, key: str) -> AccrualOutcome:
        """One student-month in one transaction, committed or rolled back under the lock."""
        with LogContext.bind(student_id=lease.student_id, month_key=key):
            with self._locks.hold(self._session, lease.student_id):
                try:
                    outcome = self._accrue(lease, key)
                    self._session.commit()
                except Exception:
                    self._session.rollback()
                    raise
        return outcome

    def _check_reference_data(self, lease: LeaseTerms) -> None:
        if not lease.residence_id or not self._leases.residence_exists(lease.residence_id):
            raise MissingReferenceDataError(
                lease.student_id,
                "residence",
                f"residence {lease.residence_id!r} not found",
            )
        if not lease.monthly_rent or lease.monthly_rent <= ZERO:
            raise MissingReferenceDataError(
                lease.student_id,
                "monthly_rent",
                "monthly rent amount is missing",
            )

    def _accrue(self, lease: LeaseTerms, key: str) -> AccrualOutcome:
        self._check_reference_data(lease)

        idempotency_key = accrual_key(lease.student_id, key)
        existing = self._repository.find_by_idempotency_key(idempotency_key)
        if existing is not None:
            logger.info("accrual_already_exists", extra={"entry_id": str(existing.id)})
            return AccrualOutcome(
                student_id=lease.student_id,
                month_key=key,
                created=False,
                entry_id=str(existing.id),
                reason="already_accrued",
            )

        obligation = obligation_for(lease, key)
        if obligation is None or obligation.total_due <= ZERO:
            return AccrualOutcome(
                student_id=lease.student_id,
                month_key=key,
                created=False,
                reason="nothing_due",
            )

        receivable = self._chart.ensure_receivable(lease.student_id, lease.student_name)
        lines: list[LineDraft] = []
        for category in CATEGORIES:
            amount = obligation.amount_for(category)
            if amount <= ZERO:
                continue
            label = f"{_LINE_LABELS[category]} {key} - {lease.student_name}"
            lines.append(LineDraft.dr(receivable.code, amount, description=label, category=category))
            lines.append(
                LineDraft.cr(
                    self._codes.income_for(category),
                    amount,
                    description=label,
                    category=category,
                )
            )

        month_start, _ = month_bounds_for_key(key)
        entry_date = max(month_start, lease.lease_start)
        accrual_type = LEASE_START if obligation.is_lease_start else MONTHLY_RENT_ACCRUAL

        entry = self._repository.post_entry(
            EntryDraft(
                entry_date=entry_date,
                description=f"Rent accrual {key} - {lease.student_name}",
                source=EntrySource.RENTAL_ACCRUAL,
                lines=tuple(lines),
                idempotency_key=idempotency_key,
                metadata=AccrualMetadata(
                    student_id=lease.student_id,
                    month=key,
                    accrual_type=accrual_type,
                    student_name=lease.student_name,
                    residence_id=lease.residence_id,
                    lease_id=lease.lease_id,
                    rent_amount=obligation.rent_due,
                    admin_fee=obligation.admin_fee_due,
                    deposit_amount=obligation.deposit_due,
                    prorated=obligation.is_prorated,
                ),
                source_id=lease.lease_id,
                student_id=lease.student_id,
                residence_id=lease.residence_id,
                month_key=key,
            )
        )

        released = self._settlements.release_credit(
            student_id=lease.student_id,
            credit_ref=f"credit-{entry.id}",
            entry_date=entry_date,
            residence_id=lease.residence_id,
        )
        credit_applied = sum((s.amount for s in released), ZERO)

        logger.info(
            "accrual_created",
            extra={
                "entry_id": str(entry.id),
                "accrual_type": accrual_type,
                "rent": str(obligation.rent_due),
                "admin_fee": str(obligation.admin_fee_due),
                "deposit": str(obligation.deposit_due),
                "prorated": obligation.is_prorated,
                "credit_applied": str(credit_applied),
            },
        )
        return AccrualOutcome(
            student_id=lease.student_id,
            month_key=key,
            created=True,
            entry_id=str(entry.id),
            rent=obligation.rent_due,
            admin_fee=obligation.admin_fee_due,
            deposit=obligation.deposit_due,
            prorated=obligation.is_prorated,
            credit_applied=credit_applied,
        )

    # =========================================================================
    # Reversal
    # =========================================================================

    def reverse_accrual(self, entry_id: UUID | str, reason: str) -> LedgerEntry:
        """
        Post the mirror image of an accrual.

        The reversal keeps the original's entry_date and month so both net
        to zero in the same period.
        """
        entry_uuid = UUID(str(entry_id))
        try:
            entry = self._repository.get_entry(entry_uuid)
            if entry.source != EntrySource.RENTAL_ACCRUAL.value:
                raise InvalidReversalTargetError(str(entry.id), entry.source)
            student_id = entry.student_id
            # Posted entries never change, so the lookup can end here
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        with LogContext.bind(student_id=student_id, entry_id=str(entry_uuid)):
            with self._locks.hold(self._session, student_id):
                try:
                    reversal = self._reverse(self._repository.get_entry(entry_uuid), reason)
                    self._session.commit()
                except Exception:
                    self._session.rollback()
                    raise
        return reversal

    def correct_for_early_lease_end(self, student_id: str, actual_end: date) -> list[LedgerEntry]:
        """
        Reverse accruals for months after the month the lease actually ended.

        Lease-start accruals are kept; they carry the deposit.
        """
        end_key = month_key(actual_end)
        reason = f"Lease ended early on {actual_end.isoformat()}"
        reversals: list[LedgerEntry] = []
        with LogContext.bind(student_id=student_id):
            with self._locks.hold(self._session, student_id):
                try:
                    reversed_ids = self._selector.reversed_entry_ids()
                    for entry in self._repository.find_entries(
                        EntrySource.RENTAL_ACCRUAL, student_id=student_id
                    ):
                        if entry.month_key is None or entry.month_key <= end_key:
                            continue
                        if entry.id in reversed_ids:
                            continue
                        metadata = parse_metadata(entry.source, entry.entry_metadata)
                        if metadata.accrual_type == LEASE_START:
                            continue
                        reversals.append(self._reverse(entry, reason))
                    self._session.commit()
                except Exception:
                    self._session.rollback()
                    raise

        logger.info(
            "early_lease_end_corrected",
            extra={
                "student_id": student_id,
                "actual_end": actual_end.isoformat(),
                "reversed_count": len(reversals),
            },
        )
        return reversals

    def _reverse(self, entry: LedgerEntry, reason: str) -> LedgerEntry:
        prior = self._repository.find_reversal_of(entry.id)
        if prior is not None:
            raise EntryAlreadyReversedError(str(entry.id), str(prior.id))

        row = next(
            (r for r in self._settlements.outstanding(entry.student_id) if r.month_key == entry.month_key),
            None,
        )
        paid = sum((row.paid(c) for c in CATEGORIES), ZERO) if row is not None else ZERO
        if paid > ZERO:
            raise AccrualSettledError(str(entry.id), entry.month_key, str(paid))

        reversal = self._repository.reverse_entry(
            entry,
            source=EntrySource.RENTAL_ACCRUAL_REVERSAL,
            description=f"Reversal of rent accrual {entry.month_key}: {reason}",
            idempotency_key=generate_idempotency_key(
                EntrySource.RENTAL_ACCRUAL_REVERSAL.value, entry.id
            ),
            metadata=ReversalMetadata(
                student_id=entry.student_id,
                original_entry_id=str(entry.id),
                month=entry.month_key,
                reason=reason,
            ),
        )
        logger.info(
            "accrual_reversed",
            extra={
                "original_entry_id": str(entry.id),
                "reversal_entry_id": str(reversal.id),
                "month_key": entry.month_key,
                "reason": reason,
            },
        )
        return reversal

    # =========================================================================
    # Reporting
    # =========================================================================

    def accrual_summary(self, month: int, year: int) -> AccrualSummary:
        """Rent, admin fee and deposit accrued for a month, net of reversals."""
        key = make_month_key(year, month)
        lines = self._selector.lines(
            account_prefix=f"{self._codes.receivable_control}-",
            sources=[EntrySource.RENTAL_ACCRUAL, EntrySource.RENTAL_ACCRUAL_REVERSAL],
            month_key=key,
        )
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        per_student: dict[str, Decimal] = defaultdict(lambda: ZERO)
        reversal_ids = set()
        for line in lines:
            net = line.debit - line.credit
            if line.category in CATEGORIES:
                totals[line.category] += net
            per_student[line.student_id] += net
            if line.source == EntrySource.RENTAL_ACCRUAL_REVERSAL.value:
                reversal_ids.add(line.entry_id)

        return AccrualSummary(
            month_key=key,
            student_count=sum(1 for amount in per_student.values() if amount > ZERO),
            rent=round_money(totals["rent"]),
            admin_fee=round_money(totals["admin"]),
            deposit=round_money(totals["deposit"]),
            reversed_count=len(reversal_ids),
        )
