"""
Module: tenancy_kernel.selectors.ledger_selector
Responsibility: Read-only line- and entry-level queries over the ledger,
    filtered by date range, account code/prefix, source tag, student,
    residence and status.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only POSTED entries are returned unless include_drafts=True.
    - Ordering is deterministic: entry_date, posted_at, entry id, line_seq.

Consistency:
    Each call is one SELECT and sees what the caller's transaction sees
    (READ COMMITTED on PostgreSQL).  Reports built from several calls are
    eventually consistent with allocations committing in parallel.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from tenancy_kernel.models.ledger import EntryStatus, LedgerEntry, LedgerLine
from tenancy_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LedgerLineView:
    """A ledger line joined with the header fields of its entry."""

    entry_id: UUID
    entry_date: date
    source: str
    status: str
    student_id: str | None
    residence_id: str | None
    month_key: str | None
    reversal_of_id: UUID | None
    line_seq: int
    account_code: str
    account_name: str
    account_type: str
    debit: Decimal
    credit: Decimal
    category: str | None


@dataclass(frozen=True)
class EntrySummary:
    """Header of a ledger entry."""

    entry_id: UUID
    entry_date: date
    source: str
    source_id: str | None
    status: str
    student_id: str | None
    residence_id: str | None
    month_key: str | None
    total_debit: Decimal
    total_credit: Decimal
    idempotency_key: str
    reversal_of_id: UUID | None
    posted_at: datetime | None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TrialBalanceRow:
    account_code: str
    account_name: str
    account_type: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def net_debit(self) -> Decimal:
        return self.debit_total - self.credit_total


class LedgerSelector(BaseSelector):
    """Queries over ledger_entries / ledger_lines."""

    def _entry_filters(
        self,
        start: date | None,
        end: date | None,
        sources: Iterable[str] | None,
        student_id: str | None,
        residence_id: str | None,
        include_drafts: bool,
    ) -> list:
        conditions = []
        if not include_drafts:
            conditions.append(LedgerEntry.status == EntryStatus.POSTED.value)
        if start is not None:
            conditions.append(LedgerEntry.entry_date >= start)
        if end is not None:
            conditions.append(LedgerEntry.entry_date <= end)
        if sources is not None:
            conditions.append(LedgerEntry.source.in_([getattr(s, "value", s) for s in sources]))
        if student_id is not None:
            conditions.append(LedgerEntry.student_id == student_id)
        if residence_id is not None:
            conditions.append(LedgerEntry.residence_id == residence_id)
        return conditions

    def lines(
        self,
        start: date | None = None,
        end: date | None = None,
        account_code: str | None = None,
        account_prefix: str | None = None,
        sources: Iterable[str] | None = None,
        student_id: str | None = None,
        residence_id: str | None = None,
        month_key: str | None = None,
        include_drafts: bool = False,
    ) -> list[LedgerLineView]:
        """
        Ledger lines matching every given filter.

        Args:
            start / end: Inclusive entry_date range.
            account_code: Exact account code.
            account_prefix: Account code prefix ("1100" matches 1100-{sid}).
            sources: Entry source tags to include.
            student_id / residence_id / month_key: Entry-level tags.
            include_drafts: Include DRAFT entries.
        """
        stmt = (
            select(LedgerLine, LedgerEntry)
            .join(LedgerEntry, LedgerLine.entry_id == LedgerEntry.id)
            .where(
                *self._entry_filters(
                    start, end, sources, student_id, residence_id, include_drafts
                )
            )
        )
        if account_code is not None:
            stmt = stmt.where(LedgerLine.account_code == account_code)
        if account_prefix is not None:
            stmt = stmt.where(LedgerLine.account_code.startswith(account_prefix))
        if month_key is not None:
            stmt = stmt.where(LedgerEntry.month_key == month_key)
        stmt = stmt.order_by(
            LedgerEntry.entry_date,
            LedgerEntry.posted_at,
            LedgerEntry.id,
            LedgerLine.line_seq,
        )

        return [
            LedgerLineView(
                entry_id=entry.id,
                entry_date=entry.entry_date,
                source=entry.source,
                status=entry.status,
                student_id=entry.student_id,
                residence_id=entry.residence_id,
                month_key=entry.month_key,
                reversal_of_id=entry.reversal_of_id,
                line_seq=line.line_seq,
                account_code=line.account_code,
                account_name=line.account_name,
                account_type=line.account_type,
                debit=line.debit,
                credit=line.credit,
                category=line.category,
            )
            for line, entry in self.session.execute(stmt).all()
        ]

    def entries(
        self,
        start: date | None = None,
        end: date | None = None,
        sources: Iterable[str] | None = None,
        student_id: str | None = None,
        residence_id: str | None = None,
        month_key: str | None = None,
        include_drafts: bool = False,
    ) -> list[EntrySummary]:
        """Entry headers matching every given filter."""
        stmt = select(LedgerEntry).where(
            *self._entry_filters(
                start, end, sources, student_id, residence_id, include_drafts
            )
        )
        if month_key is not None:
            stmt = stmt.where(LedgerEntry.month_key == month_key)
        stmt = stmt.order_by(LedgerEntry.entry_date, LedgerEntry.posted_at, LedgerEntry.id)

        return [
            EntrySummary(
                entry_id=entry.id,
                entry_date=entry.entry_date,
                source=entry.source,
                source_id=entry.source_id,
                status=entry.status,
                student_id=entry.student_id,
                residence_id=entry.residence_id,
                month_key=entry.month_key,
                total_debit=entry.total_debit,
                total_credit=entry.total_credit,
                idempotency_key=entry.idempotency_key,
                reversal_of_id=entry.reversal_of_id,
                posted_at=entry.posted_at,
                metadata=dict(entry.entry_metadata or {}),
            )
            for entry in self.session.scalars(stmt).all()
        ]

    def reversed_entry_ids(self) -> set[UUID]:
        """IDs of posted entries that have a posted reversal."""
        stmt = select(LedgerEntry.reversal_of_id).where(
            LedgerEntry.reversal_of_id.is_not(None),
            LedgerEntry.status == EntryStatus.POSTED.value,
        )
        return set(self.session.scalars(stmt).all())

    def trial_balance(self, as_of: date | None = None) -> list[TrialBalanceRow]:
        """Debit and credit totals per account over posted entries."""
        totals: dict[str, list] = {}
        for line in self.lines(end=as_of):
            row = totals.setdefault(
                line.account_code,
                [line.account_name, line.account_type, Decimal("0"), Decimal("0")],
            )
            row[2] += line.debit
            row[3] += line.credit

        return [
            TrialBalanceRow(
                account_code=code,
                account_name=name,
                account_type=account_type,
                debit_total=debits,
                credit_total=credits,
            )
            for code, (name, account_type, debits, credits) in sorted(totals.items())
        ]
