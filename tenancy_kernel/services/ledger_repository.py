"""
Module: tenancy_kernel.services.ledger_repository
Responsibility: The only write path into the ledger.  Validates and persists
    balanced entries, enforces idempotency, and creates reversals.
Architecture position: Kernel > Services.  Participates in the caller's
    transaction (flushes, never commits); the calling module service owns
    the transaction boundary.

Invariants enforced:
    - sum(debit) == sum(credit) within tolerance (UnbalancedEntryError).
    - Every line has exactly one positive side (InvalidLineError).
    - At least two lines per entry.
    - Every account exists and is active.
    - Metadata variant matches the entry source (InvalidMetadataError).
    - Idempotency key unique (DuplicateEntryError); checked up front and
      backed by the UNIQUE constraint for concurrent writers.
    - An entry is reversed at most once (EntryAlreadyReversedError); the
      original is never modified.

Audit relevance:
    Every ledger row in the system was written through post_entry(), so the
    checks above hold for the whole ledger, not just for well-behaved callers.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenancy_kernel.domain.clock import Clock
from tenancy_kernel.domain.metadata import EntryMetadata, check_metadata
from tenancy_kernel.domain.money import BALANCE_TOLERANCE, ZERO, round_money
from tenancy_kernel.exceptions import (
    DuplicateEntryError,
    EntryAlreadyReversedError,
    EntryNotFoundError,
    InvalidLineError,
    UnbalancedEntryError,
)
from tenancy_kernel.logging_config import get_logger
from tenancy_kernel.models.ledger import (
    EntrySource,
    EntryStatus,
    LedgerEntry,
    LedgerLine,
)
from tenancy_kernel.services.chart_of_accounts import ChartOfAccountsService

logger = get_logger("services.ledger_repository")


@dataclass(frozen=True)
class LineDraft:
    """One line of an entry about to be posted."""

    account_code: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None
    category: str | None = None

    @classmethod
    def dr(cls, account_code: str, amount, **kwargs) -> "LineDraft":
        return cls(account_code=account_code, debit=round_money(amount), **kwargs)

    @classmethod
    def cr(cls, account_code: str, amount, **kwargs) -> "LineDraft":
        return cls(account_code=account_code, credit=round_money(amount), **kwargs)


@dataclass(frozen=True)
class EntryDraft:
    """A complete entry about to be posted."""

    entry_date: date
    description: str
    source: EntrySource
    lines: tuple[LineDraft, ...]
    idempotency_key: str
    metadata: EntryMetadata
    source_id: str | None = None
    student_id: str | None = None
    residence_id: str | None = None
    month_key: str | None = None
    reversal_of_id: UUID | None = None
    status: EntryStatus = EntryStatus.POSTED


class LedgerRepository:
    """
    Validated persistence for ledger entries.

    Contract:
        post_entry() either inserts a fully valid entry with its lines or
        raises without touching the session state of earlier work.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        chart: ChartOfAccountsService | None = None,
        tolerance: Decimal = BALANCE_TOLERANCE,
    ):
        self._session = session
        self._clock = clock
        self._chart = chart or ChartOfAccountsService(session)
        self._tolerance = tolerance

    @property
    def chart(self) -> ChartOfAccountsService:
        return self._chart

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_entry(self, entry_id: UUID) -> LedgerEntry:
        entry = self._session.get(LedgerEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def find_by_idempotency_key(self, key: str) -> LedgerEntry | None:
        return self._session.scalars(
            select(LedgerEntry).where(LedgerEntry.idempotency_key == key)
        ).one_or_none()

    def find_reversal_of(self, entry_id: UUID) -> LedgerEntry | None:
        return self._session.scalars(
            select(LedgerEntry).where(LedgerEntry.reversal_of_id == entry_id)
        ).one_or_none()

    def find_by_source_id(
        self,
        source_id: str,
        sources: tuple[EntrySource, ...],
    ) -> list[LedgerEntry]:
        stmt = select(LedgerEntry).where(
            LedgerEntry.source_id == source_id,
            LedgerEntry.source.in_([s.value for s in sources]),
        )
        return list(self._session.scalars(stmt).all())

    def find_entries(
        self,
        source: EntrySource,
        student_id: str | None = None,
        month_key: str | None = None,
    ) -> list[LedgerEntry]:
        stmt = select(LedgerEntry).where(LedgerEntry.source == source.value)
        if student_id is not None:
            stmt = stmt.where(LedgerEntry.student_id == student_id)
        if month_key is not None:
            stmt = stmt.where(LedgerEntry.month_key == month_key)
        return list(self._session.scalars(stmt.order_by(LedgerEntry.entry_date)).all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _validate_lines(self, lines: tuple[LineDraft, ...]) -> tuple[Decimal, Decimal]:
        if len(lines) < 2:
            raise InvalidLineError(
                lines[0].account_code if lines else "-",
                "an entry needs at least two lines",
            )

        total_debit = ZERO
        total_credit = ZERO
        for line in lines:
            debit = round_money(line.debit)
            credit = round_money(line.credit)
            if debit < ZERO or credit < ZERO:
                raise InvalidLineError(line.account_code, "negative amount")
            if debit > ZERO and credit > ZERO:
                raise InvalidLineError(line.account_code, "both debit and credit set")
            if debit == ZERO and credit == ZERO:
                raise InvalidLineError(line.account_code, "zero amount")
            total_debit += debit
            total_credit += credit

        if abs(total_debit - total_credit) > self._tolerance:
            raise UnbalancedEntryError(str(total_debit), str(total_credit))
        return total_debit, total_credit

    def post_entry(self, draft: EntryDraft) -> LedgerEntry:
        """
        Validate and insert an entry.

        Raises:
            InvalidLineError, UnbalancedEntryError, InvalidMetadataError,
            AccountNotFoundError, AccountInactiveError, DuplicateEntryError,
            EntryAlreadyReversedError.
        """
        source = EntrySource(draft.source)
        check_metadata(source.value, draft.metadata)
        total_debit, total_credit = self._validate_lines(draft.lines)
        accounts = [self._chart.require_postable(line.account_code) for line in draft.lines]

        if draft.reversal_of_id is not None:
            prior = self.find_reversal_of(draft.reversal_of_id)
            if prior is not None:
                raise EntryAlreadyReversedError(str(draft.reversal_of_id), str(prior.id))

        existing = self.find_by_idempotency_key(draft.idempotency_key)
        if existing is not None:
            raise DuplicateEntryError(draft.idempotency_key, str(existing.id))

        status = EntryStatus(draft.status)
        entry = LedgerEntry(
            entry_date=draft.entry_date,
            description=draft.description,
            source=source.value,
            source_id=draft.source_id,
            status=status.value,
            total_debit=total_debit,
            total_credit=total_credit,
            student_id=draft.student_id,
            residence_id=draft.residence_id,
            month_key=draft.month_key,
            idempotency_key=draft.idempotency_key,
            reversal_of_id=draft.reversal_of_id,
            posted_at=self._clock.now() if status == EntryStatus.POSTED else None,
            entry_metadata=draft.metadata.to_dict(),
            lines=[
                LedgerLine(
                    line_seq=seq,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=account.account_type,
                    debit=round_money(line.debit),
                    credit=round_money(line.credit),
                    description=line.description,
                    category=line.category,
                )
                for seq, (line, account) in enumerate(zip(draft.lines, accounts), start=1)
            ],
        )

        try:
            with self._session.begin_nested():
                self._session.add(entry)
                self._session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent writer holding the same key
            logger.warning(
                "ledger_entry_duplicate_on_insert",
                extra={"idempotency_key": draft.idempotency_key},
            )
            raise DuplicateEntryError(draft.idempotency_key) from exc

        logger.info(
            "ledger_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "source": source.value,
                "status": status.value,
                "entry_date": draft.entry_date.isoformat(),
                "student_id": draft.student_id,
                "month_key": draft.month_key,
                "total": str(total_debit),
                "line_count": len(draft.lines),
            },
        )
        return entry

    def reverse_entry(
        self,
        original: LedgerEntry,
        *,
        source: EntrySource,
        description: str,
        idempotency_key: str,
        metadata: EntryMetadata,
        entry_date: date | None = None,
    ) -> LedgerEntry:
        """
        Post the mirror image of ``original``: every debit becomes a credit.

        The reversal inherits student, residence and month tags.  It is dated
        ``entry_date`` if given, otherwise on the original's date.
        """
        lines = tuple(
            LineDraft(
                account_code=line.account_code,
                debit=line.credit,
                credit=line.debit,
                description=f"Reversal: {line.description or original.description}",
                category=line.category,
            )
            for line in original.lines
        )
        return self.post_entry(
            EntryDraft(
                entry_date=entry_date or original.entry_date,
                description=description,
                source=source,
                lines=lines,
                idempotency_key=idempotency_key,
                metadata=metadata,
                source_id=str(original.id),
                student_id=original.student_id,
                residence_id=original.residence_id,
                month_key=original.month_key,
                reversal_of_id=original.id,
            )
        )

    def post_draft(self, entry_id: UUID) -> LedgerEntry:
        """Move a DRAFT entry to POSTED."""
        entry = self.get_entry(entry_id)
        if entry.is_posted:
            return entry
        entry.status = EntryStatus.POSTED.value
        entry.posted_at = self._clock.now()
        self._session.flush()
        logger.info("ledger_draft_posted", extra={"entry_id": str(entry.id)})
        return entry
