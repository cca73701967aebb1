"""
Ledger Auditor (``tenancy_modules.audit.auditor``).

Responsibility
--------------
Read-only integrity scan of the whole ledger.  Anything the write path
should have prevented (legacy imports, manual database edits) shows up here
as a finding: unbalanced entries, malformed lines, unreadable metadata,
duplicate accruals for a student-month, settlements against months that
were never accrued, and months settled beyond what is owed.

Architecture position
---------------------
**Modules layer**.  Reads through ``LedgerSelector``; never writes,
deletes or corrects.  Findings are data for a human to act on.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from tenancy_config import get_active_config
from tenancy_config.schema import LedgerSettings
from tenancy_engines.outstanding import CATEGORIES, compute_outstanding
from tenancy_kernel.domain.metadata import parse_metadata
from tenancy_kernel.domain.money import ZERO
from tenancy_kernel.exceptions import InvalidMetadataError
from tenancy_kernel.logging_config import get_logger
from tenancy_kernel.models.ledger import EntrySource
from tenancy_kernel.selectors.ledger_selector import LedgerLineView, LedgerSelector

logger = get_logger("modules.audit.auditor")


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


class FindingCode(Enum):
    UNBALANCED_ENTRY = "UNBALANCED_ENTRY"
    HEADER_TOTAL_MISMATCH = "HEADER_TOTAL_MISMATCH"
    INVALID_LINE = "INVALID_LINE"
    INVALID_METADATA = "INVALID_METADATA"
    DUPLICATE_ACCRUAL = "DUPLICATE_ACCRUAL"
    ORPHAN_SETTLEMENT = "ORPHAN_SETTLEMENT"
    OVER_SETTLED = "OVER_SETTLED"


@dataclass(frozen=True)
class AuditFinding:
    code: FindingCode
    severity: Severity
    detail: str
    entry_id: UUID | None = None
    student_id: str | None = None
    month_key: str | None = None


@dataclass(frozen=True)
class AuditReport:
    entries_scanned: int
    lines_scanned: int
    findings: tuple[AuditFinding, ...]

    @property
    def is_clean(self) -> bool:
        return not self.findings

    def by_code(self, code: FindingCode) -> tuple[AuditFinding, ...]:
        return tuple(f for f in self.findings if f.code == code)


class LedgerAuditor:
    """Scans posted entries and reports integrity findings."""

    def __init__(self, session: Session, settings: LedgerSettings | None = None):
        self._settings = settings or get_active_config()
        self._selector = LedgerSelector(session)
        self._tolerance = self._settings.balance_tolerance

    def audit(self) -> AuditReport:
        entries = self._selector.entries()
        lines = self._selector.lines()
        lines_by_entry: dict[UUID, list[LedgerLineView]] = defaultdict(list)
        for line in lines:
            lines_by_entry[line.entry_id].append(line)

        findings: list[AuditFinding] = []
        for entry in entries:
            findings.extend(self._check_entry(entry, lines_by_entry.get(entry.entry_id, [])))
        findings.extend(self._check_duplicate_accruals(entries))
        findings.extend(self._check_receivables(lines))

        report = AuditReport(
            entries_scanned=len(entries),
            lines_scanned=len(lines),
            findings=tuple(findings),
        )
        log = logger.info if report.is_clean else logger.warning
        log(
            "ledger_audit_completed",
            extra={
                "entries_scanned": report.entries_scanned,
                "lines_scanned": report.lines_scanned,
                "finding_count": len(report.findings),
            },
        )
        return report

    def _check_entry(self, entry, lines: list[LedgerLineView]) -> list[AuditFinding]:
        findings: list[AuditFinding] = []
        total_debit = sum((line.debit for line in lines), ZERO)
        total_credit = sum((line.credit for line in lines), ZERO)

        if abs(total_debit - total_credit) > self._tolerance:
            findings.append(
                AuditFinding(
                    FindingCode.UNBALANCED_ENTRY,
                    Severity.ERROR,
                    f"debits {total_debit} != credits {total_credit}",
                    entry_id=entry.entry_id,
                    student_id=entry.student_id,
                    month_key=entry.month_key,
                )
            )
        if total_debit != entry.total_debit or total_credit != entry.total_credit:
            findings.append(
                AuditFinding(
                    FindingCode.HEADER_TOTAL_MISMATCH,
                    Severity.WARNING,
                    f"header {entry.total_debit}/{entry.total_credit}, "
                    f"lines {total_debit}/{total_credit}",
                    entry_id=entry.entry_id,
                    student_id=entry.student_id,
                )
            )

        for line in lines:
            problem = _line_problem(line.debit, line.credit)
            if problem is not None:
                findings.append(
                    AuditFinding(
                        FindingCode.INVALID_LINE,
                        Severity.ERROR,
                        f"line {line.line_seq} ({line.account_code}): {problem}",
                        entry_id=entry.entry_id,
                        student_id=entry.student_id,
                    )
                )

        try:
            parse_metadata(entry.source, entry.metadata)
        except InvalidMetadataError as exc:
            findings.append(
                AuditFinding(
                    FindingCode.INVALID_METADATA,
                    Severity.WARNING,
                    str(exc),
                    entry_id=entry.entry_id,
                    student_id=entry.student_id,
                )
            )
        return findings

    def _check_duplicate_accruals(self, entries) -> list[AuditFinding]:
        reversed_ids = {e.reversal_of_id for e in entries if e.reversal_of_id is not None}
        accruals: dict[tuple[str, str], list] = defaultdict(list)
        for entry in entries:
            if entry.source != EntrySource.RENTAL_ACCRUAL.value:
                continue
            if entry.entry_id in reversed_ids:
                continue
            accruals[(entry.student_id, entry.month_key)].append(entry)

        findings = []
        for (student_id, month), group in sorted(accruals.items(), key=lambda kv: (str(kv[0][0]), str(kv[0][1]))):
            if len(group) < 2:
                continue
            for duplicate in group[1:]:
                findings.append(
                    AuditFinding(
                        FindingCode.DUPLICATE_ACCRUAL,
                        Severity.ERROR,
                        f"{len(group)} accruals for {student_id} {month}",
                        entry_id=duplicate.entry_id,
                        student_id=student_id,
                        month_key=month,
                    )
                )
        return findings

    def _check_receivables(self, lines: list[LedgerLineView]) -> list[AuditFinding]:
        prefix = f"{self._settings.account_codes.receivable_control}-"
        by_student: dict[str, list[LedgerLineView]] = defaultdict(list)
        for line in lines:
            if line.account_code.startswith(prefix):
                by_student[line.account_code[len(prefix):]].append(line)

        findings = []
        for student_id in sorted(by_student):
            for row in compute_outstanding(by_student[student_id]):
                for category in CATEGORIES:
                    owed = row.owed(category)
                    paid = row.paid(category)
                    if paid > ZERO and owed <= ZERO:
                        findings.append(
                            AuditFinding(
                                FindingCode.ORPHAN_SETTLEMENT,
                                Severity.ERROR,
                                f"{category} settled {paid} with nothing accrued",
                                student_id=student_id,
                                month_key=row.month_key,
                            )
                        )
                    elif row.raw_outstanding(category) < ZERO:
                        findings.append(
                            AuditFinding(
                                FindingCode.OVER_SETTLED,
                                Severity.ERROR,
                                f"{category} owed {owed}, settled {paid}",
                                student_id=student_id,
                                month_key=row.month_key,
                            )
                        )
        return findings


def _line_problem(debit: Decimal, credit: Decimal) -> str | None:
    if debit < ZERO or credit < ZERO:
        return "negative amount"
    if debit > ZERO and credit > ZERO:
        return "both debit and credit set"
    if debit == ZERO and credit == ZERO:
        return "zero amount"
    return None
