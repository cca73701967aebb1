"""
Statement Service (``tenancy_modules.reporting.service``).

Responsibility
--------------
Reconstructs financial statements from the ledger: income statement
(accrual or cash basis), balance sheet with receivables rolled up per
student, monthly breakdowns, the cash-flow statement and the trial
balance.  Bridges ``LedgerSelector`` to the pure functions in
``statements.py``.

Architecture position
---------------------
**Modules layer**.  Read-only: no entries are posted, no locks are taken.

Invariants enforced
-------------------
* Only POSTED entries contribute.
* All monetary amounts are ``Decimal`` rounded to cents.
* An unbalanced balance sheet is reported (``balanced=False``, warning
  logged), never corrected.

Consistency
-----------
Each selector call sees the committed state at the time of the query
(READ COMMITTED).  A report assembled while allocations commit in parallel
is eventually consistent.

Failure modes
-------------
* ``period_end`` before ``period_start``  -> ``ValueError``.
* Unknown basis  -> ``ValueError`` from the basis enum.
"""

from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy.orm import Session

from tenancy_config import get_active_config
from tenancy_config.schema import LedgerSettings
from tenancy_kernel.domain.clock import Clock, SystemClock
from tenancy_kernel.domain.months import make_month_key, month_bounds
from tenancy_kernel.logging_config import get_logger
from tenancy_kernel.models.ledger import EntrySource
from tenancy_kernel.selectors.ledger_selector import LedgerSelector
from tenancy_kernel.services.chart_of_accounts import ChartOfAccountsService
from tenancy_modules.reporting.config import ReportingConfig
from tenancy_modules.reporting.models import (
    BalanceSheetReport,
    BreakdownBasis,
    CashFlowStatementReport,
    IncomeBasis,
    IncomeStatementReport,
    MonthlyBreakdownReport,
    MonthlySnapshot,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from tenancy_modules.reporting.statements import (
    aggregate_lines,
    build_balance_sheet,
    build_balance_sheet_change,
    build_cash_flow_statement,
    build_income_statement_accrual,
    build_income_statement_cash,
    build_trial_balance,
)

logger = get_logger("modules.reporting.service")

# Sources whose entries carry recognized income and expense
_ACCRUAL_BASIS_SOURCES = (
    EntrySource.RENTAL_ACCRUAL,
    EntrySource.PAYMENT,
    EntrySource.MANUAL,
    EntrySource.RENTAL_ACCRUAL_REVERSAL,
)


class StatementService:
    """
    Financial statement generation.

    Every public method returns a typed report DTO and is read-only.
    """

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session = session
        self._settings = settings or get_active_config()
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.from_settings(self._settings)
        self._selector = LedgerSelector(session)
        self._chart = ChartOfAccountsService(
            session, self._settings.account_codes.receivable_control
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _account_names(self) -> dict[str, str]:
        return {account.code: account.name for account in self._chart.list_accounts()}

    def _metadata(
        self,
        report_type: ReportType,
        as_of: date,
        period_start: date | None = None,
        period_end: date | None = None,
        residence_id: str | None = None,
    ) -> ReportMetadata:
        return ReportMetadata(
            report_type=report_type,
            entity_name=self._config.entity_name,
            currency=self._config.currency,
            as_of_date=as_of,
            generated_at=self._clock.now().isoformat(),
            period_start=period_start,
            period_end=period_end,
            residence_id=residence_id,
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def income_statement(
        self,
        period_start: date,
        period_end: date,
        basis: IncomeBasis | str = IncomeBasis.ACCRUAL,
        residence_id: str | None = None,
    ) -> IncomeStatementReport:
        """
        Income statement for an inclusive date range.

        Accrual basis counts Income and Expense lines of the period.  Cash
        basis counts money received against receivables or as advance
        payment (by category) and expenses actually paid.
        """
        if period_end < period_start:
            raise ValueError(f"period_end {period_end} is before period_start {period_start}")
        basis = IncomeBasis(getattr(basis, "value", basis))
        metadata = self._metadata(
            ReportType.INCOME_STATEMENT,
            period_end,
            period_start=period_start,
            period_end=period_end,
            residence_id=residence_id,
        )
        names = self._account_names()

        if basis == IncomeBasis.ACCRUAL:
            lines = self._selector.lines(
                start=period_start,
                end=period_end,
                sources=_ACCRUAL_BASIS_SOURCES,
                residence_id=residence_id,
            )
            report = build_income_statement_accrual(lines, names, metadata)
        else:
            lines = self._selector.lines(
                start=period_start,
                end=period_end,
                residence_id=residence_id,
            )
            report = build_income_statement_cash(lines, names, self._config, metadata)

        logger.info(
            "income_statement_generated",
            extra={
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "basis": basis.value,
                "residence_id": residence_id,
                "total_revenue": str(report.total_revenue),
                "total_expenses": str(report.total_expenses),
                "net_income": str(report.net_income),
            },
        )
        return report

    def balance_sheet(self, as_of: date, residence_id: str | None = None) -> BalanceSheetReport:
        """Balance sheet from every posted entry dated on or before ``as_of``."""
        lines = self._selector.lines(end=as_of, residence_id=residence_id)
        report = build_balance_sheet(
            aggregate_lines(lines),
            self._account_names(),
            self._config,
            self._metadata(ReportType.BALANCE_SHEET, as_of, residence_id=residence_id),
            tolerance=self._settings.balance_tolerance,
        )

        if not report.balanced:
            logger.warning(
                "balance_sheet_unbalanced",
                extra={
                    "as_of_date": as_of.isoformat(),
                    "residence_id": residence_id,
                    "balance_check": str(report.balance_check),
                },
            )
        logger.info(
            "balance_sheet_generated",
            extra={
                "as_of_date": as_of.isoformat(),
                "residence_id": residence_id,
                "total_assets": str(report.total_assets),
                "total_liabilities": str(report.total_liabilities),
                "total_equity": str(report.total_equity),
                "balanced": report.balanced,
            },
        )
        return report

    def monthly_breakdown(
        self,
        year: int,
        basis: BreakdownBasis | str = BreakdownBasis.CUMULATIVE,
        income_basis: IncomeBasis | str = IncomeBasis.ACCRUAL,
        residence_id: str | None = None,
    ) -> MonthlyBreakdownReport:
        """
        Twelve month-end snapshots for a year.

        cumulative:       year-to-date income statement, month-end balance sheet.
        monthly_activity: the month's income statement, month-end balance
                          sheet and the net change of each balance-sheet line.
        """
        basis = BreakdownBasis(getattr(basis, "value", basis))
        income_basis = IncomeBasis(getattr(income_basis, "value", income_basis))
        year_start = date(year, 1, 1)

        snapshots: list[MonthlySnapshot] = []
        previous = None
        if basis == BreakdownBasis.MONTHLY_ACTIVITY:
            previous = self.balance_sheet(year_start - timedelta(days=1), residence_id)

        for month in range(1, 13):
            first, last = month_bounds(year, month)
            start = year_start if basis == BreakdownBasis.CUMULATIVE else first
            income = self.income_statement(start, last, income_basis, residence_id)
            sheet = self.balance_sheet(last, residence_id)
            change = None
            if previous is not None:
                change = build_balance_sheet_change(sheet, previous)
                previous = sheet
            snapshots.append(
                MonthlySnapshot(
                    month_key=make_month_key(year, month),
                    income_statement=income,
                    balance_sheet=sheet,
                    balance_sheet_change=change,
                )
            )

        logger.info(
            "monthly_breakdown_generated",
            extra={"year": year, "basis": basis.value, "income_basis": income_basis.value},
        )
        return MonthlyBreakdownReport(
            year=year,
            basis=basis,
            income_basis=income_basis,
            months=tuple(snapshots),
        )

    def cash_flow_statement(
        self,
        period_start: date,
        period_end: date,
        residence_id: str | None = None,
    ) -> CashFlowStatementReport:
        """
        Cash movements over an inclusive date range.

        Receipts from students are grouped by payment category, Expense
        lines paid from cash by account, and Equity lines as financing.
        Opening cash plus the net change equals closing cash unless an
        entry touching cash is unbalanced.
        """
        if period_end < period_start:
            raise ValueError(f"period_end {period_end} is before period_start {period_start}")
        opening_lines = self._selector.lines(
            end=period_start - timedelta(days=1), residence_id=residence_id
        )
        period_lines = self._selector.lines(
            start=period_start, end=period_end, residence_id=residence_id
        )
        report = build_cash_flow_statement(
            opening_lines,
            period_lines,
            self._account_names(),
            self._config,
            self._metadata(
                ReportType.CASH_FLOW,
                period_end,
                period_start=period_start,
                period_end=period_end,
                residence_id=residence_id,
            ),
        )

        if not report.reconciles:
            logger.warning(
                "cash_flow_unreconciled",
                extra={
                    "period_start": period_start.isoformat(),
                    "period_end": period_end.isoformat(),
                    "opening_cash": str(report.opening_cash),
                    "net_change": str(report.net_change),
                    "closing_cash": str(report.closing_cash),
                },
            )
        logger.info(
            "cash_flow_statement_generated",
            extra={
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "residence_id": residence_id,
                "net_operating": str(report.net_operating),
                "net_financing": str(report.net_financing),
                "net_change": str(report.net_change),
            },
        )
        return report

    def trial_balance(self, as_of: date) -> TrialBalanceReport:
        report = build_trial_balance(
            self._selector.trial_balance(as_of),
            self._metadata(ReportType.TRIAL_BALANCE, as_of),
            tolerance=self._settings.balance_tolerance,
        )
        logger.info(
            "trial_balance_generated",
            extra={
                "as_of_date": as_of.isoformat(),
                "line_count": len(report.lines),
                "is_balanced": report.is_balanced,
            },
        )
        return report
