"""
Reporting Domain Models (``tenancy_modules.reporting.models``).

Frozen dataclass DTOs for every report ``StatementService`` produces.  All
monetary fields are ``Decimal`` rounded to cents.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum


class ReportType(Enum):
    TRIAL_BALANCE = "trial_balance"
    BALANCE_SHEET = "balance_sheet"
    INCOME_STATEMENT = "income_statement"
    MONTHLY_BREAKDOWN = "monthly_breakdown"
    CASH_FLOW = "cash_flow"


class IncomeBasis(Enum):
    ACCRUAL = "accrual"
    CASH = "cash"


class BreakdownBasis(Enum):
    CUMULATIVE = "cumulative"
    MONTHLY_ACTIVITY = "monthly_activity"


@dataclass(frozen=True)
class ReportMetadata:
    report_type: ReportType
    entity_name: str
    currency: str
    as_of_date: date
    generated_at: str
    period_start: date | None = None
    period_end: date | None = None
    residence_id: str | None = None


@dataclass(frozen=True)
class StatementLine:
    """One account on a statement, amount on its natural side."""

    account_code: str
    account_name: str
    amount: Decimal


@dataclass(frozen=True)
class IncomeStatementReport:
    metadata: ReportMetadata
    basis: IncomeBasis
    revenue: tuple[StatementLine, ...]
    expenses: tuple[StatementLine, ...]
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal

    def revenue_for(self, code: str) -> Decimal:
        return next((line.amount for line in self.revenue if line.account_code == code), Decimal("0"))

    def expense_for(self, code: str) -> Decimal:
        return next((line.amount for line in self.expenses if line.account_code == code), Decimal("0"))


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Balance sheet as of a date.

    balance_check = total_assets - (total_liabilities + total_equity); a
    non-zero check is reported, never corrected.
    """

    metadata: ReportMetadata
    assets: tuple[StatementLine, ...]
    liabilities: tuple[StatementLine, ...]
    equity: tuple[StatementLine, ...]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    retained_earnings: Decimal
    receivables_by_student: tuple[StatementLine, ...]
    balance_check: Decimal
    balanced: bool

    def amount_for(self, code: str) -> Decimal:
        for section in (self.assets, self.liabilities, self.equity):
            for line in section:
                if line.account_code == code:
                    return line.amount
        return Decimal("0")


@dataclass(frozen=True)
class BalanceSheetChange:
    """Net change of each balance-sheet line over one month."""

    assets: tuple[StatementLine, ...]
    liabilities: tuple[StatementLine, ...]
    equity: tuple[StatementLine, ...]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal


@dataclass(frozen=True)
class MonthlySnapshot:
    month_key: str
    income_statement: IncomeStatementReport
    balance_sheet: BalanceSheetReport
    balance_sheet_change: BalanceSheetChange | None = None


@dataclass(frozen=True)
class MonthlyBreakdownReport:
    year: int
    basis: BreakdownBasis
    income_basis: IncomeBasis
    months: tuple[MonthlySnapshot, ...]


@dataclass(frozen=True)
class TrialBalanceLineItem:
    account_code: str
    account_name: str
    account_type: str
    debit_balance: Decimal
    credit_balance: Decimal
    net_balance: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    metadata: ReportMetadata
    lines: tuple[TrialBalanceLineItem, ...]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool


@dataclass(frozen=True)
class CashFlowItem:
    """
    One cash-flow line.

    ``key`` is a payment category (rent, admin, deposit) for receipts from
    students and an account code otherwise.
    """

    key: str
    label: str
    amount: Decimal


@dataclass(frozen=True)
class CashFlowStatementReport:
    """
    Movements on the cash accounts over a period, grouped by what the money
    was for.

    receipts and expenses_paid are positive amounts; financing and other
    are signed (positive = cash in).  net_change is the sum of the sections
    and closing_cash is read directly off the cash accounts, so
    ``reconciles`` fails only when an entry touching cash is unbalanced.
    """

    metadata: ReportMetadata
    opening_cash: Decimal
    receipts: tuple[CashFlowItem, ...]
    expenses_paid: tuple[CashFlowItem, ...]
    financing: tuple[CashFlowItem, ...]
    other: tuple[CashFlowItem, ...]
    total_receipts: Decimal
    total_expenses_paid: Decimal
    net_operating: Decimal
    net_financing: Decimal
    net_other: Decimal
    net_change: Decimal
    closing_cash: Decimal
    closing_by_account: tuple[StatementLine, ...]
    reconciles: bool

    def receipt_for(self, key: str) -> Decimal:
        return next((item.amount for item in self.receipts if item.key == key), Decimal("0"))
