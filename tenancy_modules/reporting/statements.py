"""
Pure financial statement transformation functions.

These functions fold ledger lines (``LedgerLineView``) and trial balance
rows into report DTOs.  ZERO I/O.  ZERO side effects.

Functions in this module follow the tenancy_engines purity convention:
- No database access
- No clock access
- No file I/O
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from tenancy_kernel.domain.money import BALANCE_TOLERANCE, ZERO, round_money
from tenancy_kernel.models.account import AccountType
from tenancy_kernel.selectors.ledger_selector import LedgerLineView, TrialBalanceRow
from tenancy_modules.reporting.config import ReportingConfig
from tenancy_modules.reporting.models import (
    BalanceSheetChange,
    BalanceSheetReport,
    CashFlowItem,
    CashFlowStatementReport,
    IncomeBasis,
    IncomeStatementReport,
    ReportMetadata,
    StatementLine,
    TrialBalanceLineItem,
    TrialBalanceReport,
)

_DEBIT_NORMAL = frozenset({AccountType.ASSET.value, AccountType.EXPENSE.value})


# =========================================================================
# Helpers
# =========================================================================


def compute_natural_balance(debit_total: Decimal, credit_total: Decimal, account_type: str) -> Decimal:
    """
    Balance on the account's normal side.

    Asset, Expense: debit_total - credit_total
    Liability, Equity, Income: credit_total - debit_total
    """
    if account_type in _DEBIT_NORMAL:
        return debit_total - credit_total
    return credit_total - debit_total


def aggregate_lines(lines: Iterable[LedgerLineView]) -> list[TrialBalanceRow]:
    """Debit and credit totals per account, ordered by code."""
    totals: dict[str, list] = {}
    for line in lines:
        row = totals.setdefault(line.account_code, [line.account_name, line.account_type, ZERO, ZERO])
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


def _statement_lines(
    amounts: Mapping[str, Decimal],
    names: Mapping[str, str],
    include_zero: bool = False,
) -> tuple[StatementLine, ...]:
    return tuple(
        StatementLine(code, names.get(code, code), round_money(amount))
        for code, amount in sorted(amounts.items())
        if include_zero or round_money(amount) != ZERO
    )


def _total(lines: Iterable[StatementLine]) -> Decimal:
    return round_money(sum((line.amount for line in lines), ZERO))


def _income_statement(
    revenue: Mapping[str, Decimal],
    expenses: Mapping[str, Decimal],
    names: Mapping[str, str],
    basis: IncomeBasis,
    metadata: ReportMetadata,
) -> IncomeStatementReport:
    revenue_lines = _statement_lines(revenue, names)
    expense_lines = _statement_lines(expenses, names)
    total_revenue = _total(revenue_lines)
    total_expenses = _total(expense_lines)
    return IncomeStatementReport(
        metadata=metadata,
        basis=basis,
        revenue=revenue_lines,
        expenses=expense_lines,
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_income=round_money(total_revenue - total_expenses),
    )


# =========================================================================
# 1. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    rows: list[TrialBalanceRow],
    metadata: ReportMetadata,
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> TrialBalanceReport:
    items = tuple(
        TrialBalanceLineItem(
            account_code=row.account_code,
            account_name=row.account_name,
            account_type=row.account_type,
            debit_balance=round_money(row.debit_total),
            credit_balance=round_money(row.credit_total),
            net_balance=round_money(
                compute_natural_balance(row.debit_total, row.credit_total, row.account_type)
            ),
        )
        for row in sorted(rows, key=lambda r: r.account_code)
    )
    total_debits = round_money(sum((i.debit_balance for i in items), ZERO))
    total_credits = round_money(sum((i.credit_balance for i in items), ZERO))
    return TrialBalanceReport(
        metadata=metadata,
        lines=items,
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=abs(total_debits - total_credits) <= tolerance,
    )


# =========================================================================
# 2. INCOME STATEMENT
# =========================================================================


def build_income_statement_accrual(
    lines: Iterable[LedgerLineView],
    names: Mapping[str, str],
    metadata: ReportMetadata,
) -> IncomeStatementReport:
    """
    Revenue and expenses as recognized in the ledger.

    ``lines`` are the period's posted lines, already restricted to the
    sources that carry income and expense.
    """
    revenue: dict[str, Decimal] = defaultdict(lambda: ZERO)
    expenses: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for line in lines:
        if line.account_type == AccountType.INCOME.value:
            revenue[line.account_code] += line.credit - line.debit
        elif line.account_type == AccountType.EXPENSE.value:
            expenses[line.account_code] += line.debit - line.credit
    return _income_statement(revenue, expenses, names, IncomeBasis.ACCRUAL, metadata)


def build_income_statement_cash(
    lines: Iterable[LedgerLineView],
    names: Mapping[str, str],
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> IncomeStatementReport:
    """
    Revenue as cash received and expenses as cash paid.

    An entry debiting a cash account is a receipt: its credits to a
    student receivable or to unapplied credit count as revenue of the
    line's category (deposits are not revenue), and its Income lines count
    as they are.  An entry crediting a cash account is a disbursement: its
    Expense lines count.
    """
    by_entry: dict[UUID, list[LedgerLineView]] = defaultdict(list)
    for line in lines:
        by_entry[line.entry_id].append(line)

    cash = set(config.cash_accounts)
    revenue: dict[str, Decimal] = defaultdict(lambda: ZERO)
    expenses: dict[str, Decimal] = defaultdict(lambda: ZERO)

    for entry_lines in by_entry.values():
        is_receipt = any(l.account_code in cash and l.debit > ZERO for l in entry_lines)
        is_disbursement = any(l.account_code in cash and l.credit > ZERO for l in entry_lines)

        for line in entry_lines:
            if is_receipt:
                settles = (
                    config.is_student_receivable(line.account_code)
                    or line.account_code == config.unapplied_credit
                )
                if settles and line.credit > ZERO:
                    target = config.income_account_for(line.category)
                    if target is not None:
                        revenue[target] += line.credit
                elif line.account_type == AccountType.INCOME.value:
                    revenue[line.account_code] += line.credit - line.debit
            if is_disbursement and line.account_type == AccountType.EXPENSE.value:
                expenses[line.account_code] += line.debit - line.credit

    return _income_statement(revenue, expenses, names, IncomeBasis.CASH, metadata)


# =========================================================================
# 3. BALANCE SHEET
# =========================================================================


def build_balance_sheet(
    rows: list[TrialBalanceRow],
    names: Mapping[str, str],
    config: ReportingConfig,
    metadata: ReportMetadata,
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> BalanceSheetReport:
    """
    Classified balance sheet from cumulative trial balance rows.

    Student receivables roll up under the receivable control account.
    Income less expenses to date is added to retained earnings.
    """
    assets: dict[str, Decimal] = defaultdict(lambda: ZERO)
    liabilities: dict[str, Decimal] = defaultdict(lambda: ZERO)
    equity: dict[str, Decimal] = defaultdict(lambda: ZERO)
    by_student: dict[str, Decimal] = {}
    student_names: dict[str, str] = {}
    earnings = ZERO

    for row in rows:
        natural = compute_natural_balance(row.debit_total, row.credit_total, row.account_type)
        if row.account_type == AccountType.ASSET.value:
            if config.is_student_receivable(row.account_code):
                assets[config.receivable_control] += natural
                by_student[row.account_code] = natural
                student_names[row.account_code] = row.account_name
            else:
                assets[row.account_code] += natural
        elif row.account_type == AccountType.LIABILITY.value:
            liabilities[row.account_code] += natural
        elif row.account_type == AccountType.EQUITY.value:
            equity[row.account_code] += natural
        elif row.account_type == AccountType.INCOME.value:
            earnings += natural
        elif row.account_type == AccountType.EXPENSE.value:
            earnings -= natural

    equity[config.retained_earnings] += earnings
    retained = round_money(equity[config.retained_earnings])

    include_zero = config.include_zero_balances
    asset_lines = _statement_lines(assets, names, include_zero)
    liability_lines = _statement_lines(liabilities, names, include_zero)
    equity_lines = _statement_lines(equity, names, include_zero)

    total_assets = _total(asset_lines)
    total_liabilities = _total(liability_lines)
    total_equity = _total(equity_lines)
    balance_check = round_money(total_assets - (total_liabilities + total_equity))

    return BalanceSheetReport(
        metadata=metadata,
        assets=asset_lines,
        liabilities=liability_lines,
        equity=equity_lines,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        total_equity=total_equity,
        retained_earnings=retained,
        receivables_by_student=_statement_lines(by_student, student_names, include_zero),
        balance_check=balance_check,
        balanced=abs(balance_check) <= tolerance,
    )


def _section_change(
    current: tuple[StatementLine, ...],
    previous: tuple[StatementLine, ...],
) -> tuple[StatementLine, ...]:
    before = {line.account_code: line for line in previous}
    after = {line.account_code: line for line in current}
    changes = []
    for code in sorted(before.keys() | after.keys()):
        line = after.get(code) or before[code]
        delta = (after[code].amount if code in after else ZERO) - (
            before[code].amount if code in before else ZERO
        )
        if delta != ZERO:
            changes.append(StatementLine(code, line.account_name, round_money(delta)))
    return tuple(changes)


def build_balance_sheet_change(
    current: BalanceSheetReport,
    previous: BalanceSheetReport,
) -> BalanceSheetChange:
    """Net movement of every balance-sheet line between two dates."""
    return BalanceSheetChange(
        assets=_section_change(current.assets, previous.assets),
        liabilities=_section_change(current.liabilities, previous.liabilities),
        equity=_section_change(current.equity, previous.equity),
        total_assets=round_money(current.total_assets - previous.total_assets),
        total_liabilities=round_money(current.total_liabilities - previous.total_liabilities),
        total_equity=round_money(current.total_equity - previous.total_equity),
    )


# =========================================================================
# 4. CASH FLOW STATEMENT
# =========================================================================

_RECEIPT_LABELS = {
    "rent": "Rent received",
    "admin": "Admin fees received",
    "deposit": "Security deposits received",
}


def _cash_balances(lines: Iterable[LedgerLineView], cash: frozenset[str]) -> dict[str, Decimal]:
    balances: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for line in lines:
        if line.account_code in cash:
            balances[line.account_code] += line.debit - line.credit
    return balances


def _cash_flow_items(
    amounts: Mapping[str, Decimal],
    labels: Mapping[str, str],
) -> tuple[CashFlowItem, ...]:
    return tuple(
        CashFlowItem(key, labels.get(key, key), round_money(amount))
        for key, amount in sorted(amounts.items())
        if round_money(amount) != ZERO
    )


def build_cash_flow_statement(
    opening_lines: Iterable[LedgerLineView],
    period_lines: Iterable[LedgerLineView],
    names: Mapping[str, str],
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> CashFlowStatementReport:
    """
    Cash-flow statement replayed from ledger lines.

    ``opening_lines`` are every posted line before the period and
    ``period_lines`` the lines inside it.  For each entry that touches a
    cash account, every other line is classified by what it settles:

    - student receivable or unapplied credit: receipt of the line's category
    - Income account: receipt under the account
    - Expense account: expense paid
    - Equity account: financing
    - anything else (deposit refunds, other assets): other

    A line's cash effect is ``credit - debit``.  Transfers between cash
    accounts have no other lines and only move cash between accounts.
    """
    cash = frozenset(config.cash_accounts)
    opening = _cash_balances(opening_lines, cash)

    by_entry: dict[UUID, list[LedgerLineView]] = defaultdict(list)
    for line in period_lines:
        by_entry[line.entry_id].append(line)

    receipts: dict[str, Decimal] = defaultdict(lambda: ZERO)
    expenses: dict[str, Decimal] = defaultdict(lambda: ZERO)
    financing: dict[str, Decimal] = defaultdict(lambda: ZERO)
    other: dict[str, Decimal] = defaultdict(lambda: ZERO)
    movement: dict[str, Decimal] = defaultdict(lambda: ZERO)

    for entry_lines in by_entry.values():
        if not any(line.account_code in cash for line in entry_lines):
            continue
        for line in entry_lines:
            if line.account_code in cash:
                movement[line.account_code] += line.debit - line.credit
                continue
            effect = line.credit - line.debit
            settles = (
                config.is_student_receivable(line.account_code)
                or line.account_code == config.unapplied_credit
            )
            if settles:
                receipts[line.category or line.account_code] += effect
            elif line.account_type == AccountType.INCOME.value:
                receipts[line.account_code] += effect
            elif line.account_type == AccountType.EXPENSE.value:
                expenses[line.account_code] -= effect
            elif line.account_type == AccountType.EQUITY.value:
                financing[line.account_code] += effect
            else:
                other[line.account_code] += effect

    labels = {**names, **_RECEIPT_LABELS}
    receipt_items = _cash_flow_items(receipts, labels)
    expense_items = _cash_flow_items(expenses, names)
    financing_items = _cash_flow_items(financing, names)
    other_items = _cash_flow_items(other, names)

    total_receipts = round_money(sum((i.amount for i in receipt_items), ZERO))
    total_expenses = round_money(sum((i.amount for i in expense_items), ZERO))
    net_operating = round_money(total_receipts - total_expenses)
    net_financing = round_money(sum((i.amount for i in financing_items), ZERO))
    net_other = round_money(sum((i.amount for i in other_items), ZERO))
    net_change = round_money(net_operating + net_financing + net_other)

    opening_cash = round_money(sum(opening.values(), ZERO))
    closing = {code: opening.get(code, ZERO) + movement.get(code, ZERO) for code in cash}
    closing_cash = round_money(sum(closing.values(), ZERO))

    return CashFlowStatementReport(
        metadata=metadata,
        opening_cash=opening_cash,
        receipts=receipt_items,
        expenses_paid=expense_items,
        financing=financing_items,
        other=other_items,
        total_receipts=total_receipts,
        total_expenses_paid=total_expenses,
        net_operating=net_operating,
        net_financing=net_financing,
        net_other=net_other,
        net_change=net_change,
        closing_cash=closing_cash,
        closing_by_account=_statement_lines(closing, names, include_zero=True),
        reconciles=opening_cash + net_change == closing_cash,
    )


# =========================================================================
# 5. RENDERER (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Handles:
    - Decimal -> str (preserving precision)
    - UUID -> str
    - date -> ISO format string
    - Enum -> .value
    - Nested frozen dataclasses -> nested dicts
    - Tuples -> lists
    - None preserved
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
