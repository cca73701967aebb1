#!/usr/bin/env python3
"""
View financial statements rebuilt from the ledger.

Usage:
    python3 scripts/view_statements.py income --start 2025-01-01 --end 2025-06-30 --basis cash
    python3 scripts/view_statements.py balance --as-of 2025-06-30 --residence res-1
    python3 scripts/view_statements.py monthly --year 2025 --basis monthly_activity
    python3 scripts/view_statements.py cashflow --start 2025-01-01 --end 2025-12-31
    python3 scripts/view_statements.py trial --as-of 2025-06-30 --json
"""

import argparse
import json
import logging
import os
import sys
from datetime import date
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DEFAULT_DB_URL = os.environ.get("DATABASE_URL", "sqlite:///tenancy_ledger.db")
W = 72


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print statements from the tenancy ledger.")
    parser.add_argument("--database-url", default=DEFAULT_DB_URL)
    parser.add_argument("--config", help="Ledger config YAML (default: packaged defaults)")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    sub = parser.add_subparsers(dest="report", required=True)

    income = sub.add_parser("income", help="Income statement for a period")
    income.add_argument("--start", type=date.fromisoformat, required=True)
    income.add_argument("--end", type=date.fromisoformat, required=True)
    income.add_argument("--basis", choices=["accrual", "cash"], default="accrual")
    income.add_argument("--residence")

    balance = sub.add_parser("balance", help="Balance sheet as of a date")
    balance.add_argument("--as-of", type=date.fromisoformat, default=date.today())
    balance.add_argument("--residence")

    monthly = sub.add_parser("monthly", help="Month-by-month breakdown for a year")
    monthly.add_argument("--year", type=int, default=date.today().year)
    monthly.add_argument("--basis", choices=["cumulative", "monthly_activity"], default="cumulative")
    monthly.add_argument("--income-basis", choices=["accrual", "cash"], default="accrual")
    monthly.add_argument("--residence")

    cashflow = sub.add_parser("cashflow", help="Cash-flow statement for a period")
    cashflow.add_argument("--start", type=date.fromisoformat, required=True)
    cashflow.add_argument("--end", type=date.fromisoformat, required=True)
    cashflow.add_argument("--residence")

    trial = sub.add_parser("trial", help="Trial balance as of a date")
    trial.add_argument("--as-of", type=date.fromisoformat, default=date.today())

    return parser.parse_args(argv)


def _print_lines(title: str, lines, total) -> None:
    print(f"  {title}")
    for line in lines:
        print(f"    {line.account_code:<12}{line.account_name:<40}{line.amount:>14,.2f}")
    print(f"    {'Total ' + title:<52}{total:>14,.2f}")


def print_income_statement(report) -> None:
    print("=" * W)
    meta = report.metadata
    print(f"  INCOME STATEMENT ({report.basis.value})  {meta.period_start} .. {meta.period_end}")
    print("=" * W)
    _print_lines("Revenue", report.revenue, report.total_revenue)
    _print_lines("Expenses", report.expenses, report.total_expenses)
    print(f"  {'Net income':<54}{report.net_income:>14,.2f}")
    print()


def print_balance_sheet(report) -> None:
    print("=" * W)
    print(f"  BALANCE SHEET as of {report.metadata.as_of_date}")
    print("=" * W)
    _print_lines("Assets", report.assets, report.total_assets)
    _print_lines("Liabilities", report.liabilities, report.total_liabilities)
    _print_lines("Equity", report.equity, report.total_equity)
    status = "OK" if report.balanced else "FAIL"
    print(f"  [{status}] A - (L + E) = {report.balance_check}")
    print()


def _print_items(title: str, items, total) -> None:
    print(f"  {title}")
    for item in items:
        print(f"    {item.key:<12}{item.label:<40}{item.amount:>14,.2f}")
    print(f"    {'Total ' + title:<52}{total:>14,.2f}")


def print_cash_flow(report) -> None:
    print("=" * W)
    meta = report.metadata
    print(f"  CASH FLOW STATEMENT  {meta.period_start} .. {meta.period_end}")
    print("=" * W)
    print(f"  {'Opening cash':<54}{report.opening_cash:>14,.2f}")
    _print_items("Receipts", report.receipts, report.total_receipts)
    _print_items("Expenses paid", report.expenses_paid, report.total_expenses_paid)
    print(f"  {'Net operating':<54}{report.net_operating:>14,.2f}")
    _print_items("Financing", report.financing, report.net_financing)
    if report.other:
        _print_items("Other", report.other, report.net_other)
    print(f"  {'Net change':<54}{report.net_change:>14,.2f}")
    print(f"  {'Closing cash':<54}{report.closing_cash:>14,.2f}")
    print(f"  [{'OK' if report.reconciles else 'FAIL'}] opening + net change = closing")
    print()


def print_trial_balance(report) -> None:
    print("=" * W)
    print(f"  TRIAL BALANCE as of {report.metadata.as_of_date}")
    print("=" * W)
    for line in report.lines:
        print(
            f"    {line.account_code:<12}{line.account_name:<32}"
            f"{line.debit_balance:>12,.2f}{line.credit_balance:>12,.2f}"
        )
    print(f"    {'Totals':<44}{report.total_debits:>12,.2f}{report.total_credits:>12,.2f}")
    print(f"  [{'OK' if report.is_balanced else 'FAIL'}] balanced")
    print()


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.disable(logging.CRITICAL)

    from tenancy_config import get_active_config
    from tenancy_kernel.db.engine import get_session, init_engine_from_url
    from tenancy_kernel.exceptions import TenancyLedgerError
    from tenancy_modules._orm_registry import create_all_tables
    from tenancy_modules.reporting import StatementService, render_to_dict

    try:
        settings = get_active_config(args.config)
        init_engine_from_url(args.database_url)
        create_all_tables()
    except (TenancyLedgerError, OSError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    session = get_session()
    try:
        service = StatementService(session, settings=settings)

        if args.report == "income":
            report = service.income_statement(args.start, args.end, args.basis, args.residence)
        elif args.report == "balance":
            report = service.balance_sheet(args.as_of, args.residence)
        elif args.report == "monthly":
            report = service.monthly_breakdown(
                args.year, args.basis, args.income_basis, args.residence
            )
        elif args.report == "cashflow":
            report = service.cash_flow_statement(args.start, args.end, args.residence)
        else:
            report = service.trial_balance(args.as_of)

        if args.json:
            print(json.dumps(render_to_dict(report), indent=2))
        elif args.report == "income":
            print_income_statement(report)
        elif args.report == "balance":
            print_balance_sheet(report)
        elif args.report == "monthly":
            for snapshot in report.months:
                print(f"--- {snapshot.month_key} ---")
                print_income_statement(snapshot.income_statement)
                print_balance_sheet(snapshot.balance_sheet)
        elif args.report == "cashflow":
            print_cash_flow(report)
        else:
            print_trial_balance(report)
        return 0
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
