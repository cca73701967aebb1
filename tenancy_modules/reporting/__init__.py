"""
Statement reconstruction (``tenancy_modules.reporting``).

Income statement, balance sheet, monthly breakdown, cash-flow statement
and trial balance rebuilt from the ledger.
"""

from tenancy_modules.reporting.config import ReportingConfig
from tenancy_modules.reporting.models import (
    BalanceSheetChange,
    BalanceSheetReport,
    BreakdownBasis,
    CashFlowItem,
    CashFlowStatementReport,
    IncomeBasis,
    IncomeStatementReport,
    MonthlyBreakdownReport,
    MonthlySnapshot,
    ReportMetadata,
    ReportType,
    StatementLine,
    TrialBalanceLineItem,
    TrialBalanceReport,
)
from tenancy_modules.reporting.service import StatementService
from tenancy_modules.reporting.statements import render_to_dict

__all__ = [
    "StatementService",
    "ReportingConfig",
    "BalanceSheetChange",
    "BalanceSheetReport",
    "BreakdownBasis",
    "CashFlowItem",
    "CashFlowStatementReport",
    "IncomeBasis",
    "IncomeStatementReport",
    "MonthlyBreakdownReport",
    "MonthlySnapshot",
    "ReportMetadata",
    "ReportType",
    "StatementLine",
    "TrialBalanceLineItem",
    "TrialBalanceReport",
    "render_to_dict",
]
