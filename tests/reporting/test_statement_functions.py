"""
Tests for the pure statement functions in tenancy_modules.reporting.statements.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from tenancy_kernel.selectors.ledger_selector import LedgerLineView, TrialBalanceRow
from tenancy_modules.reporting import ReportingConfig, ReportMetadata, ReportType
from tenancy_modules.reporting.statements import (
    aggregate_lines,
    build_balance_sheet,
    build_cash_flow_statement,
    build_trial_balance,
    compute_natural_balance,
    render_to_dict,
)

_METADATA = ReportMetadata(
    report_type=ReportType.BALANCE_SHEET,
    entity_name="Test",
    currency="USD",
    as_of_date=date(2025, 6, 30),
    generated_at="2025-06-30T00:00:00+00:00",
)


def _row(code, account_type, debit="0", credit="0", name=None):
    return TrialBalanceRow(
        account_code=code,
        account_name=name or code,
        account_type=account_type,
        debit_total=Decimal(debit),
        credit_total=Decimal(credit),
    )


class TestNaturalBalance:
    def test_debit_normal(self):
        assert compute_natural_balance(Decimal("100"), Decimal("30"), "Asset") == Decimal("70")
        assert compute_natural_balance(Decimal("100"), Decimal("30"), "Expense") == Decimal("70")

    def test_credit_normal(self):
        assert compute_natural_balance(Decimal("30"), Decimal("100"), "Income") == Decimal("70")
        assert compute_natural_balance(Decimal("30"), Decimal("100"), "Liability") == Decimal("70")


class TestBuildBalanceSheet:
    def test_rolls_up_student_receivables(self):
        rows = [
            _row("1000", "Asset", debit="500"),
            _row("1100-a", "Asset", debit="120", name="AR - A"),
            _row("1100-b", "Asset", debit="80", name="AR - B"),
            _row("3000", "Equity", credit="500"),
            _row("4000", "Income", credit="200"),
        ]

        report = build_balance_sheet(rows, {"1100": "Accounts Receivable"}, ReportingConfig(), _METADATA)

        assert [(l.account_code, l.amount) for l in report.assets] == [
            ("1000", Decimal("500.00")),
            ("1100", Decimal("200.00")),
        ]
        assert report.assets[1].account_name == "Accounts Receivable"
        assert [l.account_name for l in report.receivables_by_student] == ["AR - A", "AR - B"]
        assert report.retained_earnings == Decimal("200.00")
        assert report.balanced

    def test_unbalanced_is_reported_not_corrected(self):
        rows = [
            _row("1000", "Asset", debit="500"),
            _row("3000", "Equity", credit="450"),
        ]

        report = build_balance_sheet(rows, {}, ReportingConfig(), _METADATA)

        assert not report.balanced
        assert report.balance_check == Decimal("50.00")
        assert report.total_assets == Decimal("500.00")

    def test_zero_balances_hidden_by_default(self):
        rows = [_row("1001", "Asset", debit="10", credit="10")]

        hidden = build_balance_sheet(rows, {}, ReportingConfig(), _METADATA)
        shown = build_balance_sheet(
            rows, {}, ReportingConfig(include_zero_balances=True), _METADATA
        )

        assert hidden.assets == ()
        assert [l.account_code for l in shown.assets] == ["1001"]


class TestBuildTrialBalance:
    def test_totals_and_order(self):
        rows = [
            _row("4000", "Income", credit="200"),
            _row("1000", "Asset", debit="200"),
        ]

        report = build_trial_balance(rows, _METADATA)

        assert [l.account_code for l in report.lines] == ["1000", "4000"]
        assert report.total_debits == report.total_credits == Decimal("200.00")
        assert report.is_balanced

    def test_out_of_balance(self):
        report = build_trial_balance([_row("1000", "Asset", debit="200.02")], _METADATA)

        assert not report.is_balanced


class TestAggregateLines:
    def test_sums_per_account(self):
        class _Line:
            def __init__(self, code, debit, credit):
                self.entry_id = uuid4()
                self.account_code = code
                self.account_name = code
                self.account_type = "Asset"
                self.debit = Decimal(debit)
                self.credit = Decimal(credit)

        rows = aggregate_lines(
            [_Line("1001", "10", "0"), _Line("1000", "5", "0"), _Line("1001", "0", "3")]
        )

        assert [(r.account_code, r.debit_total, r.credit_total) for r in rows] == [
            ("1000", Decimal("5"), Decimal("0.00")),
            ("1001", Decimal("10"), Decimal("3")),
        ]


def _entry(entry_date, *lines):
    """Ledger lines of one entry: (code, type, debit, credit[, category])."""
    entry_id = uuid4()
    return [
        LedgerLineView(
            entry_id=entry_id,
            entry_date=entry_date,
            source="manual",
            status="posted",
            student_id=None,
            residence_id=None,
            month_key=None,
            reversal_of_id=None,
            line_seq=seq,
            account_code=code,
            account_name=code,
            account_type=account_type,
            debit=Decimal(debit),
            credit=Decimal(credit),
            category=rest[0] if rest else None,
        )
        for seq, (code, account_type, debit, credit, *rest) in enumerate(lines)
    ]


class TestBuildCashFlowStatement:
    _june = date(2025, 6, 10)

    def _build(self, opening, period):
        return build_cash_flow_statement(opening, period, {}, ReportingConfig(), _METADATA)

    def test_classifies_counter_lines(self):
        opening = _entry(date(2025, 5, 1), ("1000", "Asset", "500", "0"), ("3000", "Equity", "0", "500"))
        period = (
            _entry(self._june, ("1000", "Asset", "150", "0"), ("1100-a", "Asset", "0", "150", "rent"))
            + _entry(self._june, ("1001", "Asset", "30", "0"), ("2200", "Liability", "0", "30", "admin"))
            + _entry(self._june, ("5100", "Expense", "40", "0"), ("1000", "Asset", "0", "40"))
            + _entry(self._june, ("2020", "Liability", "60", "0"), ("1000", "Asset", "0", "60"))
            + _entry(self._june, ("1000", "Asset", "200", "0"), ("3000", "Equity", "0", "200"))
            # accruals touch no cash
            + _entry(self._june, ("1100-a", "Asset", "180", "0"), ("4000", "Income", "0", "180", "rent"))
        )

        report = self._build(opening, period)

        assert report.opening_cash == Decimal("500.00")
        assert report.receipt_for("rent") == Decimal("150.00")
        assert report.receipt_for("admin") == Decimal("30.00")
        assert report.receipt_for("4000") == Decimal("0")
        assert [(i.key, i.amount) for i in report.expenses_paid] == [("5100", Decimal("40.00"))]
        assert [(i.key, i.amount) for i in report.financing] == [("3000", Decimal("200.00"))]
        assert [(i.key, i.amount) for i in report.other] == [("2020", Decimal("-60.00"))]
        assert report.net_operating == Decimal("140.00")
        assert report.net_change == Decimal("280.00")
        assert report.closing_cash == Decimal("780.00")
        assert report.reconciles

    def test_transfer_between_cash_accounts(self):
        opening = _entry(date(2025, 5, 1), ("1000", "Asset", "500", "0"), ("3000", "Equity", "0", "500"))
        period = _entry(self._june, ("1001", "Asset", "120", "0"), ("1000", "Asset", "0", "120"))

        report = self._build(opening, period)

        assert report.net_change == Decimal("0")
        assert {l.account_code: l.amount for l in report.closing_by_account} == {
            "1000": Decimal("380.00"),
            "1001": Decimal("120.00"),
        }
        assert report.reconciles

    def test_unbalanced_cash_entry_does_not_reconcile(self):
        period = _entry(self._june, ("1000", "Asset", "100", "0"), ("1100-a", "Asset", "0", "90", "rent"))

        report = self._build([], period)

        assert report.closing_cash == Decimal("100.00")
        assert report.net_change == Decimal("90.00")
        assert not report.reconciles


class TestRenderToDict:
    def test_converts_values(self):
        data = render_to_dict(_METADATA)

        assert data["report_type"] == "balance_sheet"
        assert data["as_of_date"] == "2025-06-30"
        assert data["period_start"] is None
