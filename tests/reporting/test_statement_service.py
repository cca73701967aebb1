"""
Tests for StatementService (statements reconstructed from the ledger).

Scenario used throughout:
    2025-05-01  owner puts 1,000.00 cash into the business
    2025-06-01  stu-1 lease starts (rent 180, admin 20, deposit 180)
    2025-06-15  stu-1 pays rent 180, admin 20, deposit 180 in cash
    2025-06-20  maintenance expense 75.00 paid in cash
    2025-07-01  July accrued (rent 180, admin 20), unpaid
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from tenancy_modules.reporting import (
    BreakdownBasis,
    IncomeBasis,
    render_to_dict,
)


@pytest.fixture
def ledger(make_lease, make_accrual_service, allocation_service, post_manual):
    post_manual("1000", "3000", "1000.00", date(2025, 5, 1), memo="Owner contribution")

    lease = make_lease("stu-1")
    accruals = make_accrual_service([lease])
    accruals.create_student_accrual(lease, 6, 2025)
    allocation_service.allocate_payment(
        "stu-1",
        {"rent": "180", "admin": "20", "deposit": "180"},
        date(2025, 6, 15),
        payment_id="pay-june",
    )
    post_manual("5000", "1000", "75.00", date(2025, 6, 20), memo="Plumber", residence_id="res-1")
    july = accruals.create_student_accrual(lease, 7, 2025)
    return accruals, july


class TestIncomeStatement:
    def test_accrual_basis(self, ledger, statement_service):
        report = statement_service.income_statement(date(2025, 6, 1), date(2025, 6, 30))

        assert report.basis == IncomeBasis.ACCRUAL
        assert report.revenue_for("4000") == Decimal("180.00")
        assert report.revenue_for("4100") == Decimal("20.00")
        assert report.total_revenue == Decimal("200.00")
        assert report.expense_for("5000") == Decimal("75.00")
        assert report.net_income == Decimal("125.00")

    def test_accrual_basis_recognizes_unpaid_month(self, ledger, statement_service):
        report = statement_service.income_statement(date(2025, 7, 1), date(2025, 7, 31), "accrual")

        assert report.total_revenue == Decimal("200.00")
        assert report.total_expenses == Decimal("0")

    def test_cash_basis_counts_money_received(self, ledger, statement_service):
        report = statement_service.income_statement(
            date(2025, 6, 1), date(2025, 6, 30), IncomeBasis.CASH
        )

        assert report.basis == IncomeBasis.CASH
        # Deposit received is a liability, not revenue
        assert report.revenue_for("4000") == Decimal("180.00")
        assert report.revenue_for("4100") == Decimal("20.00")
        assert report.total_revenue == Decimal("200.00")
        assert report.expense_for("5000") == Decimal("75.00")

    def test_cash_basis_ignores_unpaid_month(self, ledger, statement_service):
        report = statement_service.income_statement(date(2025, 7, 1), date(2025, 7, 31), "cash")

        assert report.total_revenue == Decimal("0")

    def test_cash_basis_counts_advance_payment_once(
        self, ledger, statement_service, allocation_service, make_lease
    ):
        accruals, _ = ledger
        allocation_service.allocate_payment(
            "stu-1", {"rent": "200"}, date(2025, 7, 10), payment_id="pay-july"
        )
        accruals.create_student_accrual(make_lease("stu-1"), 8, 2025)

        july = statement_service.income_statement(date(2025, 7, 1), date(2025, 7, 31), "cash")
        august = statement_service.income_statement(date(2025, 8, 1), date(2025, 8, 31), "cash")

        # 180 settles July, 20 is parked and applied to August without new cash
        assert july.revenue_for("4000") == Decimal("200.00")
        assert august.total_revenue == Decimal("0")

    def test_reversal_removes_revenue(self, ledger, statement_service):
        accruals, july = ledger
        accruals.reverse_accrual(july.entry_id, "moved out")

        report = statement_service.income_statement(date(2025, 7, 1), date(2025, 7, 31))

        assert report.total_revenue == Decimal("0")

    def test_forfeited_deposit_is_income(self, ledger, statement_service, deposit_service):
        deposit_service.forfeit_deposit(
            "stu-1", Decimal("60"), "damage", forfeiture_date=date(2025, 7, 31)
        )

        report = statement_service.income_statement(date(2025, 7, 1), date(2025, 7, 31))

        assert report.revenue_for("4200") == Decimal("60.00")

    def test_residence_filter(self, ledger, statement_service, make_lease, make_accrual_service):
        other = make_lease("stu-2", residence_id="res-2", monthly_rent=Decimal("250.00"))
        make_accrual_service([other]).create_student_accrual(other, 6, 2025)

        res1 = statement_service.income_statement(
            date(2025, 6, 1), date(2025, 6, 30), residence_id="res-1"
        )
        res2 = statement_service.income_statement(
            date(2025, 6, 1), date(2025, 6, 30), residence_id="res-2"
        )

        assert res1.revenue_for("4000") == Decimal("180.00")
        assert res2.revenue_for("4000") == Decimal("250.00")
        assert res2.total_expenses == Decimal("0")

    def test_end_before_start(self, ledger, statement_service):
        with pytest.raises(ValueError):
            statement_service.income_statement(date(2025, 7, 1), date(2025, 6, 1))

    def test_unknown_basis(self, ledger, statement_service):
        with pytest.raises(ValueError):
            statement_service.income_statement(date(2025, 6, 1), date(2025, 6, 30), "modified")


class TestBalanceSheet:
    def test_balances_with_receivables_rolled_up(self, ledger, statement_service):
        report = statement_service.balance_sheet(date(2025, 7, 31))

        assert report.amount_for("1000") == Decimal("1305.00")
        assert report.amount_for("1100") == Decimal("200.00")
        assert report.amount_for("1100-stu-1") == Decimal("0")
        assert [(l.account_code, l.amount) for l in report.receivables_by_student] == [
            ("1100-stu-1", Decimal("200.00"))
        ]
        assert report.total_assets == Decimal("1505.00")
        assert report.amount_for("2020") == Decimal("180.00")
        assert report.amount_for("3000") == Decimal("1000.00")
        assert report.retained_earnings == Decimal("325.00")
        assert report.total_liabilities + report.total_equity == report.total_assets
        assert report.balance_check == Decimal("0")
        assert report.balanced

    def test_as_of_excludes_later_entries(self, ledger, statement_service):
        report = statement_service.balance_sheet(date(2025, 5, 31))

        assert report.total_assets == Decimal("1000.00")
        assert report.receivables_by_student == ()
        assert report.balanced

    def test_unapplied_credit_is_a_liability(self, ledger, statement_service, allocation_service):
        allocation_service.allocate_payment(
            "stu-1", {"rent": "230"}, date(2025, 7, 10), payment_id="pay-extra"
        )

        report = statement_service.balance_sheet(date(2025, 7, 31))

        assert report.amount_for("2200") == Decimal("50.00")
        assert report.balanced

    def test_report_renders_to_json(self, ledger, statement_service):
        report = statement_service.balance_sheet(date(2025, 7, 31))

        data = json.loads(json.dumps(render_to_dict(report)))

        assert data["metadata"]["report_type"] == "balance_sheet"
        assert data["metadata"]["as_of_date"] == "2025-07-31"
        assert data["total_assets"] == "1505.00"
        assert data["balanced"] is True


class TestMonthlyBreakdown:
    def test_cumulative(self, ledger, statement_service):
        report = statement_service.monthly_breakdown(2025)

        assert report.basis == BreakdownBasis.CUMULATIVE
        assert [m.month_key for m in report.months][:3] == ["2025-01", "2025-02", "2025-03"]
        assert len(report.months) == 12
        june, july = report.months[5], report.months[6]
        assert june.income_statement.net_income == Decimal("125.00")
        assert july.income_statement.net_income == Decimal("325.00")
        assert july.balance_sheet.balanced
        assert july.balance_sheet_change is None

    def test_monthly_activity(self, ledger, statement_service):
        report = statement_service.monthly_breakdown(2025, "monthly_activity")

        july = report.months[6]
        assert july.income_statement.net_income == Decimal("200.00")
        change = july.balance_sheet_change
        assert [(l.account_code, l.amount) for l in change.assets] == [("1100", Decimal("200.00"))]
        assert change.total_assets == Decimal("200.00")
        assert change.total_liabilities == Decimal("0")

    def test_cash_income_basis(self, ledger, statement_service):
        report = statement_service.monthly_breakdown(
            2025, BreakdownBasis.MONTHLY_ACTIVITY, IncomeBasis.CASH
        )

        assert report.income_basis == IncomeBasis.CASH
        assert report.months[6].income_statement.total_revenue == Decimal("0")


class TestTrialBalance:
    def test_balanced(self, ledger, statement_service):
        report = statement_service.trial_balance(date(2025, 7, 31))

        assert report.is_balanced
        assert report.total_debits == report.total_credits
        codes = [line.account_code for line in report.lines]
        assert codes == sorted(codes)
        assert "1100-stu-1" in codes

    def test_net_balance_on_normal_side(self, ledger, statement_service):
        report = statement_service.trial_balance(date(2025, 7, 31))

        by_code = {line.account_code: line for line in report.lines}
        assert by_code["4000"].net_balance == Decimal("360.00")
        assert by_code["1100-stu-1"].net_balance == Decimal("200.00")
        assert by_code["2020"].net_balance == Decimal("180.00")


class TestCashFlowStatement:
    def test_month_groups_cash_movements(self, ledger, statement_service):
        report = statement_service.cash_flow_statement(date(2025, 6, 1), date(2025, 6, 30))

        assert report.opening_cash == Decimal("1000.00")
        assert [(i.key, i.amount) for i in report.receipts] == [
            ("admin", Decimal("20.00")),
            ("deposit", Decimal("180.00")),
            ("rent", Decimal("180.00")),
        ]
        assert report.total_receipts == Decimal("380.00")
        assert [(i.key, i.amount) for i in report.expenses_paid] == [("5000", Decimal("75.00"))]
        assert report.net_operating == Decimal("305.00")
        assert report.financing == ()
        assert report.net_change == Decimal("305.00")
        assert report.closing_cash == Decimal("1305.00")
        assert report.reconciles

    def test_opening_plus_net_change_is_closing_cash(self, ledger, statement_service):
        report = statement_service.cash_flow_statement(date(2025, 1, 1), date(2025, 12, 31))
        sheet = statement_service.balance_sheet(date(2025, 12, 31))

        assert report.opening_cash == Decimal("0")
        assert [(i.key, i.amount) for i in report.financing] == [("3000", Decimal("1000.00"))]
        assert report.opening_cash + report.net_change == report.closing_cash
        assert report.closing_cash == sheet.amount_for("1000") + sheet.amount_for("1001")

    def test_unpaid_accrual_moves_no_cash(self, ledger, statement_service):
        report = statement_service.cash_flow_statement(date(2025, 7, 1), date(2025, 7, 31))

        assert report.receipts == ()
        assert report.net_change == Decimal("0")
        assert report.opening_cash == report.closing_cash == Decimal("1305.00")

    def test_advance_payment_counted_when_received(
        self, ledger, statement_service, allocation_service, make_lease
    ):
        accruals, _ = ledger
        allocation_service.allocate_payment(
            "stu-1",
            {"rent": "200"},
            date(2025, 7, 10),
            payment_id="pay-july",
            payment_method="Bank Transfer",
        )
        accruals.create_student_accrual(make_lease("stu-1"), 8, 2025)

        july = statement_service.cash_flow_statement(date(2025, 7, 1), date(2025, 7, 31))
        august = statement_service.cash_flow_statement(date(2025, 8, 1), date(2025, 8, 31))

        # 180 settles July, 20 is parked; both arrived in July
        assert july.receipt_for("rent") == Decimal("200.00")
        assert {l.account_code: l.amount for l in july.closing_by_account} == {
            "1000": Decimal("1305.00"),
            "1001": Decimal("200.00"),
        }
        # Applying the parked credit to August moves no cash
        assert august.net_change == Decimal("0")
        assert august.opening_cash == Decimal("1505.00")

    def test_renders_to_json(self, ledger, statement_service):
        report = statement_service.cash_flow_statement(date(2025, 6, 1), date(2025, 6, 30))

        data = json.loads(json.dumps(render_to_dict(report)))

        assert data["metadata"]["report_type"] == "cash_flow"
        assert data["closing_cash"] == "1305.00"

    def test_end_before_start(self, ledger, statement_service):
        with pytest.raises(ValueError):
            statement_service.cash_flow_statement(date(2025, 7, 1), date(2025, 6, 1))
