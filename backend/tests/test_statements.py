"""
Statement generator tests.

The walkthrough fixture books the three basic flows:
- maintenance expense accrued in March, settled in cash in April
- rental income of 50 received by bank transfer in March
"""

from datetime import datetime

import pytest

from propledger.errors import NotFoundError, ValidationError
from propledger.services import expense_service, income_service, ledger_service, statement_service
from propledger.services.ledger_service import TransactionHeader, credit, debit
from propledger.time_utils import parse_period, utcnow

from conftest import deactivate


@pytest.fixture
def walkthrough(db_session, chart, finance_user):
    expense = expense_service.create_expense(
        {"amount": 100, "category": "Maintenance", "description": "Fix geyser", "expense_date": "2026-03-10"},
        user_id=finance_user.id,
    )
    expense_service.approve_expense(
        expense.expense_id, {"payment_method": "Cash", "paid_date": "2026-04-05"}, user_id=finance_user.id,
    )
    income_service.create_income(
        {
            "amount": 50,
            "category": "Rental",
            "description": "Hall hire",
            "payment_status": "Received",
            "payment_method": "Bank Transfer",
            "income_date": "2026-03-20",
        },
        user_id=finance_user.id,
    )
    return expense


def _rows(report):
    return {row["account_code"]: (row["debit_cents"], row["credit_cents"]) for row in report["accounts"]}


class TestTrialBalance:
    def test_basic_flows_balance_as_of_today(self, db_session, chart, finance_user):
        expense = expense_service.create_expense(
            {"amount": 100, "category": "Maintenance", "description": "Fix geyser"}, user_id=finance_user.id,
        )
        expense_service.approve_expense(expense.expense_id, {"payment_method": "Cash"}, user_id=finance_user.id)
        income_service.create_income(
            {
                "amount": 50,
                "category": "Rental",
                "description": "Hall hire",
                "payment_status": "Received",
                "payment_method": "Bank Transfer",
            },
            user_id=finance_user.id,
        )

        report = statement_service.trial_balance(as_of=utcnow())

        assert _rows(report) == {
            "1000": (0, 10000),
            "1001": (5000, 0),
            "2000": (10000, 10000),
            "4001": (0, 5000),
            "5007": (10000, 0),
        }
        assert report["totals"] == {"debit_cents": 25000, "credit_cents": 25000, "difference_cents": 0}
        assert report["is_balanced"] is True

    def test_as_of_excludes_later_postings(self, db_session, walkthrough):
        report = statement_service.trial_balance(as_of=datetime(2026, 3, 31, 23, 59, 59))
        assert "1000" not in _rows(report)
        assert _rows(report)["2000"] == (0, 10000)
        assert report["is_balanced"] is True

    def test_deactivated_accounts_still_listed(self, db_session, chart, walkthrough):
        deactivate(chart["5007"])
        report = statement_service.trial_balance(as_of=datetime(2026, 12, 31))
        row = next(r for r in report["accounts"] if r["account_code"] == "5007")
        assert row["is_active"] is False
        assert report["is_balanced"] is True

    def test_cash_basis_keeps_only_cash_movements(self, db_session, walkthrough):
        report = statement_service.trial_balance(as_of=datetime(2026, 12, 31), basis="cash")

        assert _rows(report) == {
            "1000": (0, 10000),
            "1001": (5000, 0),
            "2000": (10000, 0),
            "4001": (0, 5000),
        }
        assert report["totals"] == {"debit_cents": 15000, "credit_cents": 15000, "difference_cents": 0}
        assert report["is_balanced"] is True

    def test_invalid_basis(self, db_session, chart):
        with pytest.raises(ValidationError):
            statement_service.trial_balance(as_of=utcnow(), basis="modified")


class TestIncomeStatement:
    def test_accrual_recognizes_expense_when_incurred(self, db_session, walkthrough):
        march = statement_service.income_statement(period=parse_period("2026-03"))

        assert march["income"]["total_cents"] == 5000
        assert march["expenses"]["total_cents"] == 10000
        assert march["net_income_cents"] == -5000

        april = statement_service.income_statement(period=parse_period("2026-04"))
        assert april["expenses"]["total_cents"] == 0

    def test_cash_basis_follows_payment(self, db_session, walkthrough):
        march = statement_service.income_statement(period=parse_period("2026-03"), basis="cash")
        april = statement_service.income_statement(period=parse_period("2026-04"), basis="cash")

        assert march["expenses"]["total_cents"] == 0
        assert march["income"]["total_cents"] == 5000
        assert april["expenses"]["accounts"] == [
            {"account_code": "5007", "account_name": "Maintenance and Repairs", "amount_cents": 10000},
        ]

    def test_quarter_has_monthly_breakdown(self, db_session, walkthrough):
        report = statement_service.income_statement(period=parse_period("2026-Q1"))
        assert list(report["monthly_breakdown"]) == ["2026-01", "2026-02", "2026-03"]
        assert report["monthly_breakdown"]["2026-03"]["net_income_cents"] == -5000

    def test_explicit_range_uses_dates(self, db_session, walkthrough):
        period = parse_period(None, start="2026-03-15", end="2026-03-31")
        report = statement_service.income_statement(period=period)
        assert report["income"]["total_cents"] == 5000
        assert report["expenses"]["total_cents"] == 0


class TestAccountDetails:
    def test_parent_code_includes_children(self, db_session, walkthrough):
        report = statement_service.account_details(account_code="4000", year=2026, month=3)
        assert sorted(report["included_codes"]) == ["4000", "4001", "4002"]
        assert report["totals"]["credit_cents"] == 5000
        assert report["entries"][0]["account_code"] == "4001"

    def test_cash_basis_attributes_settlement(self, db_session, walkthrough):
        report = statement_service.account_details(account_code="5007", year=2026, basis="cash")
        assert report["totals"]["entry_count"] == 1
        assert report["entries"][0]["account_code"] == "5007"
        assert report["entries"][0]["source"] == "expense_settlement"

    def test_entries_newest_first(self, db_session, walkthrough):
        report = statement_service.account_details(account_code="2000")
        balances = [row["running_balance_cents"] for row in report["entries"]]
        assert balances == [0, 10000]

    def test_month_without_year(self, db_session, chart):
        with pytest.raises(ValidationError):
            statement_service.account_details(account_code="5007", month=3)

    def test_unknown_account(self, db_session, chart):
        with pytest.raises(NotFoundError):
            statement_service.account_details(account_code="8888")


class TestBalanceSheet:
    def test_equation_holds(self, db_session, walkthrough):
        report = statement_service.balance_sheet(as_of=datetime(2026, 12, 31))

        assert report["assets"]["total_cents"] == -5000
        assert report["equity"]["current_earnings_cents"] == -5000
        assert report["accounting_equation"]["is_balanced"] is True

    def test_open_payable_shows_as_liability(self, db_session, walkthrough):
        report = statement_service.balance_sheet(as_of=datetime(2026, 3, 31, 23, 59, 59))
        current = {l["account_code"]: l["balance_cents"] for l in report["liabilities"]["current"]}
        assert current == {"2000": 10000}
        assert report["accounting_equation"]["is_balanced"] is True

    def test_owner_capital_and_fixed_asset(self, db_session, chart):
        header = TransactionHeader(description="Capital", type="manual", source="manual", date=datetime(2026, 1, 2))
        ledger_service.post(header, [debit(chart["1001"], 100000), credit(chart["3000"], 100000)])
        ledger_service.post(header, [debit(chart["1200"], 40000), credit(chart["1001"], 40000)])
        db_session.commit()

        report = statement_service.balance_sheet(as_of=datetime(2026, 1, 31))
        assert report["assets"]["total_non_current_cents"] == 40000
        assert report["assets"]["total_current_cents"] == 60000
        assert report["equity"]["total_cents"] == 100000
        assert report["accounting_equation"]["is_balanced"] is True

    def test_cash_basis_walkthrough(self, db_session, walkthrough):
        report = statement_service.balance_sheet(as_of=datetime(2026, 12, 31), basis="cash")

        assets = {l["account_code"]: l["balance_cents"] for l in report["assets"]["current"]}
        assert assets == {"1000": -10000, "1001": 5000}
        assert report["liabilities"]["total_cents"] == 0
        assert report["equity"]["current_earnings_cents"] == -5000
        assert report["equity"]["non_cash_adjustments_cents"] == 0
        assert report["accounting_equation"]["is_balanced"] is True

    def test_cash_basis_capital_and_fixed_asset(self, db_session, chart):
        header = TransactionHeader(description="Capital", type="manual", source="manual", date=datetime(2026, 1, 2))
        ledger_service.post(header, [debit(chart["1001"], 100000), credit(chart["3000"], 100000)])
        ledger_service.post(header, [debit(chart["1200"], 40000), credit(chart["1001"], 40000)])
        db_session.commit()

        report = statement_service.balance_sheet(as_of=datetime(2026, 1, 31), basis="cash")

        assert report["assets"]["non_current"] == []
        assert report["assets"]["total_cents"] == 60000
        assert report["equity"]["non_cash_adjustments_cents"] == -40000
        assert report["equity"]["total_cents"] == 60000
        assert report["accounting_equation"]["difference_cents"] == 0
        assert report["accounting_equation"]["is_balanced"] is True

    def test_cash_basis_excludes_receivables_and_payables(self, db_session, chart):
        header = TransactionHeader(description="Rent billed", type="manual", source="manual", date=datetime(2026, 2, 1))
        ledger_service.post(header, [debit(chart["1100"], 3000), credit(chart["4001"], 3000)])
        header = TransactionHeader(description="Rent collected", type="manual", source="manual", date=datetime(2026, 2, 3))
        ledger_service.post(header, [debit(chart["1001"], 3000), credit(chart["1100"], 3000)])
        header = TransactionHeader(description="Supplier paid", type="manual", source="manual", date=datetime(2026, 2, 4))
        ledger_service.post(header, [debit(chart["2000"], 1000), credit(chart["1001"], 1000)])
        db_session.commit()

        report = statement_service.balance_sheet(as_of=datetime(2026, 2, 28), basis="cash")

        asset_codes = [l["account_code"] for l in report["assets"]["current"] + report["assets"]["non_current"]]
        liability_codes = [l["account_code"] for l in report["liabilities"]["current"] + report["liabilities"]["non_current"]]
        assert asset_codes == ["1001"]
        assert liability_codes == []
        assert report["equity"]["non_cash_adjustments_cents"] == 2000
        assert report["accounting_equation"]["is_balanced"] is True

        accrual = statement_service.balance_sheet(as_of=datetime(2026, 2, 28))
        assert accrual["equity"]["non_cash_adjustments_cents"] == 0
        assert accrual["accounting_equation"]["is_balanced"] is True


class TestCashFlow:
    def test_operating_flows_reconcile(self, db_session, walkthrough):
        report = statement_service.cash_flow(period=parse_period("2026"))

        labels = {item["label"]: item for item in report["operating_activities"]["items"]}
        assert labels["Maintenance and Repairs"]["outflow_cents"] == 10000
        assert labels["Rental Income - Residential"]["inflow_cents"] == 5000
        assert report["net_change_in_cash_cents"] == -5000
        assert report["cash_at_beginning_cents"] == 0
        assert report["cash_at_end_cents"] == -5000
        assert report["reconciled"] is True

    def test_opening_balance_carries_forward(self, db_session, walkthrough):
        report = statement_service.cash_flow(period=parse_period("2026-04"))
        assert report["cash_at_beginning_cents"] == 5000
        assert report["cash_at_end_cents"] == -5000
        assert report["reconciled"] is True

    def test_manual_entries_classified_by_counterpart(self, db_session, chart):
        header = TransactionHeader(description="Capital", type="manual", source="manual", date=datetime(2026, 1, 2))
        ledger_service.post(header, [debit(chart["1001"], 100000), credit(chart["3000"], 100000)])
        ledger_service.post(header, [debit(chart["1210"], 25000), credit(chart["1001"], 25000)])
        ledger_service.post(header, [debit(chart["1000"], 500), credit(chart["1001"], 500)])
        db_session.commit()

        report = statement_service.cash_flow(period=parse_period("2026-01"))
        assert report["financing_activities"]["net_cents"] == 100000
        assert report["investing_activities"]["net_cents"] == -25000
        assert report["operating_activities"]["items"] == []
        assert report["reconciled"] is True


class TestGeneralLedger:
    def test_opening_running_and_closing(self, db_session, walkthrough):
        report = statement_service.general_ledger(account_code="2000", period=parse_period("2026-04"))

        assert report["opening_balance_cents"] == 10000
        assert [row["running_balance_cents"] for row in report["entries"]] == [0]
        assert report["total_debit_cents"] == 10000
        assert report["closing_balance_cents"] == 0

    def test_unknown_account(self, db_session, chart):
        with pytest.raises(NotFoundError):
            statement_service.general_ledger(account_code="8888", period=parse_period("2026"))
