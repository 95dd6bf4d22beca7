"""
Expense lifecycle tests: accrual, settlement, direct payment, edit,
cascade delete and atomic rollback.
"""

import json

import pytest

from propledger.errors import AccountResolutionError, ConflictError, ValidationError
from propledger.models import AuditLog, Expense, Transaction, TransactionEntry
from propledger.services import expense_service, ledger_service

from conftest import deactivate


def _entries_for(expense_id):
    return (
        TransactionEntry.query.filter_by(source_id=expense_id, source_model="Expense")
        .order_by(TransactionEntry.id)
        .all()
    )


def _legs(txn):
    return sorted((e.account_code, e.debit_cents, e.credit_cents) for e in txn.entries)


@pytest.fixture
def pending_maintenance(db_session, chart, finance_user):
    return expense_service.create_expense(
        {"amount": 100, "category": "Maintenance", "description": "Fix geyser", "payment_status": "Pending"},
        user_id=finance_user.id,
    )


class TestCreate:
    def test_pending_expense_accrues_payable(self, db_session, pending_maintenance):
        expense = pending_maintenance
        assert expense.payment_status == "Pending"
        assert db_session.query(Transaction).count() == 1
        assert _legs(expense.accrual_transaction) == [("2000", 0, 10000), ("5007", 10000, 0)]

    def test_paid_expense_posts_directly_to_cash(self, db_session, chart, finance_user):
        expense = expense_service.create_expense(
            {
                "amount": "45.50",
                "category": "Utilities",
                "description": "Water bill",
                "payment_status": "Paid",
                "payment_method": "Ecocash",
            },
            user_id=finance_user.id,
        )
        assert expense.payment_status == "Paid"
        assert expense.accrual_transaction_id is None
        assert _legs(expense.payment_transaction) == [("1003", 0, 4550), ("5003", 4550, 0)]
        assert expense.payment_transaction.is_cash_movement is True

    def test_paid_expense_requires_payment_method(self, db_session, chart, finance_user):
        with pytest.raises(ValidationError):
            expense_service.create_expense(
                {"amount": 10, "category": "Utilities", "description": "x", "payment_status": "Paid"},
                user_id=finance_user.id,
            )
        assert db_session.query(Expense).count() == 0

    def test_unknown_category_rejected(self, db_session, chart, finance_user):
        with pytest.raises(ValidationError):
            expense_service.create_expense(
                {"amount": 10, "category": "Yachts", "description": "x"},
                user_id=finance_user.id,
            )

    def test_non_positive_amount_rejected(self, db_session, chart, finance_user):
        with pytest.raises(ValidationError):
            expense_service.create_expense(
                {"amount": 0, "category": "Utilities", "description": "x"},
                user_id=finance_user.id,
            )

    def test_create_is_audited(self, db_session, pending_maintenance):
        log = AuditLog.query.filter_by(action="expense.create").one()
        assert log.record_id == pending_maintenance.expense_id
        assert json.loads(log.after_json)["amount_cents"] == 10000


class TestApprove:
    def test_approve_settles_payable(self, db_session, pending_maintenance, finance_user):
        expense = expense_service.approve_expense(
            pending_maintenance.expense_id, {"payment_method": "Cash"}, user_id=finance_user.id,
        )

        assert expense.payment_status == "Paid"
        assert _legs(expense.payment_transaction) == [("1000", 0, 10000), ("2000", 10000, 0)]

        ap_entries = [e for e in _entries_for(expense.expense_id) if e.account_code == "2000"]
        assert sum(e.debit_cents - e.credit_cents for e in ap_entries) == 0

    def test_settlement_remembers_expense_account(self, db_session, pending_maintenance, finance_user):
        expense = expense_service.approve_expense(
            pending_maintenance.expense_id, {"payment_method": "Cash"}, user_id=finance_user.id,
        )
        meta = ledger_service.load_metadata(expense.payment_transaction.entries[0])
        assert meta.expense_account_code == "5007"
        assert meta.settles_transaction_id == expense.accrual_transaction.transaction_id

    def test_approve_twice_conflicts(self, db_session, pending_maintenance, finance_user):
        expense_service.approve_expense(
            pending_maintenance.expense_id, {"payment_method": "Cash"}, user_id=finance_user.id,
        )
        with pytest.raises(ConflictError):
            expense_service.approve_expense(
                pending_maintenance.expense_id, {"payment_method": "Cash"}, user_id=finance_user.id,
            )

    def test_approve_without_accrual_posts_expense_and_cash(self, db_session, chart, finance_user):
        expense = expense_service.create_expense(
            {"amount": 20, "category": "Insurance", "description": "Cover"},
            user_id=finance_user.id,
        )
        expense.accrual_transaction_id = None
        db_session.flush()
        ledger_service.delete_cascade(expense.expense_id, "Expense")
        db_session.commit()

        expense = expense_service.approve_expense(expense.expense_id, {"payment_method": "Bank Transfer"}, user_id=finance_user.id)
        assert _legs(expense.payment_transaction) == [("1001", 0, 2000), ("5009", 2000, 0)]

    def test_resolution_failure_rolls_back_status(self, db_session, chart, pending_maintenance, finance_user):
        deactivate(chart["1000"], chart["1001"], chart["1002"], chart["1003"], chart["1004"])
        transactions_before = db_session.query(Transaction).count()

        with pytest.raises(AccountResolutionError):
            expense_service.approve_expense(
                pending_maintenance.expense_id, {"payment_method": "Cash"}, user_id=finance_user.id,
            )

        expense = expense_service.get_expense(pending_maintenance.expense_id)
        assert expense.payment_status == "Pending"
        assert expense.paid_at is None
        assert db_session.query(Transaction).count() == transactions_before
        assert AuditLog.query.filter_by(action="expense.approve").count() == 0

    def test_lookup_by_numeric_id(self, db_session, pending_maintenance, finance_user):
        expense = expense_service.approve_expense(
            str(pending_maintenance.id), {"payment_method": "Cash"}, user_id=finance_user.id,
        )
        assert expense.expense_id == pending_maintenance.expense_id


class TestUpdate:
    def test_amount_change_reaccrues(self, db_session, pending_maintenance, finance_user):
        expense = expense_service.update_expense(
            pending_maintenance.expense_id, {"amount": 150}, user_id=finance_user.id,
        )
        entries = _entries_for(expense.expense_id)
        assert len(entries) == 2
        assert sorted(e.debit_cents + e.credit_cents for e in entries) == [15000, 15000]
        assert db_session.query(Transaction).count() == 1

    def test_category_change_moves_expense_account(self, db_session, pending_maintenance, finance_user):
        expense = expense_service.update_expense(
            pending_maintenance.expense_id, {"category": "Electricity"}, user_id=finance_user.id,
        )
        assert "5002" in {e.account_code for e in _entries_for(expense.expense_id)}

    def test_paid_expense_amount_is_locked(self, db_session, pending_maintenance, finance_user):
        expense_service.approve_expense(
            pending_maintenance.expense_id, {"payment_method": "Cash"}, user_id=finance_user.id,
        )
        with pytest.raises(ConflictError):
            expense_service.update_expense(pending_maintenance.expense_id, {"amount": 1}, user_id=finance_user.id)

    def test_descriptive_edit_leaves_ledger_alone(self, db_session, pending_maintenance, finance_user):
        txn_id = pending_maintenance.accrual_transaction.transaction_id
        expense = expense_service.update_expense(
            pending_maintenance.expense_id, {"vendor": "Plumb Co"}, user_id=finance_user.id,
        )
        assert expense.vendor == "Plumb Co"
        assert expense.accrual_transaction.transaction_id == txn_id

    def test_status_cannot_be_edited(self, db_session, pending_maintenance, finance_user):
        with pytest.raises(ValidationError):
            expense_service.update_expense(
                pending_maintenance.expense_id, {"payment_status": "Paid"}, user_id=finance_user.id,
            )


class TestDelete:
    def test_delete_after_approval_removes_both_transactions(self, db_session, pending_maintenance, finance_user):
        expense_id = pending_maintenance.expense_id
        expense_service.approve_expense(expense_id, {"payment_method": "Cash"}, user_id=finance_user.id)

        result = expense_service.delete_expense(expense_id, user_id=finance_user.id)

        assert result == {"expense_id": expense_id, "entries_deleted": 4, "transactions_deleted": 2}
        assert _entries_for(expense_id) == []
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(Expense).count() == 0

        log = AuditLog.query.filter_by(action="expense.delete").one()
        assert json.loads(log.details_json) == {"entries_deleted": 4, "transactions_deleted": 2}

    def test_delete_leaves_other_expenses(self, db_session, pending_maintenance, chart, finance_user):
        other = expense_service.create_expense(
            {"amount": 30, "category": "Water", "description": "Bill"}, user_id=finance_user.id,
        )
        expense_service.delete_expense(pending_maintenance.expense_id, user_id=finance_user.id)
        assert len(_entries_for(other.expense_id)) == 2


class TestSummary:
    def test_summary_groups_by_category_and_status(self, db_session, pending_maintenance, finance_user):
        expense_service.create_expense(
            {"amount": 30, "category": "Water", "description": "Bill", "payment_status": "Paid", "payment_method": "Cash"},
            user_id=finance_user.id,
        )
        summary = expense_service.expense_summary()
        assert summary["total_amount_cents"] == 13000
        assert summary["by_status"]["Pending"]["amount_cents"] == 10000
        assert summary["by_category"]["Water"]["count"] == 1
