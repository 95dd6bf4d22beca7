"""
Other income tests: receipt, refund, delete.
"""

import pytest

from propledger.errors import ConflictError, NotFoundError, ValidationError
from propledger.models import AuditLog, OtherIncome, Transaction, TransactionEntry
from propledger.services import income_service


def _legs(txn):
    return sorted((e.account_code, e.debit_cents, e.credit_cents) for e in txn.entries)


@pytest.fixture
def received_rent(db_session, chart, finance_user):
    return income_service.create_income(
        {
            "amount": 50,
            "category": "Rental",
            "description": "Hall hire",
            "payment_status": "Received",
            "payment_method": "Bank Transfer",
        },
        user_id=finance_user.id,
    )


class TestCreate:
    def test_received_income_debits_bank_credits_rental(self, db_session, received_rent):
        assert received_rent.payment_status == "Received"
        assert _legs(received_rent.receipt_transaction) == [("1001", 5000, 0), ("4001", 0, 5000)]
        assert received_rent.receipt_transaction.is_cash_movement is True

    def test_pending_income_posts_nothing(self, db_session, chart, finance_user):
        income = income_service.create_income(
            {"amount": 12, "category": "Interest", "description": "Bank interest"},
            user_id=finance_user.id,
        )
        assert income.payment_status == "Pending"
        assert income.receipt_transaction_id is None
        assert db_session.query(Transaction).count() == 0

    def test_received_requires_payment_method(self, db_session, chart, finance_user):
        with pytest.raises(ValidationError):
            income_service.create_income(
                {"amount": 12, "category": "Rental", "description": "x", "payment_status": "Received"},
                user_id=finance_user.id,
            )

    def test_refunded_is_not_a_create_status(self, db_session, chart, finance_user):
        with pytest.raises(ValidationError):
            income_service.create_income(
                {"amount": 12, "category": "Rental", "description": "x", "payment_status": "Refunded"},
                user_id=finance_user.id,
            )

    def test_unknown_category_rejected(self, db_session, chart, finance_user):
        with pytest.raises(ValidationError):
            income_service.create_income(
                {"amount": 12, "category": "Lottery", "description": "x"},
                user_id=finance_user.id,
            )


class TestReceive:
    def test_receive_pending_income(self, db_session, chart, finance_user):
        income = income_service.create_income(
            {"amount": 80, "category": "Other", "description": "Laundry tokens"},
            user_id=finance_user.id,
        )
        income = income_service.receive_income(income.income_id, {"payment_method": "Cash"}, user_id=finance_user.id)

        assert income.payment_status == "Received"
        assert income.received_at is not None
        assert _legs(income.receipt_transaction) == [("1000", 8000, 0), ("4900", 0, 8000)]

    def test_receive_twice_conflicts(self, db_session, received_rent, finance_user):
        with pytest.raises(ConflictError):
            income_service.receive_income(received_rent.income_id, {"payment_method": "Cash"}, user_id=finance_user.id)


class TestRefund:
    def test_refund_reverses_receipt(self, db_session, received_rent, finance_user):
        income = income_service.refund_income(
            received_rent.income_id, {"reason": "Booking cancelled"}, user_id=finance_user.id,
        )

        assert income.payment_status == "Refunded"
        assert income.refund_reason == "Booking cancelled"
        assert _legs(income.refund_transaction) == [("1001", 0, 5000), ("4001", 5000, 0)]

        net_bank = sum(
            e.debit_cents - e.credit_cents
            for e in TransactionEntry.query.filter_by(account_code="1001").all()
        )
        assert net_bank == 0

    def test_refund_requires_received(self, db_session, chart, finance_user):
        income = income_service.create_income(
            {"amount": 5, "category": "Other", "description": "x"}, user_id=finance_user.id,
        )
        with pytest.raises(ConflictError):
            income_service.refund_income(income.income_id, {}, user_id=finance_user.id)

    def test_refund_audits_reason(self, db_session, received_rent, finance_user):
        income_service.refund_income(received_rent.income_id, {"reason": "Overpaid"}, user_id=finance_user.id)
        log = AuditLog.query.filter_by(action="income.refund").one()
        assert '"Overpaid"' in log.details_json


class TestDelete:
    def test_delete_cascades_receipt_and_refund(self, db_session, received_rent, finance_user):
        income_service.refund_income(received_rent.income_id, {}, user_id=finance_user.id)

        result = income_service.delete_income(received_rent.income_id, user_id=finance_user.id)

        assert result["entries_deleted"] == 4
        assert result["transactions_deleted"] == 2
        assert db_session.query(OtherIncome).count() == 0
        assert db_session.query(TransactionEntry).count() == 0

    def test_delete_missing(self, db_session, chart, finance_user):
        with pytest.raises(NotFoundError):
            income_service.delete_income("INC-NOPE", user_id=finance_user.id)


class TestSummary:
    def test_summary_totals_by_status(self, db_session, received_rent, finance_user):
        income_service.create_income(
            {"amount": 20, "category": "Other", "description": "x"}, user_id=finance_user.id,
        )
        summary = income_service.income_summary()
        assert summary["total_received_cents"] == 5000
        assert summary["total_pending_cents"] == 2000
