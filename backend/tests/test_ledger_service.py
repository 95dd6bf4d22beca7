"""
Ledger store tests: balance enforcement, cash-movement derivation,
canonical periods, metadata and cascade delete.
"""

from datetime import datetime

import pytest

from propledger.errors import ImbalancedPostingError, ValidationError
from propledger.models import Transaction, TransactionEntry
from propledger.services import ledger_service
from propledger.services.ledger_service import (
    AccrualMetadata,
    EntryFilter,
    ManualMetadata,
    TransactionHeader,
    credit,
    debit,
    load_metadata,
)

from conftest import deactivate


def _header(**overrides):
    values = dict(description="Test posting", type="manual", source="manual", date=datetime(2026, 3, 15, 10, 0))
    values.update(overrides)
    return TransactionHeader(**values)


class TestBalanceInvariant:
    def test_balanced_posting_writes_header_and_entries(self, db_session, chart):
        txn = ledger_service.post(_header(), [
            debit(chart["5007"], 10000),
            credit(chart["2000"], 10000),
        ])
        db_session.commit()

        stored = db_session.query(Transaction).filter_by(transaction_id=txn.transaction_id).one()
        assert len(stored.entries) == 2
        assert stored.total_debit_cents == stored.total_credit_cents == 10000
        assert {e.account_code for e in stored.entries} == {"5007", "2000"}

    def test_imbalanced_batch_writes_nothing(self, db_session, chart):
        with pytest.raises(ImbalancedPostingError) as exc_info:
            ledger_service.post(_header(), [
                debit(chart["5007"], 10000),
                credit(chart["2000"], 9999),
            ])

        assert exc_info.value.details == {"total_debit_cents": 10000, "total_credit_cents": 9999}
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(TransactionEntry).count() == 0

    def test_single_line_rejected(self, db_session, chart):
        with pytest.raises(ValidationError):
            ledger_service.post(_header(), [debit(chart["5007"], 100)])

    def test_line_with_both_sides_rejected(self, db_session, chart):
        lines = [
            ledger_service.PostingLine(account=chart["5007"], debit_cents=100, credit_cents=100),
            credit(chart["2000"], 0),
        ]
        with pytest.raises(ValidationError):
            ledger_service.validate_lines(lines)

    def test_negative_amount_rejected(self, db_session, chart):
        with pytest.raises(ValidationError):
            ledger_service.validate_lines([debit(chart["5007"], -5), credit(chart["2000"], -5)])

    def test_inactive_account_rejected(self, db_session, chart):
        deactivate(chart["5099"])
        with pytest.raises(ValidationError, match="5099"):
            ledger_service.post(_header(), [debit(chart["5099"], 100), credit(chart["2000"], 100)])

    def test_find_unbalanced_reports_clean_ledger(self, db_session, chart):
        ledger_service.post(_header(), [debit(chart["1000"], 500), credit(chart["3000"], 500)])
        db_session.commit()
        assert ledger_service.find_unbalanced_transactions() == []


class TestPostingAttributes:
    def test_cash_movement_flag_follows_accounts(self, db_session, chart):
        accrual = ledger_service.post(_header(), [debit(chart["5007"], 100), credit(chart["2000"], 100)])
        payment = ledger_service.post(_header(), [debit(chart["2000"], 100), credit(chart["1001"], 100)])
        db_session.commit()

        assert accrual.is_cash_movement is False
        assert payment.is_cash_movement is True

    def test_canonical_period_defaults_to_transaction_month(self, db_session, chart):
        txn = ledger_service.post(_header(date=datetime(2025, 12, 31, 23, 0)), [
            debit(chart["5007"], 100),
            credit(chart["2000"], 100),
        ])
        assert {(e.period_year, e.period_month) for e in txn.entries} == {(2025, 12)}

    def test_period_override(self, db_session, chart):
        txn = ledger_service.post(_header(period_year=2026, period_month=1), [
            debit(chart["5007"], 100),
            credit(chart["2000"], 100),
        ])
        assert {(e.period_year, e.period_month) for e in txn.entries} == {(2026, 1)}

    def test_metadata_is_tagged_and_typed(self, db_session, chart):
        meta = AccrualMetadata(category="Maintenance", period_year=2026, period_month=3)
        txn = ledger_service.post(_header(), [
            debit(chart["5007"], 100, metadata=meta),
            credit(chart["2000"], 100, metadata=ManualMetadata(note="n", entered_by_user_id=None)),
        ])
        db_session.commit()

        debit_entry, credit_entry = txn.entries
        assert debit_entry.metadata_kind == "accrual"
        assert load_metadata(debit_entry) == meta
        assert isinstance(load_metadata(credit_entry), ManualMetadata)

    def test_entries_mirror_account_fields(self, db_session, chart):
        txn = ledger_service.post(_header(), [debit(chart["5007"], 100), credit(chart["2000"], 100)])
        entry = txn.entries[0]
        assert entry.account_name == "Maintenance and Repairs"
        assert entry.account_type == "Expense"
        assert entry.type == "expense"
        assert entry.status == "posted"


class TestDeleteCascade:
    def test_removes_entries_and_emptied_transactions(self, db_session, chart):
        header = _header(source_id="EXP-1", source_model="Expense")
        ledger_service.post(header, [debit(chart["5007"], 100), credit(chart["2000"], 100)])
        ledger_service.post(header, [debit(chart["2000"], 100), credit(chart["1000"], 100)])
        other = ledger_service.post(_header(source_id="EXP-2", source_model="Expense"), [
            debit(chart["5003"], 40),
            credit(chart["2000"], 40),
        ])
        db_session.commit()

        counts = ledger_service.delete_cascade("EXP-1", "Expense")
        db_session.commit()

        assert counts == {"entries_deleted": 4, "transactions_deleted": 2}
        assert db_session.query(TransactionEntry).filter_by(source_id="EXP-1").count() == 0
        assert db_session.query(Transaction).count() == 1
        assert db_session.query(Transaction).one().transaction_id == other.transaction_id

    def test_unknown_source_is_a_no_op(self, db_session, chart):
        assert ledger_service.delete_cascade("EXP-missing", "Expense") == {
            "entries_deleted": 0,
            "transactions_deleted": 0,
        }


class TestEntryQueries:
    def test_account_filter_rolls_up_children(self, db_session, chart):
        ledger_service.post(_header(), [debit(chart["1001"], 300), credit(chart["4001"], 300)])
        ledger_service.post(_header(), [debit(chart["1001"], 200), credit(chart["4002"], 200)])
        db_session.commit()

        rolled = ledger_service.query_entries(EntryFilter(account_code="4000"))
        direct = ledger_service.query_entries(EntryFilter(account_code="4000", include_children=False))

        assert sum(e.credit_cents for e in rolled) == 500
        assert direct == []

    def test_period_filter_uses_canonical_fields(self, db_session, chart):
        ledger_service.post(_header(date=datetime(2026, 3, 31)), [debit(chart["5007"], 100), credit(chart["2000"], 100)])
        ledger_service.post(_header(date=datetime(2026, 4, 1)), [debit(chart["5007"], 70), credit(chart["2000"], 70)])
        db_session.commit()

        march = ledger_service.query_entries(EntryFilter(account_code="5007", periods=[(2026, 3)]))
        assert [e.debit_cents for e in march] == [100]

    def test_cash_basis_keeps_cash_movements_only(self, db_session, chart):
        ledger_service.post(_header(), [debit(chart["5007"], 100), credit(chart["2000"], 100)])
        ledger_service.post(_header(), [debit(chart["5003"], 60), credit(chart["1000"], 60)])
        db_session.commit()

        cash = ledger_service.query_entries(EntryFilter(basis="cash"))
        assert {e.account_code for e in cash} == {"5003", "1000"}
