"""
Audit log tests: append, filters, and failed writes that must not surface.
"""

import logging

from propledger.models import Account, AuditLog
from propledger.services import account_service, audit_service


class TestRecord:
    def test_record_and_filter(self, db_session, finance_user):
        audit_service.record(
            action="expense.create", resource_type="Expense", record_id="EXP-1",
            user_id=finance_user.id, after={"amount_cents": 100},
        )
        audit_service.record(action="income.create", resource_type="OtherIncome", record_id="INC-1", user_id=None)

        logs = audit_service.list_audit_logs(resource_type="Expense")
        assert [log.record_id for log in logs] == ["EXP-1"]
        assert logs[0].user_id == finance_user.id


class TestFailedWrites:
    def test_unserializable_details_are_logged_and_swallowed(self, db_session, caplog):
        # Mixed key types cannot be sorted by json.dumps(sort_keys=True)
        with caplog.at_level(logging.WARNING):
            result = audit_service.record(
                action="expense.delete", resource_type="Expense", record_id="EXP-2",
                user_id=None, details={1: "a", "b": 2},
            )

        assert result is None
        assert db_session.query(AuditLog).count() == 0
        assert "Failed to write audit log for expense.delete on Expense EXP-2" in caplog.text

    def test_business_write_survives_audit_failure(self, db_session, chart, monkeypatch):
        def _broken(value):
            raise ValueError("audit store unavailable")

        monkeypatch.setattr(audit_service, "_dumps", _broken)

        account = account_service.create_account(code="5011", name="Security Services", account_type="Expense")

        assert db_session.query(Account).filter_by(code="5011").one().id == account.id
        assert db_session.query(AuditLog).filter_by(action="account.create").count() == 0
