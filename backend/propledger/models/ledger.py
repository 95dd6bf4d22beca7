from __future__ import annotations

import json

from ..extensions import db
from propledger.time_utils import to_utc_z


class Transaction(db.Model):
    """
    Ledger transaction header.

    WHY: One row per business event (expense accrual, settlement, income
    receipt, ...). Owns a balanced set of TransactionEntry rows.

    INVARIANTS:
    - sum(entries.debit_cents) == sum(entries.credit_cents)
    - Immutable after creation; removed only by cascade delete of its source.
    - is_cash_movement is derived at posting time (any leg on a cash account).
    """
    __tablename__ = "ledger_transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_ledger_transactions_txn_id"),
        db.Index("ix_ledger_transactions_date", "date"),
        db.Index("ix_ledger_transactions_reference", "reference"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable identifier (e.g., "TXN-20250301120000-8F3A2C")
    transaction_id = db.Column(db.String(64), nullable=False)

    # Business time of the event
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    description = db.Column(db.String(255), nullable=False)

    # Business id of the originating record (e.g., expense_id "EXP-...")
    reference = db.Column(db.String(64), nullable=True)
    residence_id = db.Column(db.Integer, db.ForeignKey("residences.id"), nullable=True, index=True)

    # Free-form event type: accrual, payment, settlement, receipt, refund, manual
    type = db.Column(db.String(32), nullable=False)
    source = db.Column(db.String(32), nullable=False)

    is_cash_movement = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    entries = db.relationship(
        "TransactionEntry",
        back_populates="transaction",
        order_by="TransactionEntry.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    residence = db.relationship("Residence")

    @property
    def total_debit_cents(self) -> int:
        return sum(e.debit_cents for e in self.entries)

    @property
    def total_credit_cents(self) -> int:
        return sum(e.credit_cents for e in self.entries)

    def to_dict(self, include_entries: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "date": to_utc_z(self.date),
            "description": self.description,
            "reference": self.reference,
            "residence_id": self.residence_id,
            "type": self.type,
            "source": self.source,
            "is_cash_movement": self.is_cash_movement,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "total_debit_cents": self.total_debit_cents,
            "total_credit_cents": self.total_credit_cents,
        }
        if include_entries:
            data["entries"] = [e.to_dict() for e in self.entries]
        return data


class TransactionEntry(db.Model):
    """
    One debit-or-credit line of a ledger transaction.

    Account fields are denormalized so reports and drill-downs read a single
    row. period_year/period_month are the canonical reporting period written
    at posting time. metadata_kind tags the shape stored in metadata_json
    (accrual, settlement, manual).
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.CheckConstraint("debit_cents >= 0", name="ck_ledger_entries_debit_nonneg"),
        db.CheckConstraint("credit_cents >= 0", name="ck_ledger_entries_credit_nonneg"),
        db.Index("ix_ledger_entries_source", "source_model", "source_id"),
        db.Index("ix_ledger_entries_period", "period_year", "period_month"),
        db.Index("ix_ledger_entries_account_code", "account_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_pk = db.Column(db.Integer, db.ForeignKey("ledger_transactions.id"), nullable=False, index=True)

    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    account_code = db.Column(db.String(16), nullable=False)
    account_name = db.Column(db.String(128), nullable=False)
    account_type = db.Column(db.String(16), nullable=False)

    # Amounts in cents; exactly one is non-zero
    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)

    # Lower-cased account type mirror ("asset", "expense", ...)
    type = db.Column(db.String(16), nullable=False)
    description = db.Column(db.String(255), nullable=True)

    # Origin tag and polymorphic back reference
    source = db.Column(db.String(32), nullable=False)
    source_id = db.Column(db.String(64), nullable=True)
    source_model = db.Column(db.String(32), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="posted")

    period_year = db.Column(db.Integer, nullable=False)
    period_month = db.Column(db.Integer, nullable=False)

    metadata_kind = db.Column(db.String(16), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship("Transaction", back_populates="entries")
    account = db.relationship("Account")

    @property
    def entry_metadata(self) -> dict:
        if not self.metadata_json:
            return {}
        return json.loads(self.metadata_json)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction.transaction_id if self.transaction else None,
            "account_id": self.account_id,
            "account_code": self.account_code,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
            "type": self.type,
            "description": self.description,
            "source": self.source,
            "source_id": self.source_id,
            "source_model": self.source_model,
            "status": self.status,
            "period_year": self.period_year,
            "period_month": self.period_month,
            "metadata_kind": self.metadata_kind,
            "metadata": self.entry_metadata,
        }
