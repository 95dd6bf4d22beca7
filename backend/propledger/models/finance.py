from __future__ import annotations

from ..extensions import db
from propledger.time_utils import to_utc_z


def _txn_code(txn) -> str | None:
    return txn.transaction_id if txn is not None else None


class Residence(db.Model):
    """Property used to scope postings and reports."""
    __tablename__ = "residences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    address = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """
    Operating expense.

    LIFECYCLE:
    - Pending: accrued (Expense Dr / AP Cr) at creation
    - Paid: settled (AP Dr / Cash Cr) on approve, or paid directly at creation

    The expense never owns ledger entries. It keeps the ids of the
    transactions it generated; entries point back via source_id/source_model.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.UniqueConstraint("expense_id", name="uq_expenses_expense_id"),
        db.Index("ix_expenses_status_date", "payment_status", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Business identifier (e.g., "EXP-20250301120000-1A2B3C")
    expense_id = db.Column(db.String(64), nullable=False)

    residence_id = db.Column(db.Integer, db.ForeignKey("residences.id"), nullable=True, index=True)
    category = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    vendor = db.Column(db.String(128), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    expense_date = db.Column(db.DateTime(timezone=True), nullable=False)

    payment_status = db.Column(db.String(16), nullable=False, default="Pending")  # Pending, Paid
    payment_method = db.Column(db.String(32), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    maintenance_id = db.Column(db.Integer, db.ForeignKey("maintenance_requests.id"), nullable=True, index=True)

    accrual_transaction_id = db.Column(db.Integer, db.ForeignKey("ledger_transactions.id"), nullable=True)
    payment_transaction_id = db.Column(db.Integer, db.ForeignKey("ledger_transactions.id"), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    residence = db.relationship("Residence")
    accrual_transaction = db.relationship("Transaction", foreign_keys=[accrual_transaction_id])
    payment_transaction = db.relationship("Transaction", foreign_keys=[payment_transaction_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_id": self.expense_id,
            "residence_id": self.residence_id,
            "residence_name": self.residence.name if self.residence else None,
            "category": self.category,
            "description": self.description,
            "vendor": self.vendor,
            "amount_cents": self.amount_cents,
            "expense_date": to_utc_z(self.expense_date),
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "paid_at": to_utc_z(self.paid_at),
            "paid_by_user_id": self.paid_by_user_id,
            "approved_at": to_utc_z(self.approved_at),
            "approved_by_user_id": self.approved_by_user_id,
            "maintenance_id": self.maintenance_id,
            "accrual_transaction_id": _txn_code(self.accrual_transaction),
            "payment_transaction_id": _txn_code(self.payment_transaction),
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class OtherIncome(db.Model):
    """
    Non-rental income (interest, commission, services, ad-hoc rental).

    LIFECYCLE: Pending -> Received (Cash Dr / Income Cr) -> Refunded (Income Dr / Cash Cr)
    """
    __tablename__ = "other_income"
    __table_args__ = (
        db.UniqueConstraint("income_id", name="uq_other_income_income_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    income_id = db.Column(db.String(64), nullable=False)

    residence_id = db.Column(db.Integer, db.ForeignKey("residences.id"), nullable=True, index=True)
    category = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    income_date = db.Column(db.DateTime(timezone=True), nullable=False)

    payment_status = db.Column(db.String(16), nullable=False, default="Pending")  # Pending, Received, Refunded
    payment_method = db.Column(db.String(32), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refund_reason = db.Column(db.String(255), nullable=True)

    receipt_transaction_id = db.Column(db.Integer, db.ForeignKey("ledger_transactions.id"), nullable=True)
    refund_transaction_id = db.Column(db.Integer, db.ForeignKey("ledger_transactions.id"), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    residence = db.relationship("Residence")
    receipt_transaction = db.relationship("Transaction", foreign_keys=[receipt_transaction_id])
    refund_transaction = db.relationship("Transaction", foreign_keys=[refund_transaction_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "income_id": self.income_id,
            "residence_id": self.residence_id,
            "residence_name": self.residence.name if self.residence else None,
            "category": self.category,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "income_date": to_utc_z(self.income_date),
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "received_at": to_utc_z(self.received_at),
            "refunded_at": to_utc_z(self.refunded_at),
            "refund_reason": self.refund_reason,
            "receipt_transaction_id": _txn_code(self.receipt_transaction),
            "refund_transaction_id": _txn_code(self.refund_transaction),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Maintenance(db.Model):
    """
    Maintenance request.

    Finance approval accrues the quoted amount (Maintenance expense Dr / AP Cr)
    and opens a linked Pending Expense that later settles the payable.
    """
    __tablename__ = "maintenance_requests"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(64), nullable=False, unique=True)

    residence_id = db.Column(db.Integer, db.ForeignKey("residences.id"), nullable=True, index=True)
    room = db.Column(db.String(32), nullable=True)
    issue = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(32), nullable=False, default="other")
    priority = db.Column(db.String(16), nullable=False, default="medium")
    status = db.Column(db.String(16), nullable=False, default="pending")

    amount_cents = db.Column(db.Integer, nullable=True)  # quoted / estimated cost

    finance_status = db.Column(db.String(16), nullable=False, default="pending")  # pending, approved, rejected
    finance_notes = db.Column(db.String(255), nullable=True)
    finance_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    finance_approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    accrual_transaction_id = db.Column(db.Integer, db.ForeignKey("ledger_transactions.id"), nullable=True)

    requested_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    residence = db.relationship("Residence")
    accrual_transaction = db.relationship("Transaction", foreign_keys=[accrual_transaction_id])
    expenses = db.relationship("Expense", backref="maintenance", lazy=True)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "residence_id": self.residence_id,
            "residence_name": self.residence.name if self.residence else None,
            "room": self.room,
            "issue": self.issue,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "amount_cents": self.amount_cents,
            "finance_status": self.finance_status,
            "finance_notes": self.finance_notes,
            "finance_approved_at": to_utc_z(self.finance_approved_at),
            "finance_approved_by_user_id": self.finance_approved_by_user_id,
            "accrual_transaction_id": _txn_code(self.accrual_transaction),
            "expense_ids": [e.expense_id for e in self.expenses],
            "requested_by_user_id": self.requested_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
