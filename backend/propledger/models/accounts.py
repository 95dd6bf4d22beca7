from __future__ import annotations

from ..extensions import db
from propledger.time_utils import to_utc_z


ACCOUNT_TYPES = ("Asset", "Liability", "Equity", "Income", "Expense")

# Normal-balance side per account type
DEBIT_NORMAL_TYPES = ("Asset", "Expense")
CREDIT_NORMAL_TYPES = ("Liability", "Equity", "Income")


class Account(db.Model):
    """
    Chart of accounts row.

    WHY: Every ledger entry references exactly one account. Accounts are
    never hard-deleted once postings exist; deactivation flips is_active.

    Roll-up: parent_account_id builds the hierarchy used when a report asks
    for a parent code (e.g. "4000" Rental Income with child accounts).
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_accounts_code"),
        db.Index("ix_accounts_type_active", "type", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    type = db.Column(db.String(16), nullable=False)  # Asset, Liability, Equity, Income, Expense
    category = db.Column(db.String(64), nullable=True)  # free-form sub-classification
    description = db.Column(db.String(255), nullable=True)

    parent_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    parent = db.relationship("Account", remote_side=[id], backref=db.backref("children", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_debit_normal(self) -> bool:
        return self.type in DEBIT_NORMAL_TYPES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "type": self.type,
            "category": self.category,
            "normal_balance": "debit" if self.is_debit_normal else "credit",
            "description": self.description,
            "parent_account_id": self.parent_account_id,
            "parent_code": self.parent.code if self.parent else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
