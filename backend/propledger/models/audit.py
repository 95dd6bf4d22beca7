from __future__ import annotations

import json

from ..extensions import db
from propledger.time_utils import to_utc_z


def _loads(raw: str | None):
    return json.loads(raw) if raw else None


class AuditLog(db.Model):
    """
    Who changed what, with before/after snapshots.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    Written best-effort after the business commit (see audit_service).
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_resource", "resource_type", "record_id"),
        db.Index("ix_audit_logs_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    action = db.Column(db.String(64), nullable=False, index=True)  # e.g. "expense.approve", "account.create"
    resource_type = db.Column(db.String(64), nullable=False)       # e.g. "Expense", "Account"
    record_id = db.Column(db.String(64), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    before_json = db.Column(db.Text, nullable=True)
    after_json = db.Column(db.Text, nullable=True)
    details_json = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("audit_logs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "resource_type": self.resource_type,
            "record_id": self.record_id,
            "user_id": self.user_id,
            "before": _loads(self.before_json),
            "after": _loads(self.after_json),
            "details": _loads(self.details_json),
            "occurred_at": to_utc_z(self.occurred_at),
        }
