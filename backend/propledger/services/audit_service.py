# Overview: Service-layer operations for the audit log; best-effort append-only writes.

"""
Audit Log Service

INVARIANTS:
- Append-only: rows are never updated or deleted.
- Best-effort: record() runs after the business commit in its own commit.
  A failing audit write is logged and swallowed; it never changes the
  outcome of the operation it describes.
"""

from __future__ import annotations

import json

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import AuditLogFailure
from ..extensions import db
from ..models import AuditLog


def _dumps(value) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=str, sort_keys=True)


def record(
    *,
    action: str,
    resource_type: str,
    record_id: str | int | None,
    user_id: int | None,
    before: dict | None = None,
    after: dict | None = None,
    details: dict | None = None,
) -> AuditLog | None:
    """
    Append one audit row. Returns None when the write failed.
    """
    try:
        return _write(
            action=action,
            resource_type=resource_type,
            record_id=record_id,
            user_id=user_id,
            before=before,
            after=after,
            details=details,
        )
    except AuditLogFailure as failure:
        current_app.logger.warning("%s: %s", failure.message, failure.__cause__)
        return None


def _write(*, action, resource_type, record_id, user_id, before, after, details) -> AuditLog:
    try:
        entry = AuditLog(
            action=action,
            resource_type=resource_type,
            record_id=str(record_id) if record_id is not None else None,
            user_id=user_id,
            before_json=_dumps(before),
            after_json=_dumps(after),
            details_json=_dumps(details),
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except (SQLAlchemyError, TypeError, ValueError) as exc:
        db.session.rollback()
        raise AuditLogFailure(
            f"Failed to write audit log for {action} on {resource_type} {record_id}",
            details={"action": action, "resource_type": resource_type},
        ) from exc


def list_audit_logs(
    *,
    resource_type: str | None = None,
    record_id: str | None = None,
    action: str | None = None,
    user_id: int | None = None,
    limit: int = 100,
) -> list[AuditLog]:
    q = db.session.query(AuditLog)
    if resource_type:
        q = q.filter(AuditLog.resource_type == resource_type)
    if record_id:
        q = q.filter(AuditLog.record_id == str(record_id))
    if action:
        q = q.filter(AuditLog.action == action)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)
    return q.order_by(AuditLog.id.desc()).limit(limit).all()
