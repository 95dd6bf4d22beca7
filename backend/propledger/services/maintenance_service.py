# Overview: Service-layer operations for maintenance requests and their finance approval.

"""
Maintenance Service

Finance approval is the only maintenance transition with a ledger effect:
approving accrues the amount (Maintenance expense Dr / AP Cr) and opens a
Pending Expense pointing at that accrual. Paying the expense later settles
the payable through the normal expense approve path.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Expense, Maintenance, Residence
from ..validation import (
    parse_amount_cents,
    parse_choice,
    parse_optional_id,
    require_fields,
)
from propledger.time_utils import utcnow
from . import audit_service, posting_rules
from .account_resolver import get_well_known_accounts, require_expense_account
from .concurrency import lock_for_update, run_with_retry
from .identifier_service import EXPENSE_PREFIX, MAINTENANCE_PREFIX, generate_unique_id


CATEGORIES = ["plumbing", "electrical", "hvac", "appliance", "structural", "cleaning", "pest_control", "security", "other"]
PRIORITIES = ["low", "medium", "high", "urgent"]
STATUSES = ["pending", "assigned", "in-progress", "completed"]

FINANCE_PENDING = "pending"
FINANCE_APPROVED = "approved"
FINANCE_REJECTED = "rejected"
FINANCE_DECISIONS = [FINANCE_APPROVED, FINANCE_REJECTED]


def _request_query(request_ref):
    q = db.session.query(Maintenance)
    ref = str(request_ref).strip()
    if ref.isdigit():
        return q.filter(Maintenance.id == int(ref))
    return q.filter(Maintenance.request_id == ref.upper())


def get_request(request_ref) -> Maintenance:
    request = _request_query(request_ref).first()
    if not request:
        raise NotFoundError("Maintenance request not found")
    return request


def list_requests(
    *,
    status: str | None = None,
    finance_status: str | None = None,
    residence_id: int | None = None,
    priority: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[Maintenance], int]:
    q = db.session.query(Maintenance)
    if status:
        q = q.filter(Maintenance.status == status)
    if finance_status:
        q = q.filter(Maintenance.finance_status == finance_status)
    if residence_id is not None:
        q = q.filter(Maintenance.residence_id == residence_id)
    if priority:
        q = q.filter(Maintenance.priority == priority)

    total = q.count()
    items = (
        q.order_by(Maintenance.created_at.desc(), Maintenance.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def create_request(payload: dict, *, user_id: int | None) -> Maintenance:
    require_fields(payload, ["issue"])
    category = parse_choice((payload.get("category") or "other").lower(), CATEGORIES, "category")
    priority = parse_choice((payload.get("priority") or "medium").lower(), PRIORITIES, "priority")
    residence_id = parse_optional_id(payload.get("residence_id"), "residence_id")
    amount_cents = None
    if payload.get("amount") not in (None, "") or payload.get("amount_cents") not in (None, ""):
        amount_cents = parse_amount_cents(payload)

    def _op():
        if residence_id is not None and db.session.get(Residence, residence_id) is None:
            raise NotFoundError("Residence not found")
        request = Maintenance(
            request_id=generate_unique_id(MAINTENANCE_PREFIX),
            residence_id=residence_id,
            room=payload.get("room"),
            issue=payload["issue"].strip(),
            description=payload.get("description"),
            category=category,
            priority=priority,
            status="pending",
            amount_cents=amount_cents,
            finance_status=FINANCE_PENDING,
            requested_by_user_id=user_id,
        )
        db.session.add(request)
        db.session.commit()
        return request

    request = run_with_retry(_op)
    audit_service.record(
        action="maintenance.create",
        resource_type="Maintenance",
        record_id=request.request_id,
        user_id=user_id,
        after=request.to_dict(),
    )
    return request


def finance_approval(request_ref, payload: dict, *, user_id: int | None) -> Maintenance:
    """
    Record the finance decision on a maintenance request.

    approved: accrue the amount and open a linked Pending Expense.
    rejected: no ledger effect.
    A decided request cannot be decided again.
    """
    decision = parse_choice((payload.get("finance_status") or "").lower(), FINANCE_DECISIONS, "finance_status")
    amount_override = None
    if payload.get("amount") not in (None, "") or payload.get("amount_cents") not in (None, ""):
        amount_override = parse_amount_cents(payload)
    notes = payload.get("notes")
    well_known = get_well_known_accounts() if decision == FINANCE_APPROVED else None

    def _op():
        request = lock_for_update(_request_query(request_ref)).first()
        if not request:
            raise NotFoundError("Maintenance request not found")
        if request.finance_status != FINANCE_PENDING:
            raise ConflictError(f"Maintenance request already {request.finance_status}")
        before = request.to_dict()

        now = utcnow()
        request.finance_status = decision
        request.finance_notes = notes
        request.finance_approved_at = now
        request.finance_approved_by_user_id = user_id
        request.updated_at = now

        if decision == FINANCE_APPROVED:
            if amount_override is not None:
                request.amount_cents = amount_override
            if not request.amount_cents:
                raise ValidationError("amount is required to approve a maintenance request", details={"field": "amount"})

            expense_account = require_expense_account("Maintenance")
            txn = posting_rules.post_maintenance_accrual(
                request, expense_account, well_known, user_id=user_id, approved_at=now,
            )
            request.accrual_transaction_id = txn.id

            db.session.add(Expense(
                expense_id=generate_unique_id(EXPENSE_PREFIX),
                residence_id=request.residence_id,
                category="Maintenance",
                description=f"Maintenance: {request.issue}",
                amount_cents=request.amount_cents,
                expense_date=now,
                payment_status="Pending",
                maintenance_id=request.id,
                accrual_transaction_id=txn.id,
                created_by_user_id=user_id,
            ))

        db.session.commit()
        return request, before

    request, before = run_with_retry(_op)
    audit_service.record(
        action=f"maintenance.finance_{decision}",
        resource_type="Maintenance",
        record_id=request.request_id,
        user_id=user_id,
        before=before,
        after=request.to_dict(),
    )
    return request
