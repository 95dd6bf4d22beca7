# Overview: Service-layer operations for expenses; status transitions with their ledger effects.

"""
Expense Service

LIFECYCLE:
    create (Pending) --approve--> Paid
    create (Paid) ----------------> Paid

LEDGER EFFECT (see posting_rules):
- create Pending: accrual (Expense Dr / AP Cr)
- create Paid: direct payment (Expense Dr / Cash Cr)
- approve with an accrual on file: settlement (AP Dr / Cash Cr)
- approve without an accrual (rows recorded before accruals existed):
  direct payment (Expense Dr / Cash Cr)

ATOMICITY: the status change, the transaction header, its entries and the
link back to the expense commit as one unit inside run_with_retry. If any
step raises, the session rolls back and the expense keeps its old status.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Expense, Residence, Transaction
from ..validation import (
    parse_amount_cents,
    parse_choice,
    parse_datetime_field,
    parse_optional_id,
    require_fields,
)
from propledger.time_utils import utcnow
from . import audit_service, ledger_service, posting_rules
from .account_resolver import (
    EXPENSE_CATEGORIES,
    canonical_key,
    get_well_known_accounts,
    require_expense_account,
    require_payment_account,
    validate_payment_method,
)
from .concurrency import lock_for_update, run_with_retry
from .identifier_service import EXPENSE_PREFIX, generate_unique_id


STATUS_PENDING = "Pending"
STATUS_PAID = "Paid"

VALID_STATUSES = [STATUS_PENDING, STATUS_PAID]


# =============================================================================
# LOOKUPS
# =============================================================================

def _expense_query(expense_ref):
    q = db.session.query(Expense)
    ref = str(expense_ref).strip()
    if ref.isdigit():
        return q.filter(Expense.id == int(ref))
    return q.filter(Expense.expense_id == ref.upper())


def get_expense(expense_ref) -> Expense:
    """Lookup by numeric id or business id (EXP-...)."""
    expense = _expense_query(expense_ref).first()
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def _parse_category(value) -> str:
    category = canonical_key(value, EXPENSE_CATEGORIES)
    if category is None:
        raise ValidationError(
            f"category must be one of: {', '.join(EXPENSE_CATEGORIES)}",
            details={"field": "category"},
        )
    return category


def _check_residence(residence_id: int | None) -> None:
    if residence_id is not None and db.session.get(Residence, residence_id) is None:
        raise NotFoundError("Residence not found")


def list_expenses(
    *,
    status: str | None = None,
    category: str | None = None,
    residence_id: int | None = None,
    start=None,
    end=None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[Expense], int]:
    q = db.session.query(Expense)
    if status:
        q = q.filter(Expense.payment_status == status)
    if category:
        q = q.filter(Expense.category == category)
    if residence_id is not None:
        q = q.filter(Expense.residence_id == residence_id)
    if start is not None:
        q = q.filter(Expense.expense_date >= start)
    if end is not None:
        q = q.filter(Expense.expense_date <= end)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(
            Expense.description.ilike(pattern),
            Expense.vendor.ilike(pattern),
            Expense.expense_id.ilike(pattern),
        ))

    total = q.count()
    items = (
        q.order_by(Expense.expense_date.desc(), Expense.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def expense_summary(*, residence_id: int | None = None, start=None, end=None) -> dict:
    q = db.session.query(
        Expense.category,
        Expense.payment_status,
        func.count(Expense.id),
        func.coalesce(func.sum(Expense.amount_cents), 0),
    )
    if residence_id is not None:
        q = q.filter(Expense.residence_id == residence_id)
    if start is not None:
        q = q.filter(Expense.expense_date >= start)
    if end is not None:
        q = q.filter(Expense.expense_date <= end)

    by_category: dict[str, dict] = {}
    by_status: dict[str, dict] = {s: {"count": 0, "amount_cents": 0} for s in VALID_STATUSES}
    total_count = 0
    total_cents = 0
    for category, status, count, amount in q.group_by(Expense.category, Expense.payment_status).all():
        cat = by_category.setdefault(category, {"count": 0, "amount_cents": 0})
        cat["count"] += count
        cat["amount_cents"] += amount
        st = by_status.setdefault(status, {"count": 0, "amount_cents": 0})
        st["count"] += count
        st["amount_cents"] += amount
        total_count += count
        total_cents += amount

    return {
        "total_count": total_count,
        "total_amount_cents": total_cents,
        "by_category": by_category,
        "by_status": by_status,
    }


# =============================================================================
# CREATE
# =============================================================================

def create_expense(payload: dict, *, user_id: int | None) -> Expense:
    """
    Record an expense and post its ledger effect.

    Pending expenses accrue a payable; Paid expenses hit cash directly and
    require payment_method.
    """
    require_fields(payload, ["category", "description"])
    category = _parse_category(payload.get("category"))
    amount_cents = parse_amount_cents(payload)
    status = parse_choice(payload.get("payment_status") or STATUS_PENDING, VALID_STATUSES, "payment_status")
    expense_date = parse_datetime_field(payload.get("expense_date"), "expense_date") or utcnow()
    residence_id = parse_optional_id(payload.get("residence_id"), "residence_id")
    payment_method = None
    if status == STATUS_PAID:
        payment_method = validate_payment_method(payload.get("payment_method"))
    well_known = get_well_known_accounts()

    def _op():
        _check_residence(residence_id)
        expense = Expense(
            expense_id=generate_unique_id(EXPENSE_PREFIX),
            residence_id=residence_id,
            category=category,
            description=payload["description"].strip(),
            vendor=payload.get("vendor"),
            amount_cents=amount_cents,
            expense_date=expense_date,
            payment_status=status,
            payment_method=payment_method,
            notes=payload.get("notes"),
            created_by_user_id=user_id,
        )
        db.session.add(expense)
        db.session.flush()

        expense_account = require_expense_account(category)
        if status == STATUS_PAID:
            cash_account = require_payment_account(payment_method)
            expense.paid_at = expense_date
            expense.paid_by_user_id = user_id
            txn = posting_rules.post_expense_payment(
                expense, expense_account, cash_account, user_id=user_id, paid_at=expense_date,
            )
            expense.payment_transaction_id = txn.id
        else:
            txn = posting_rules.post_expense_accrual(expense, expense_account, well_known, user_id=user_id)
            expense.accrual_transaction_id = txn.id

        db.session.commit()
        return expense

    expense = run_with_retry(_op)
    audit_service.record(
        action="expense.create",
        resource_type="Expense",
        record_id=expense.expense_id,
        user_id=user_id,
        after=expense.to_dict(),
    )
    return expense


# =============================================================================
# APPROVE / PAY
# =============================================================================

def approve_expense(expense_ref, payload: dict, *, user_id: int | None) -> Expense:
    """
    Pending -> Paid.

    Settles the payable when an accrual exists; otherwise books the expense
    and the payment in one posting.
    """
    payment_method = validate_payment_method(payload.get("payment_method"))
    paid_at = parse_datetime_field(payload.get("paid_date"), "paid_date") or utcnow()
    well_known = get_well_known_accounts()

    def _op():
        expense = lock_for_update(_expense_query(expense_ref)).first()
        if not expense:
            raise NotFoundError("Expense not found")
        if expense.payment_status == STATUS_PAID:
            raise ConflictError("Expense is already paid", details={"expense_id": expense.expense_id})
        before = expense.to_dict()

        expense.payment_status = STATUS_PAID
        expense.payment_method = payment_method
        expense.paid_at = paid_at
        expense.paid_by_user_id = user_id
        expense.approved_at = utcnow()
        expense.approved_by_user_id = user_id
        expense.updated_at = utcnow()

        cash_account = require_payment_account(payment_method)
        if expense.accrual_transaction_id is not None:
            accrual = db.session.get(Transaction, expense.accrual_transaction_id)
            txn = posting_rules.post_expense_settlement(
                expense, accrual, cash_account, well_known, user_id=user_id, paid_at=paid_at,
            )
        else:
            expense_account = require_expense_account(expense.category)
            txn = posting_rules.post_expense_payment(
                expense, expense_account, cash_account, user_id=user_id, paid_at=paid_at,
            )
        expense.payment_transaction_id = txn.id

        db.session.commit()
        return expense, before

    expense, before = run_with_retry(_op)
    audit_service.record(
        action="expense.approve",
        resource_type="Expense",
        record_id=expense.expense_id,
        user_id=user_id,
        before=before,
        after=expense.to_dict(),
    )
    return expense


# =============================================================================
# UPDATE
# =============================================================================

_FINANCIAL_FIELDS = ("amount", "amount_cents", "category", "expense_date", "residence_id")


def update_expense(expense_ref, payload: dict, *, user_id: int | None) -> Expense:
    """
    Edit an expense.

    Descriptive fields can always change. Amount, category, date and
    residence can only change while Pending; the accrual is then re-posted
    so the ledger matches the edited row.
    """
    if "payment_status" in payload or "payment_method" in payload:
        raise ValidationError("Use the approve action to change payment status")

    financial = any(f in payload for f in _FINANCIAL_FIELDS)
    amount_cents = parse_amount_cents(payload) if ("amount" in payload or "amount_cents" in payload) else None
    category = _parse_category(payload["category"]) if "category" in payload else None
    expense_date = parse_datetime_field(payload.get("expense_date"), "expense_date") if "expense_date" in payload else None
    residence_id = parse_optional_id(payload.get("residence_id"), "residence_id")
    if "description" in payload and not (payload.get("description") or "").strip():
        raise ValidationError("description cannot be empty", details={"field": "description"})
    well_known = get_well_known_accounts()

    def _op():
        expense = lock_for_update(_expense_query(expense_ref)).first()
        if not expense:
            raise NotFoundError("Expense not found")
        before = expense.to_dict()

        if financial and expense.payment_status != STATUS_PENDING:
            raise ConflictError("Only pending expenses can change amount, category, date or residence")
        if financial and expense.maintenance_id is not None:
            raise ConflictError("Expenses opened from a maintenance approval cannot change amount or category")

        if "description" in payload:
            expense.description = payload["description"].strip()
        for field in ("vendor", "notes"):
            if field in payload:
                setattr(expense, field, payload[field])

        if financial:
            if amount_cents is not None:
                expense.amount_cents = amount_cents
            if category is not None:
                expense.category = category
            if expense_date is not None:
                expense.expense_date = expense_date
            if "residence_id" in payload:
                _check_residence(residence_id)
                expense.residence_id = residence_id

            expense.accrual_transaction_id = None
            db.session.flush()
            ledger_service.delete_cascade(expense.expense_id, "Expense")
            expense_account = require_expense_account(expense.category)
            txn = posting_rules.post_expense_accrual(expense, expense_account, well_known, user_id=user_id)
            expense.accrual_transaction_id = txn.id

        expense.updated_at = utcnow()
        db.session.commit()
        return expense, before

    expense, before = run_with_retry(_op)
    audit_service.record(
        action="expense.update",
        resource_type="Expense",
        record_id=expense.expense_id,
        user_id=user_id,
        before=before,
        after=expense.to_dict(),
    )
    return expense


# =============================================================================
# DELETE
# =============================================================================

def delete_expense(expense_ref, *, user_id: int | None) -> dict:
    """
    Delete an expense and every ledger entry it produced.

    Expenses opened by a maintenance approval cannot be deleted: their accrual
    belongs to the maintenance request, so deleting the expense alone would
    leave the payable open.

    Returns {"expense_id", "entries_deleted", "transactions_deleted"}.
    """
    def _op():
        expense = lock_for_update(_expense_query(expense_ref)).first()
        if not expense:
            raise NotFoundError("Expense not found")
        if expense.maintenance_id is not None:
            raise ConflictError(
                "Expenses opened from a maintenance approval cannot be deleted",
                details={"maintenance_id": expense.maintenance_id},
            )
        snapshot = expense.to_dict()
        business_id = expense.expense_id

        db.session.delete(expense)
        db.session.flush()
        counts = ledger_service.delete_cascade(business_id, "Expense")

        db.session.commit()
        return snapshot, {"expense_id": business_id, **counts}

    snapshot, result = run_with_retry(_op)
    audit_service.record(
        action="expense.delete",
        resource_type="Expense",
        record_id=result["expense_id"],
        user_id=user_id,
        before=snapshot,
        details={
            "entries_deleted": result["entries_deleted"],
            "transactions_deleted": result["transactions_deleted"],
        },
    )
    return result
