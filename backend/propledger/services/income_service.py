# Overview: Service-layer operations for other income; receipt and refund postings.

"""
Other Income Service

LIFECYCLE:
    Pending --receive--> Received --refund--> Refunded

LEDGER EFFECT:
- receive (or create as Received): Cash Dr / Income Cr
- refund: Income Dr / Cash Cr
Pending income has no ledger effect.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import OtherIncome, Residence
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
    INCOME_CATEGORIES,
    canonical_key,
    require_income_account,
    require_payment_account,
    validate_payment_method,
)
from .concurrency import lock_for_update, run_with_retry
from .identifier_service import INCOME_PREFIX, generate_unique_id


STATUS_PENDING = "Pending"
STATUS_RECEIVED = "Received"
STATUS_REFUNDED = "Refunded"

VALID_STATUSES = [STATUS_PENDING, STATUS_RECEIVED, STATUS_REFUNDED]
CREATE_STATUSES = [STATUS_PENDING, STATUS_RECEIVED]


def _income_query(income_ref):
    q = db.session.query(OtherIncome)
    ref = str(income_ref).strip()
    if ref.isdigit():
        return q.filter(OtherIncome.id == int(ref))
    return q.filter(OtherIncome.income_id == ref.upper())


def get_income(income_ref) -> OtherIncome:
    income = _income_query(income_ref).first()
    if not income:
        raise NotFoundError("Income record not found")
    return income


def list_income(
    *,
    status: str | None = None,
    category: str | None = None,
    residence_id: int | None = None,
    start=None,
    end=None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[OtherIncome], int]:
    q = db.session.query(OtherIncome)
    if status:
        q = q.filter(OtherIncome.payment_status == status)
    if category:
        q = q.filter(OtherIncome.category == category)
    if residence_id is not None:
        q = q.filter(OtherIncome.residence_id == residence_id)
    if start is not None:
        q = q.filter(OtherIncome.income_date >= start)
    if end is not None:
        q = q.filter(OtherIncome.income_date <= end)

    total = q.count()
    items = (
        q.order_by(OtherIncome.income_date.desc(), OtherIncome.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def income_summary(*, residence_id: int | None = None, start=None, end=None) -> dict:
    q = db.session.query(
        OtherIncome.category,
        OtherIncome.payment_status,
        func.count(OtherIncome.id),
        func.coalesce(func.sum(OtherIncome.amount_cents), 0),
    )
    if residence_id is not None:
        q = q.filter(OtherIncome.residence_id == residence_id)
    if start is not None:
        q = q.filter(OtherIncome.income_date >= start)
    if end is not None:
        q = q.filter(OtherIncome.income_date <= end)

    by_category: dict[str, dict] = {}
    by_status = {s: {"count": 0, "amount_cents": 0} for s in VALID_STATUSES}
    for category, status, count, amount in q.group_by(OtherIncome.category, OtherIncome.payment_status).all():
        cat = by_category.setdefault(category, {"count": 0, "amount_cents": 0, "received_cents": 0})
        cat["count"] += count
        cat["amount_cents"] += amount
        if status == STATUS_RECEIVED:
            cat["received_cents"] += amount
        by_status.setdefault(status, {"count": 0, "amount_cents": 0})
        by_status[status]["count"] += count
        by_status[status]["amount_cents"] += amount

    return {
        "total_received_cents": by_status[STATUS_RECEIVED]["amount_cents"],
        "total_pending_cents": by_status[STATUS_PENDING]["amount_cents"],
        "total_refunded_cents": by_status[STATUS_REFUNDED]["amount_cents"],
        "by_category": by_category,
        "by_status": by_status,
    }


def create_income(payload: dict, *, user_id: int | None) -> OtherIncome:
    require_fields(payload, ["category", "description"])
    category = canonical_key(payload.get("category"), INCOME_CATEGORIES)
    if category is None:
        raise ValidationError(
            f"category must be one of: {', '.join(INCOME_CATEGORIES)}",
            details={"field": "category"},
        )
    amount_cents = parse_amount_cents(payload)
    status = parse_choice(payload.get("payment_status") or STATUS_PENDING, CREATE_STATUSES, "payment_status")
    income_date = parse_datetime_field(payload.get("income_date"), "income_date") or utcnow()
    residence_id = parse_optional_id(payload.get("residence_id"), "residence_id")
    payment_method = None
    if status == STATUS_RECEIVED or payload.get("payment_method"):
        payment_method = validate_payment_method(payload.get("payment_method"))

    def _op():
        if residence_id is not None and db.session.get(Residence, residence_id) is None:
            raise NotFoundError("Residence not found")
        income = OtherIncome(
            income_id=generate_unique_id(INCOME_PREFIX),
            residence_id=residence_id,
            category=category,
            description=payload["description"].strip(),
            amount_cents=amount_cents,
            income_date=income_date,
            payment_status=status,
            payment_method=payment_method,
            created_by_user_id=user_id,
        )
        db.session.add(income)
        db.session.flush()

        if status == STATUS_RECEIVED:
            income.received_at = income_date
            txn = posting_rules.post_income_receipt(
                income,
                require_payment_account(payment_method),
                require_income_account(category),
                user_id=user_id,
                received_at=income_date,
            )
            income.receipt_transaction_id = txn.id

        db.session.commit()
        return income

    income = run_with_retry(_op)
    audit_service.record(
        action="income.create",
        resource_type="OtherIncome",
        record_id=income.income_id,
        user_id=user_id,
        after=income.to_dict(),
    )
    return income


def receive_income(income_ref, payload: dict, *, user_id: int | None) -> OtherIncome:
    """Pending -> Received."""
    received_at = parse_datetime_field(payload.get("received_date"), "received_date") or utcnow()

    def _op():
        income = lock_for_update(_income_query(income_ref)).first()
        if not income:
            raise NotFoundError("Income record not found")
        if income.payment_status != STATUS_PENDING:
            raise ConflictError(f"Income is already {income.payment_status.lower()}")
        before = income.to_dict()

        method = payload.get("payment_method") or income.payment_method
        income.payment_method = validate_payment_method(method)
        income.payment_status = STATUS_RECEIVED
        income.received_at = received_at
        income.updated_at = utcnow()

        txn = posting_rules.post_income_receipt(
            income,
            require_payment_account(income.payment_method),
            require_income_account(income.category),
            user_id=user_id,
            received_at=received_at,
        )
        income.receipt_transaction_id = txn.id

        db.session.commit()
        return income, before

    income, before = run_with_retry(_op)
    audit_service.record(
        action="income.receive",
        resource_type="OtherIncome",
        record_id=income.income_id,
        user_id=user_id,
        before=before,
        after=income.to_dict(),
    )
    return income


def refund_income(income_ref, payload: dict, *, user_id: int | None) -> OtherIncome:
    """Received -> Refunded. Refunds leave through the method the income came in on unless overridden."""
    reason = (payload.get("reason") or "").strip() or None

    def _op():
        income = lock_for_update(_income_query(income_ref)).first()
        if not income:
            raise NotFoundError("Income record not found")
        if income.payment_status != STATUS_RECEIVED:
            raise ConflictError("Only received income can be refunded")
        before = income.to_dict()

        method = validate_payment_method(payload.get("payment_method") or income.payment_method)
        now = utcnow()
        income.payment_status = STATUS_REFUNDED
        income.refunded_at = now
        income.refund_reason = reason
        income.updated_at = now

        txn = posting_rules.post_income_refund(
            income,
            require_income_account(income.category),
            require_payment_account(method),
            user_id=user_id,
            refunded_at=now,
        )
        income.refund_transaction_id = txn.id

        db.session.commit()
        return income, before

    income, before = run_with_retry(_op)
    audit_service.record(
        action="income.refund",
        resource_type="OtherIncome",
        record_id=income.income_id,
        user_id=user_id,
        before=before,
        after=income.to_dict(),
        details={"reason": reason},
    )
    return income


def delete_income(income_ref, *, user_id: int | None) -> dict:
    def _op():
        income = lock_for_update(_income_query(income_ref)).first()
        if not income:
            raise NotFoundError("Income record not found")
        snapshot = income.to_dict()
        business_id = income.income_id

        db.session.delete(income)
        db.session.flush()
        counts = ledger_service.delete_cascade(business_id, "OtherIncome")

        db.session.commit()
        return snapshot, {"income_id": business_id, **counts}

    snapshot, result = run_with_retry(_op)
    audit_service.record(
        action="income.delete",
        resource_type="OtherIncome",
        record_id=result["income_id"],
        user_id=user_id,
        before=snapshot,
        details={
            "entries_deleted": result["entries_deleted"],
            "transactions_deleted": result["transactions_deleted"],
        },
    )
    return result
