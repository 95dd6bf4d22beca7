# Overview: Service-layer operations for the chart of accounts.

"""
Chart of Accounts Service

RULES:
- code is globally unique (ConflictError on duplicates)
- type is immutable once any entry references the account
- accounts with postings are deactivated, never deleted
- parent links must not form a cycle; roll-ups follow parent_account_id
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Account, TransactionEntry, ACCOUNT_TYPES
from propledger.time_utils import utcnow
from . import audit_service
from .concurrency import lock_for_update, run_with_retry


# =============================================================================
# DEFAULT CHART
# =============================================================================

# (code, name, type, category, parent_code)
DEFAULT_CHART = [
    ("1000", "Cash on Hand", "Asset", "Cash", None),
    ("1001", "Bank Account", "Asset", "Bank", None),
    ("1002", "Petty Cash", "Asset", "Cash", None),
    ("1003", "Ecocash Wallet", "Asset", "Wallet", None),
    ("1004", "Innbucks Wallet", "Asset", "Wallet", None),
    ("1100", "Accounts Receivable - Tenants", "Asset", "Current Asset", None),
    ("1200", "Buildings and Improvements", "Asset", "Fixed Asset", None),
    ("1210", "Furniture and Equipment", "Asset", "Fixed Asset", None),
    ("2000", "Accounts Payable", "Liability", "Current Liability", None),
    ("2100", "Tenant Deposits Held", "Liability", "Current Liability", None),
    ("2500", "Long-term Loan", "Liability", "Long-term Liability", None),
    ("3000", "Owner's Capital", "Equity", "Capital", None),
    ("3100", "Retained Earnings", "Equity", "Retained Earnings", None),
    ("4000", "Rental Income", "Income", "Rental", None),
    ("4001", "Rental Income - Residential", "Income", "Rental", "4000"),
    ("4002", "Rental Income - Commercial", "Income", "Rental", "4000"),
    ("4100", "Investment Income", "Income", "Investment", None),
    ("4200", "Interest Income", "Income", "Interest", None),
    ("4300", "Commission Income", "Income", "Commission", None),
    ("4400", "Service Income", "Income", "Service", None),
    ("4900", "Other Income", "Income", "Other", None),
    ("5001", "Staff Salaries and Wages", "Expense", "Salaries", None),
    ("5003", "Utilities", "Expense", "Utilities", None),
    ("5002", "Electricity Expense", "Expense", "Utilities", "5003"),
    ("5004", "Water Expense", "Expense", "Utilities", "5003"),
    ("5005", "Gas Expense", "Expense", "Utilities", "5003"),
    ("5006", "Internet and WiFi Expense", "Expense", "Utilities", "5003"),
    ("5007", "Maintenance and Repairs", "Expense", "Maintenance", None),
    ("5008", "Cleaning Supplies", "Expense", "Supplies", None),
    ("5009", "Insurance Expense", "Expense", "Insurance", None),
    ("5010", "Property Taxes", "Expense", "Taxes", None),
    ("5099", "Other Operating Expenses", "Expense", "Other", None),
]


# =============================================================================
# LOOKUPS
# =============================================================================

def get_account(account_id: int) -> Account:
    account = db.session.get(Account, account_id)
    if not account:
        raise NotFoundError("Account not found")
    return account


def get_account_by_code(code: str) -> Account | None:
    return db.session.query(Account).filter_by(code=code).first()


def list_accounts(
    *,
    account_type: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
) -> list[Account]:
    q = db.session.query(Account)
    if account_type:
        q = q.filter(Account.type == account_type)
    if is_active is not None:
        q = q.filter(Account.is_active.is_(is_active))
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(Account.name.ilike(pattern), Account.code.ilike(pattern)))
    return q.order_by(Account.code.asc()).all()


def accounts_by_type(account_type: str) -> list[Account]:
    _validate_type(account_type)
    return list_accounts(account_type=account_type, is_active=True)


def has_postings(account_id: int) -> bool:
    return db.session.query(TransactionEntry.id).filter_by(account_id=account_id).first() is not None


def get_descendant_codes(code: str, *, include_self: bool = True) -> list[str]:
    """
    Codes of an account and every account below it in the hierarchy.

    Unknown codes return [code] so filters still match entries posted to
    an account that was later removed from the chart.
    """
    accounts = db.session.query(Account).all()
    by_code = {a.code: a for a in accounts}
    root = by_code.get(code)
    if root is None:
        return [code] if include_self else []

    children_map: dict[int, list[Account]] = {}
    for account in accounts:
        if account.parent_account_id is None:
            continue
        children_map.setdefault(account.parent_account_id, []).append(account)

    result: list[str] = [code] if include_self else []
    seen = {root.id}
    stack = list(children_map.get(root.id, []))
    while stack:
        current = stack.pop()
        if current.id in seen:
            continue
        seen.add(current.id)
        result.append(current.code)
        stack.extend(children_map.get(current.id, []))

    return result


def get_hierarchy() -> list[dict]:
    """Full chart as a forest ordered by code."""
    accounts = list_accounts()
    children_map: dict[int | None, list[Account]] = {}
    for account in accounts:
        children_map.setdefault(account.parent_account_id, []).append(account)

    def _build(node: Account) -> dict:
        data = node.to_dict()
        data["children"] = [_build(child) for child in children_map.get(node.id, [])]
        return data

    return [_build(root) for root in children_map.get(None, [])]


def get_account_stats() -> dict:
    rows = (
        db.session.query(Account.type, Account.is_active, func.count(Account.id))
        .group_by(Account.type, Account.is_active)
        .all()
    )
    by_type = {t: {"active": 0, "inactive": 0} for t in ACCOUNT_TYPES}
    total = active = 0
    for account_type, is_active, count in rows:
        bucket = by_type.setdefault(account_type, {"active": 0, "inactive": 0})
        bucket["active" if is_active else "inactive"] += count
        total += count
        if is_active:
            active += count
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "by_type": by_type,
    }


# =============================================================================
# MUTATIONS
# =============================================================================

def _validate_type(account_type: str) -> None:
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError(
            f"type must be one of: {', '.join(ACCOUNT_TYPES)}",
            details={"field": "type"},
        )


def _resolve_parent(parent_account_id: int | None, *, child: Account | None = None) -> Account | None:
    if parent_account_id is None:
        return None
    parent = db.session.get(Account, parent_account_id)
    if not parent:
        raise NotFoundError("Parent account not found")
    if child is not None:
        # Walk up from the proposed parent; reaching the child means a cycle.
        node = parent
        while node is not None:
            if node.id == child.id:
                raise ValidationError("Account cannot be its own ancestor", details={"field": "parent_account_id"})
            node = node.parent
    return parent


def _new_account(
    code: str,
    name: str,
    account_type: str,
    category: str | None,
    description: str | None,
    parent_account_id: int | None,
) -> Account:
    code = (code or "").strip()
    name = (name or "").strip()
    if not code or not name:
        raise ValidationError("code and name are required", details={"missing_fields": [f for f, v in (("code", code), ("name", name)) if not v]})
    _validate_type(account_type)

    if get_account_by_code(code):
        raise ConflictError(f"Account code {code} already exists", details={"field": "code"})

    parent = _resolve_parent(parent_account_id)
    if parent is not None and parent.type != account_type:
        raise ValidationError("Parent account must have the same type", details={"field": "parent_account_id"})

    account = Account(
        code=code,
        name=name,
        type=account_type,
        category=category,
        description=description,
        parent_account_id=parent_account_id,
        is_active=True,
    )
    db.session.add(account)
    db.session.flush()
    return account


def create_account(
    *,
    code: str,
    name: str,
    account_type: str,
    category: str | None = None,
    description: str | None = None,
    parent_account_id: int | None = None,
    user_id: int | None = None,
) -> Account:
    def _op():
        account = _new_account(code, name, account_type, category, description, parent_account_id)
        db.session.commit()
        return account

    account = run_with_retry(_op)
    audit_service.record(
        action="account.create",
        resource_type="Account",
        record_id=account.code,
        user_id=user_id,
        after=account.to_dict(),
    )
    return account


def bulk_create_accounts(rows: list[dict], *, user_id: int | None = None) -> dict:
    """
    Create many accounts in one unit of work.

    Rows that fail validation are reported and skipped; the rest commit together.
    """
    def _op():
        created: list[Account] = []
        errors: list[dict] = []
        for index, row in enumerate(rows):
            # Every check in _new_account runs before the row is added.
            try:
                created.append(_new_account(
                    row.get("code"),
                    row.get("name"),
                    row.get("type"),
                    row.get("category"),
                    row.get("description"),
                    row.get("parent_account_id"),
                ))
            except (ValidationError, ConflictError, NotFoundError) as exc:
                errors.append({"index": index, "code": row.get("code"), "error": exc.message})
        db.session.commit()
        return {"created": created, "errors": errors}

    result = run_with_retry(_op)
    if result["created"]:
        audit_service.record(
            action="account.bulk_create",
            resource_type="Account",
            record_id=None,
            user_id=user_id,
            details={"codes": [a.code for a in result["created"]], "errors": len(result["errors"])},
        )
    return result


_UPDATABLE_FIELDS = ("name", "category", "description", "type", "parent_account_id", "is_active")


def update_account(account_id: int, changes: dict, *, user_id: int | None = None) -> Account:
    """
    Update mutable account fields.

    Changing type is rejected once the
    account carries postings. The code is immutable.
    """
    if "code" in changes:
        raise ValidationError("Account code cannot be changed", details={"field": "code"})

    def _op():
        account = lock_for_update(db.session.query(Account).filter_by(id=account_id)).first()
        if not account:
            raise NotFoundError("Account not found")
        before = account.to_dict()

        if "type" in changes and changes["type"] != account.type:
            _validate_type(changes["type"])
            if has_postings(account.id):
                raise ValidationError(
                    "Account type cannot be changed once postings exist",
                    details={"field": "type"},
                )
            account.type = changes["type"]

        if "parent_account_id" in changes:
            parent = _resolve_parent(changes["parent_account_id"], child=account)
            if parent is not None and parent.type != account.type:
                raise ValidationError("Parent account must have the same type", details={"field": "parent_account_id"})
            account.parent_account_id = changes["parent_account_id"]

        for field in ("name", "category", "description"):
            if field in changes:
                value = changes[field]
                if field == "name" and not (value or "").strip():
                    raise ValidationError("name cannot be empty", details={"field": "name"})
                setattr(account, field, value.strip() if isinstance(value, str) else value)

        if "is_active" in changes:
            account.is_active = bool(changes["is_active"])

        account.updated_at = utcnow()
        db.session.commit()
        return account, before

    account, before = run_with_retry(_op)
    audit_service.record(
        action="account.update",
        resource_type="Account",
        record_id=account.code,
        user_id=user_id,
        before=before,
        after=account.to_dict(),
    )
    return account


def delete_account(account_id: int, *, user_id: int | None = None) -> dict:
    """
    Delete or deactivate an account.

    Accounts with postings (or child accounts) are soft-deactivated; others
    are removed. Returns {"account": dict, "deleted": bool, "deactivated": bool}.
    """
    def _op():
        account = lock_for_update(db.session.query(Account).filter_by(id=account_id)).first()
        if not account:
            raise NotFoundError("Account not found")
        snapshot = account.to_dict()

        if has_postings(account.id) or account.children:
            account.is_active = False
            account.updated_at = utcnow()
            db.session.commit()
            return {"account": account.to_dict(), "deleted": False, "deactivated": True}

        db.session.delete(account)
        db.session.commit()
        return {"account": snapshot, "deleted": True, "deactivated": False}

    result = run_with_retry(_op)
    audit_service.record(
        action="account.deactivate" if result["deactivated"] else "account.delete",
        resource_type="Account",
        record_id=result["account"]["code"],
        user_id=user_id,
        after=result["account"],
    )
    return result


def seed_default_chart() -> int:
    """Create any missing DEFAULT_CHART accounts. Idempotent; returns count created."""
    def _op():
        created = 0
        by_code = {a.code: a for a in db.session.query(Account).all()}
        for code, name, account_type, category, parent_code in DEFAULT_CHART:
            if code in by_code:
                continue
            parent = by_code.get(parent_code) if parent_code else None
            account = Account(
                code=code,
                name=name,
                type=account_type,
                category=category,
                parent_account_id=parent.id if parent else None,
                is_active=True,
            )
            db.session.add(account)
            db.session.flush()
            by_code[code] = account
            created += 1
        db.session.commit()
        return created

    return run_with_retry(_op)
