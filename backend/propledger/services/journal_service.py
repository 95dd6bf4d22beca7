# Overview: Manual journal entries entered by finance staff.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Transaction
from ..validation import parse_amount_cents, parse_datetime_field, parse_optional_id, require_fields
from . import audit_service, posting_rules
from .account_service import get_account_by_code
from .concurrency import run_with_retry


def _parse_line(index: int, raw) -> tuple[str, int, int]:
    if not isinstance(raw, dict):
        raise ValidationError(f"Line {index + 1} must be an object")
    code = str(raw.get("account_code") or "").strip()
    if not code:
        raise ValidationError(f"Line {index + 1} is missing account_code")

    has_debit = raw.get("debit") not in (None, "", 0) or raw.get("debit_cents") not in (None, "", 0)
    has_credit = raw.get("credit") not in (None, "", 0) or raw.get("credit_cents") not in (None, "", 0)
    if has_debit == has_credit:
        raise ValidationError(f"Line {index + 1} must have exactly one of debit or credit")
    if has_debit:
        return code, parse_amount_cents(raw, field="debit"), 0
    return code, 0, parse_amount_cents(raw, field="credit")


def create_manual_entry(payload: dict, *, user_id: int | None) -> Transaction:
    """
    Post a balanced journal entry.

    payload:
    {
        "description": "Owner capital injection",
        "date": "2026-01-01",                       (optional)
        "reference": "DEP-001",                     (optional)
        "residence_id": 1,                          (optional)
        "note": "...",                              (optional)
        "lines": [
            {"account_code": "1001", "debit": 1000},
            {"account_code": "3000", "credit": 1000}
        ]
    }
    """
    require_fields(payload, ["description", "lines"])
    raw_lines = payload.get("lines")
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list", details={"field": "lines"})
    parsed = [_parse_line(i, raw) for i, raw in enumerate(raw_lines)]
    date = parse_datetime_field(payload.get("date"), "date")
    residence_id = parse_optional_id(payload.get("residence_id"), "residence_id")

    def _op():
        lines = []
        for code, dr, cr in parsed:
            account = get_account_by_code(code)
            if account is None:
                raise NotFoundError(f"Account {code} not found", details={"account_code": code})
            lines.append((account, dr, cr))

        txn = posting_rules.post_manual(
            description=payload["description"].strip(),
            lines=lines,
            user_id=user_id,
            date=date,
            residence_id=residence_id,
            reference=payload.get("reference"),
            note=payload.get("note"),
        )
        db.session.commit()
        return txn

    txn = run_with_retry(_op)
    audit_service.record(
        action="transaction.manual",
        resource_type="Transaction",
        record_id=txn.transaction_id,
        user_id=user_id,
        after=txn.to_dict(),
    )
    return txn
