# Overview: Service-layer operations for the double-entry store; the single authority for balanced postings.

"""
Ledger Store (transactions + entries)

INVARIANTS (authoritative):
- Every transaction has >= 2 entries and sum(debit_cents) == sum(credit_cents).
  post() validates the whole batch before anything is flushed; an unbalanced
  batch raises ImbalancedPostingError and nothing reaches the session.
- Each entry is debit XOR credit, non-negative, against an active account.
- Transactions are immutable. The only removal path is delete_cascade() of
  the business record that produced them.
- post() never commits. It joins the caller's unit of work so the business
  status change and its ledger effect commit (or roll back) together.
- period_year/period_month are written once at posting time; every statement
  query filters on them instead of inferring periods from free-form metadata.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import ClassVar, Optional, Union

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import ImbalancedPostingError, NotFoundError, ValidationError
from ..models import Account, Transaction, TransactionEntry
from propledger.time_utils import utcnow
from .account_resolver import is_cash_account
from .identifier_service import TRANSACTION_PREFIX, generate_unique_id, normalize_identifier


# =============================================================================
# ENTRY METADATA (tagged union)
# =============================================================================

@dataclass(frozen=True)
class AccrualMetadata:
    """Expense or income recognized before cash moves."""
    kind: ClassVar[str] = "accrual"
    category: str
    period_year: int
    period_month: int


@dataclass(frozen=True)
class SettlementMetadata:
    """
    Cash leg settling an earlier accrual.

    expense_account_code lets the cash-basis income statement attribute the
    payment to the expense account the accrual hit.
    """
    kind: ClassVar[str] = "settlement"
    settles_transaction_id: str
    expense_account_code: str
    category: str


@dataclass(frozen=True)
class ManualMetadata:
    kind: ClassVar[str] = "manual"
    note: Optional[str]
    entered_by_user_id: Optional[int]


EntryMetadata = Union[AccrualMetadata, SettlementMetadata, ManualMetadata]

_METADATA_TYPES = {m.kind: m for m in (AccrualMetadata, SettlementMetadata, ManualMetadata)}


def load_metadata(entry: TransactionEntry) -> EntryMetadata | None:
    """Rebuild the typed metadata stored on an entry."""
    if not entry.metadata_kind:
        return None
    cls = _METADATA_TYPES[entry.metadata_kind]
    return cls(**entry.entry_metadata)


# =============================================================================
# POSTING INPUT
# =============================================================================

@dataclass
class TransactionHeader:
    description: str
    type: str
    source: str
    date: datetime = field(default_factory=utcnow)
    reference: Optional[str] = None
    residence_id: Optional[int] = None
    created_by_user_id: Optional[int] = None
    source_id: Optional[str] = None
    source_model: Optional[str] = None
    # Reporting period override; defaults to the month of `date`
    period_year: Optional[int] = None
    period_month: Optional[int] = None


@dataclass
class PostingLine:
    account: Account
    debit_cents: int = 0
    credit_cents: int = 0
    description: Optional[str] = None
    metadata: Optional[EntryMetadata] = None


def debit(account: Account, amount_cents: int, description: str | None = None, metadata=None) -> PostingLine:
    return PostingLine(account=account, debit_cents=amount_cents, description=description, metadata=metadata)


def credit(account: Account, amount_cents: int, description: str | None = None, metadata=None) -> PostingLine:
    return PostingLine(account=account, credit_cents=amount_cents, description=description, metadata=metadata)


# =============================================================================
# VALIDATION
# =============================================================================

def validate_lines(lines: list[PostingLine]) -> None:
    """
    Validate a posting batch without touching the session.

    Raises ValidationError for malformed lines and ImbalancedPostingError
    when total debits differ from total credits.
    """
    if len(lines) < 2:
        raise ValidationError("A posting requires at least two entries")

    total_debit = 0
    total_credit = 0
    for index, line in enumerate(lines):
        if line.account is None:
            raise ValidationError(f"Entry {index + 1} has no account")
        for amount in (line.debit_cents, line.credit_cents):
            if not isinstance(amount, int) or isinstance(amount, bool):
                raise ValidationError(f"Entry {index + 1} amounts must be integer cents")
            if amount < 0:
                raise ValidationError(f"Entry {index + 1} amounts must not be negative")
        if (line.debit_cents > 0) == (line.credit_cents > 0):
            raise ValidationError(f"Entry {index + 1} must have exactly one of debit or credit")
        if not line.account.is_active:
            raise ValidationError(f"Account {line.account.code} is inactive")
        total_debit += line.debit_cents
        total_credit += line.credit_cents

    if total_debit != total_credit:
        raise ImbalancedPostingError(
            "Posting is not balanced",
            details={"total_debit_cents": total_debit, "total_credit_cents": total_credit},
        )


# =============================================================================
# STORE OPERATIONS
# =============================================================================

def create_transaction(header: TransactionHeader, *, is_cash_movement: bool = False) -> Transaction:
    if not header.description:
        raise ValidationError("Transaction description is required")
    txn = Transaction(
        transaction_id=generate_unique_id(TRANSACTION_PREFIX),
        date=header.date,
        description=header.description,
        reference=header.reference,
        residence_id=header.residence_id,
        type=header.type,
        source=header.source,
        is_cash_movement=is_cash_movement,
        created_by_user_id=header.created_by_user_id,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def create_entries(transaction: Transaction, header: TransactionHeader, lines: list[PostingLine]) -> list[TransactionEntry]:
    """
    Build entry rows for a validated batch.

    Entries are not attached to the session here; link_entries_to_transaction
    attaches them through the transaction's ownership collection.
    """
    validate_lines(lines)

    period_year = header.period_year or transaction.date.year
    period_month = header.period_month or transaction.date.month

    entries = []
    for line in lines:
        meta = line.metadata
        entries.append(TransactionEntry(
            account_id=line.account.id,
            account_code=line.account.code,
            account_name=line.account.name,
            account_type=line.account.type,
            debit_cents=line.debit_cents,
            credit_cents=line.credit_cents,
            type=line.account.type.lower(),
            description=line.description or header.description,
            source=header.source,
            source_id=header.source_id,
            source_model=header.source_model,
            status="posted",
            period_year=period_year,
            period_month=period_month,
            metadata_kind=meta.kind if meta is not None else None,
            metadata_json=json.dumps(asdict(meta)) if meta is not None else None,
        ))
    return entries


def link_entries_to_transaction(transaction: Transaction, entries: list[TransactionEntry]) -> Transaction:
    """Ownership bookkeeping: the transaction becomes the sole owner of the entries."""
    for entry in entries:
        if entry.transaction is not None and entry.transaction is not transaction:
            raise ValidationError("Entry already belongs to another transaction")
        transaction.entries.append(entry)
    db.session.flush()
    return transaction


def post(header: TransactionHeader, lines: list[PostingLine]) -> Transaction:
    """
    Write one balanced transaction inside the caller's unit of work.

    Validation happens first so an invalid batch leaves the session untouched.
    """
    validate_lines(lines)
    is_cash = any(is_cash_account(line.account) for line in lines)
    txn = create_transaction(header, is_cash_movement=is_cash)
    entries = create_entries(txn, header, lines)
    link_entries_to_transaction(txn, entries)
    current_app.logger.info(
        "Posted %s (%s) %s: %s entries, %s cents",
        txn.transaction_id, header.source, header.reference or "-",
        len(entries), sum(e.debit_cents for e in entries),
    )
    return txn


def delete_cascade(source_id: str, source_model: str) -> dict:
    """
    Remove every entry produced by a business record.

    Transactions left with no entries are deleted too; transactions that
    still own other entries are kept. Does not commit.
    """
    entries = (
        db.session.query(TransactionEntry)
        .filter_by(source_id=source_id, source_model=source_model)
        .all()
    )

    affected: dict[int, Transaction] = {}
    for entry in entries:
        txn = entry.transaction
        affected[txn.id] = txn
        txn.entries.remove(entry)

    transactions_deleted = 0
    for txn in affected.values():
        if not txn.entries:
            db.session.delete(txn)
            transactions_deleted += 1

    db.session.flush()
    return {"entries_deleted": len(entries), "transactions_deleted": transactions_deleted}


# =============================================================================
# QUERIES
# =============================================================================

@dataclass
class EntryFilter:
    """
    Statement query filter.

    account_code rolls up to child accounts unless include_children is False.
    periods is a list of (year, month) pairs matched against the canonical
    period fields. basis "cash" keeps entries of cash-movement transactions.
    """
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    account_code: Optional[str] = None
    include_children: bool = True
    account_types: Optional[list] = None
    residence_id: Optional[int] = None
    periods: Optional[list] = None
    basis: str = "accrual"
    source: Optional[str] = None
    source_id: Optional[str] = None
    source_model: Optional[str] = None


def _entry_query(flt: EntryFilter):
    q = db.session.query(TransactionEntry).join(Transaction, TransactionEntry.transaction_pk == Transaction.id)
    q = q.filter(TransactionEntry.status == "posted")

    if flt.start is not None:
        q = q.filter(Transaction.date >= flt.start)
    if flt.end is not None:
        q = q.filter(Transaction.date <= flt.end)
    if flt.account_code:
        if flt.include_children:
            from .account_service import get_descendant_codes
            q = q.filter(TransactionEntry.account_code.in_(get_descendant_codes(flt.account_code)))
        else:
            q = q.filter(TransactionEntry.account_code == flt.account_code)
    if flt.account_types:
        q = q.filter(TransactionEntry.account_type.in_(flt.account_types))
    if flt.residence_id is not None:
        q = q.filter(Transaction.residence_id == flt.residence_id)
    if flt.periods:
        keys = [y * 100 + m for y, m in flt.periods]
        q = q.filter((TransactionEntry.period_year * 100 + TransactionEntry.period_month).in_(keys))
    if flt.basis == "cash":
        q = q.filter(Transaction.is_cash_movement.is_(True))
    if flt.source:
        q = q.filter(TransactionEntry.source == flt.source)
    if flt.source_id:
        q = q.filter(TransactionEntry.source_id == flt.source_id)
    if flt.source_model:
        q = q.filter(TransactionEntry.source_model == flt.source_model)
    return q


def query_entries(flt: EntryFilter) -> list[TransactionEntry]:
    """Matching entries ordered oldest first (transaction date, then id)."""
    return _entry_query(flt).order_by(Transaction.date.asc(), TransactionEntry.id.asc()).all()


def sum_by_account(flt: EntryFilter) -> list[tuple]:
    """(account_id, account_code, account_name, account_type, debit_cents, credit_cents) per account."""
    q = _entry_query(flt).with_entities(
        TransactionEntry.account_id,
        TransactionEntry.account_code,
        TransactionEntry.account_name,
        TransactionEntry.account_type,
        func.coalesce(func.sum(TransactionEntry.debit_cents), 0),
        func.coalesce(func.sum(TransactionEntry.credit_cents), 0),
    ).group_by(
        TransactionEntry.account_id,
        TransactionEntry.account_code,
        TransactionEntry.account_name,
        TransactionEntry.account_type,
    )
    return [tuple(row) for row in q.order_by(TransactionEntry.account_code.asc()).all()]


def get_transaction(transaction_id: str) -> Transaction:
    txn = db.session.query(Transaction).filter_by(transaction_id=normalize_identifier(transaction_id)).first()
    if not txn:
        raise NotFoundError("Transaction not found")
    return txn


def list_transactions(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    residence_id: int | None = None,
    source: str | None = None,
    txn_type: str | None = None,
    reference: str | None = None,
    account_code: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[Transaction], int]:
    q = db.session.query(Transaction)
    if start is not None:
        q = q.filter(Transaction.date >= start)
    if end is not None:
        q = q.filter(Transaction.date <= end)
    if residence_id is not None:
        q = q.filter(Transaction.residence_id == residence_id)
    if source:
        q = q.filter(Transaction.source == source)
    if txn_type:
        q = q.filter(Transaction.type == txn_type)
    if reference:
        q = q.filter(Transaction.reference == reference)
    if account_code:
        q = q.filter(Transaction.entries.any(TransactionEntry.account_code == account_code))

    total = q.count()
    items = (
        q.order_by(Transaction.date.desc(), Transaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def verify_transaction(txn: Transaction) -> dict:
    total_debit = txn.total_debit_cents
    total_credit = txn.total_credit_cents
    return {
        "transaction_id": txn.transaction_id,
        "entry_count": len(txn.entries),
        "total_debit_cents": total_debit,
        "total_credit_cents": total_credit,
        "is_balanced": total_debit == total_credit and len(txn.entries) >= 2,
    }


def find_unbalanced_transactions() -> list[dict]:
    """Integrity check across the whole ledger."""
    rows = (
        db.session.query(
            Transaction.transaction_id,
            func.count(TransactionEntry.id),
            func.coalesce(func.sum(TransactionEntry.debit_cents), 0),
            func.coalesce(func.sum(TransactionEntry.credit_cents), 0),
        )
        .outerjoin(TransactionEntry, TransactionEntry.transaction_pk == Transaction.id)
        .group_by(Transaction.id, Transaction.transaction_id)
        .all()
    )
    problems = []
    for transaction_id, entry_count, total_debit, total_credit in rows:
        if entry_count < 2 or total_debit != total_credit:
            problems.append({
                "transaction_id": transaction_id,
                "entry_count": entry_count,
                "total_debit_cents": total_debit,
                "total_credit_cents": total_credit,
                "is_balanced": False,
            })
    return problems
