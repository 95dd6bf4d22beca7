# Overview: Ledger effect of each business event; builds balanced two-leg postings.

"""
Posting Rules

One function per business event. Each receives already-resolved accounts
(and the WellKnownAccounts registry where a role account is involved),
builds exactly two equal-and-opposite lines, and hands them to
ledger_service.post() inside the caller's unit of work.

| Event                               | Debit              | Credit             | source             |
|-------------------------------------|--------------------|--------------------|--------------------|
| Expense created, Pending            | Expense (category) | AP                 | expense_accrual    |
| Expense created Paid / approve, no accrual | Expense     | Cash (method)      | expense_payment    |
| Expense approve, previously accrued | AP                 | Cash (method)      | expense_settlement |
| Maintenance finance approval        | Maintenance exp.   | AP                 | maintenance_accrual|
| Other income received               | Cash (method)      | Income (category)  | income_receipt     |
| Refund issued                       | Income (category)  | Cash (method)      | refund             |

No function here commits.
"""

from __future__ import annotations

from datetime import datetime

from ..errors import AccountResolutionError, ValidationError
from ..models import Account, Expense, Maintenance, OtherIncome, Transaction
from propledger.time_utils import utcnow
from . import ledger_service
from .account_resolver import WellKnownAccounts
from .ledger_service import (
    AccrualMetadata,
    ManualMetadata,
    SettlementMetadata,
    TransactionHeader,
    credit,
    debit,
)


SOURCE_MANUAL = "manual"
SOURCE_EXPENSE_ACCRUAL = "expense_accrual"
SOURCE_EXPENSE_PAYMENT = "expense_payment"
SOURCE_EXPENSE_SETTLEMENT = "expense_settlement"
SOURCE_MAINTENANCE_ACCRUAL = "maintenance_accrual"
SOURCE_INCOME_RECEIPT = "income_receipt"
SOURCE_REFUND = "refund"

SOURCE_TAGS = [
    SOURCE_MANUAL,
    SOURCE_EXPENSE_ACCRUAL,
    SOURCE_EXPENSE_PAYMENT,
    SOURCE_EXPENSE_SETTLEMENT,
    SOURCE_MAINTENANCE_ACCRUAL,
    SOURCE_INCOME_RECEIPT,
    SOURCE_REFUND,
]


# =============================================================================
# EXPENSES
# =============================================================================

def post_expense_accrual(
    expense: Expense,
    expense_account: Account,
    well_known: WellKnownAccounts,
    *,
    user_id: int | None,
) -> Transaction:
    """Expense Dr / Accounts Payable Cr."""
    ap = well_known.accounts_payable
    meta = AccrualMetadata(
        category=expense.category,
        period_year=expense.expense_date.year,
        period_month=expense.expense_date.month,
    )
    header = TransactionHeader(
        description=f"Expense accrual: {expense.description}",
        type="accrual",
        source=SOURCE_EXPENSE_ACCRUAL,
        date=expense.expense_date,
        reference=expense.expense_id,
        residence_id=expense.residence_id,
        created_by_user_id=user_id,
        source_id=expense.expense_id,
        source_model="Expense",
    )
    return ledger_service.post(header, [
        debit(expense_account, expense.amount_cents, f"{expense.category}: {expense.description}", meta),
        credit(ap, expense.amount_cents, f"Payable: {expense.description}", meta),
    ])


def post_expense_payment(
    expense: Expense,
    expense_account: Account,
    cash_account: Account,
    *,
    user_id: int | None,
    paid_at: datetime | None = None,
) -> Transaction:
    """Expense Dr / Cash Cr. Used when no payable was ever recorded."""
    when = paid_at or utcnow()
    meta = AccrualMetadata(category=expense.category, period_year=when.year, period_month=when.month)
    header = TransactionHeader(
        description=f"Expense paid: {expense.description}",
        type="payment",
        source=SOURCE_EXPENSE_PAYMENT,
        date=when,
        reference=expense.expense_id,
        residence_id=expense.residence_id,
        created_by_user_id=user_id,
        source_id=expense.expense_id,
        source_model="Expense",
    )
    return ledger_service.post(header, [
        debit(expense_account, expense.amount_cents, f"{expense.category}: {expense.description}", meta),
        credit(cash_account, expense.amount_cents, f"Paid via {expense.payment_method}", meta),
    ])


def accrued_expense_account_code(accrual: Transaction) -> str:
    """Code of the expense account debited by an accrual transaction."""
    for entry in accrual.entries:
        if entry.account_type == "Expense" and entry.debit_cents > 0:
            return entry.account_code
    raise AccountResolutionError(
        f"Accrual {accrual.transaction_id} has no expense leg to settle",
        details={"transaction_id": accrual.transaction_id},
    )


def post_expense_settlement(
    expense: Expense,
    accrual: Transaction,
    cash_account: Account,
    well_known: WellKnownAccounts,
    *,
    user_id: int | None,
    paid_at: datetime | None = None,
) -> Transaction:
    """Accounts Payable Dr / Cash Cr, settling an earlier accrual."""
    ap = well_known.accounts_payable
    when = paid_at or utcnow()
    meta = SettlementMetadata(
        settles_transaction_id=accrual.transaction_id,
        expense_account_code=accrued_expense_account_code(accrual),
        category=expense.category,
    )
    header = TransactionHeader(
        description=f"Expense settled: {expense.description}",
        type="settlement",
        source=SOURCE_EXPENSE_SETTLEMENT,
        date=when,
        reference=expense.expense_id,
        residence_id=expense.residence_id,
        created_by_user_id=user_id,
        source_id=expense.expense_id,
        source_model="Expense",
    )
    return ledger_service.post(header, [
        debit(ap, expense.amount_cents, f"Settle payable: {expense.description}", meta),
        credit(cash_account, expense.amount_cents, f"Paid via {expense.payment_method}", meta),
    ])


# =============================================================================
# MAINTENANCE
# =============================================================================

def post_maintenance_accrual(
    request: Maintenance,
    expense_account: Account,
    well_known: WellKnownAccounts,
    *,
    user_id: int | None,
    approved_at: datetime | None = None,
) -> Transaction:
    """Maintenance expense Dr / Accounts Payable Cr."""
    ap = well_known.accounts_payable
    when = approved_at or utcnow()
    meta = AccrualMetadata(category="Maintenance", period_year=when.year, period_month=when.month)
    header = TransactionHeader(
        description=f"Maintenance approved: {request.issue}",
        type="accrual",
        source=SOURCE_MAINTENANCE_ACCRUAL,
        date=when,
        reference=request.request_id,
        residence_id=request.residence_id,
        created_by_user_id=user_id,
        source_id=request.request_id,
        source_model="Maintenance",
    )
    return ledger_service.post(header, [
        debit(expense_account, request.amount_cents, f"Maintenance: {request.issue}", meta),
        credit(ap, request.amount_cents, f"Payable: {request.issue}", meta),
    ])


# =============================================================================
# OTHER INCOME
# =============================================================================

def post_income_receipt(
    income: OtherIncome,
    cash_account: Account,
    income_account: Account,
    *,
    user_id: int | None,
    received_at: datetime | None = None,
) -> Transaction:
    """Cash Dr / Income Cr."""
    when = received_at or income.income_date
    meta = AccrualMetadata(category=income.category, period_year=when.year, period_month=when.month)
    header = TransactionHeader(
        description=f"Income received: {income.description}",
        type="receipt",
        source=SOURCE_INCOME_RECEIPT,
        date=when,
        reference=income.income_id,
        residence_id=income.residence_id,
        created_by_user_id=user_id,
        source_id=income.income_id,
        source_model="OtherIncome",
    )
    return ledger_service.post(header, [
        debit(cash_account, income.amount_cents, f"Received via {income.payment_method}", meta),
        credit(income_account, income.amount_cents, f"{income.category}: {income.description}", meta),
    ])


def post_income_refund(
    income: OtherIncome,
    income_account: Account,
    cash_account: Account,
    *,
    user_id: int | None,
    refunded_at: datetime | None = None,
) -> Transaction:
    """Income Dr / Cash Cr, reversing a received income."""
    when = refunded_at or utcnow()
    meta = AccrualMetadata(category=income.category, period_year=when.year, period_month=when.month)
    header = TransactionHeader(
        description=f"Refund issued: {income.description}",
        type="refund",
        source=SOURCE_REFUND,
        date=when,
        reference=income.income_id,
        residence_id=income.residence_id,
        created_by_user_id=user_id,
        source_id=income.income_id,
        source_model="OtherIncome",
    )
    return ledger_service.post(header, [
        debit(income_account, income.amount_cents, f"Refund: {income.description}", meta),
        credit(cash_account, income.amount_cents, f"Refunded via {income.payment_method}", meta),
    ])


# =============================================================================
# MANUAL
# =============================================================================

def post_manual(
    *,
    description: str,
    lines: list[tuple[Account, int, int]],
    user_id: int | None,
    date: datetime | None = None,
    residence_id: int | None = None,
    reference: str | None = None,
    note: str | None = None,
) -> Transaction:
    """
    Free-form journal entry.

    lines: (account, debit_cents, credit_cents) triples; balance is enforced
    by the ledger store like every other posting.
    """
    if not description:
        raise ValidationError("description is required", details={"field": "description"})
    meta = ManualMetadata(note=note, entered_by_user_id=user_id)
    header = TransactionHeader(
        description=description,
        type="manual",
        source=SOURCE_MANUAL,
        date=date or utcnow(),
        reference=reference,
        residence_id=residence_id,
        created_by_user_id=user_id,
    )
    return ledger_service.post(header, [
        ledger_service.PostingLine(account=account, debit_cents=dr, credit_cents=cr, metadata=meta)
        for account, dr, cr in lines
    ])
