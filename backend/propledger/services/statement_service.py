# Overview: Service-layer operations for financial statements; aggregates ledger entries on demand.

"""
Statement Generator

Reads entries straight from the ledger store; never replays business events.

BASIS:
- accrual: every posted entry
- cash: entries of transactions flagged is_cash_movement at posting time.
  Settlements (AP Dr / Cash Cr) carry the expense account they settle in
  SettlementMetadata, so cash-basis expense lines land on the original
  expense account instead of on AP.
  The cash-basis balance sheet lists only cash accounts and non-trade
  liabilities; the other legs of cash transactions (fixed assets,
  receivables, payables) are summed into equity as non-cash adjustments.

PERIODS:
- Income statements filter on the canonical period fields (period_year,
  period_month) for YYYY / YYYY-MM / YYYY-Qn, and on transaction dates for
  explicit start/end ranges.
- Balance reports (trial balance, balance sheet) are as-of snapshots on
  transaction date, inclusive.
- Cash flow and general ledger use transaction dates so opening and
  closing balances line up with the period boundaries.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Account, TransactionEntry, DEBIT_NORMAL_TYPES
from propledger.time_utils import ReportingPeriod, to_utc_z
from . import ledger_service
from .account_resolver import get_well_known_accounts, is_cash_account
from .account_service import get_account_by_code, get_descendant_codes
from .ledger_service import EntryFilter, SettlementMetadata, load_metadata
from .posting_rules import (
    SOURCE_EXPENSE_ACCRUAL,
    SOURCE_EXPENSE_PAYMENT,
    SOURCE_EXPENSE_SETTLEMENT,
    SOURCE_INCOME_RECEIPT,
    SOURCE_MAINTENANCE_ACCRUAL,
    SOURCE_MANUAL,
    SOURCE_REFUND,
)


BASES = ("accrual", "cash")

OPERATING_SOURCES = {
    SOURCE_EXPENSE_ACCRUAL,
    SOURCE_EXPENSE_PAYMENT,
    SOURCE_EXPENSE_SETTLEMENT,
    SOURCE_INCOME_RECEIPT,
    SOURCE_MAINTENANCE_ACCRUAL,
    SOURCE_REFUND,
}

NON_CURRENT_ASSET_KEYWORDS = ("fixed", "building", "equipment", "furniture", "property", "vehicle", "non-current", "long-term")
NON_CURRENT_LIABILITY_KEYWORDS = ("long-term", "loan", "mortgage", "non-current")
CASH_BASIS_EXCLUDED_KEYWORDS = ("payable", "receivable")


def validate_basis(basis: str | None) -> str:
    value = (basis or "accrual").strip().lower()
    if value not in BASES:
        raise ValidationError("basis must be 'cash' or 'accrual'", details={"field": "basis"})
    return value


def normal_balance(account_type: str, debit_cents: int, credit_cents: int) -> int:
    """Balance on the account type's normal side."""
    if account_type in DEBIT_NORMAL_TYPES:
        return debit_cents - credit_cents
    return credit_cents - debit_cents


def _period_filter(period: ReportingPeriod, **kwargs) -> EntryFilter:
    if period.explicit:
        return EntryFilter(start=period.start, end=period.end, **kwargs)
    return EntryFilter(periods=period.months(), **kwargs)


def _period_dict(period: ReportingPeriod) -> dict:
    return {"label": period.label, "start": to_utc_z(period.start), "end": to_utc_z(period.end)}


def _month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _accounts_by_code() -> dict[str, Account]:
    return {a.code: a for a in db.session.query(Account).all()}


def _is_cash(entry: TransactionEntry, accounts: dict[str, Account]) -> bool:
    return is_cash_account(accounts.get(entry.account_code) or entry)


def _settled_expense_code(entry: TransactionEntry) -> str | None:
    """Expense account a cash-basis settlement debit belongs to, if any."""
    if entry.source != SOURCE_EXPENSE_SETTLEMENT or entry.debit_cents <= 0:
        return None
    meta = load_metadata(entry)
    if isinstance(meta, SettlementMetadata):
        return meta.expense_account_code
    return None


def _pl_lines(entries: list[TransactionEntry], basis: str, accounts: dict[str, Account]):
    """
    Yield (code, name, account_type, debit_cents, credit_cents, entry) for
    income statement purposes, attributing cash-basis settlements.
    """
    for entry in entries:
        if entry.account_type in ("Income", "Expense"):
            yield entry.account_code, entry.account_name, entry.account_type, entry.debit_cents, entry.credit_cents, entry
        elif basis == "cash":
            code = _settled_expense_code(entry)
            if code is None:
                continue
            account = accounts.get(code)
            name = account.name if account else code
            yield code, name, "Expense", entry.debit_cents, 0, entry


# =============================================================================
# TRIAL BALANCE
# =============================================================================

def trial_balance(*, as_of: datetime, basis: str = "accrual", residence_id: int | None = None) -> dict:
    """
    Debit and credit totals per account up to as_of (inclusive).

    Rows without activity are omitted. Accounts deactivated after posting
    still appear (flagged) so the columns keep balancing.
    """
    basis = validate_basis(basis)
    rows = ledger_service.sum_by_account(EntryFilter(end=as_of, basis=basis, residence_id=residence_id))
    active = {a.id: a.is_active for a in db.session.query(Account).all()}

    accounts = []
    total_debit = 0
    total_credit = 0
    for account_id, code, name, account_type, debit_cents, credit_cents in rows:
        if debit_cents == 0 and credit_cents == 0:
            continue
        total_debit += debit_cents
        total_credit += credit_cents
        accounts.append({
            "account_code": code,
            "account_name": name,
            "account_type": account_type,
            "is_active": active.get(account_id, False),
            "debit_cents": debit_cents,
            "credit_cents": credit_cents,
            "balance_cents": normal_balance(account_type, debit_cents, credit_cents),
        })

    return {
        "as_of": to_utc_z(as_of),
        "basis": basis,
        "residence_id": residence_id,
        "accounts": accounts,
        "totals": {
            "debit_cents": total_debit,
            "credit_cents": total_credit,
            "difference_cents": total_debit - total_credit,
        },
        "is_balanced": total_debit == total_credit,
    }


# =============================================================================
# INCOME STATEMENT
# =============================================================================

def income_statement(*, period: ReportingPeriod, basis: str = "accrual", residence_id: int | None = None) -> dict:
    basis = validate_basis(basis)
    flt = _period_filter(period, basis=basis, residence_id=residence_id)
    if basis == "accrual":
        flt.account_types = ["Income", "Expense"]
    entries = ledger_service.query_entries(flt)
    accounts = _accounts_by_code()

    income: OrderedDict[str, dict] = OrderedDict()
    expenses: OrderedDict[str, dict] = OrderedDict()
    monthly = OrderedDict(
        (_month_key(y, m), {"income_cents": 0, "expenses_cents": 0, "net_income_cents": 0})
        for y, m in period.months()
    )

    for code, name, account_type, dr, cr, entry in _pl_lines(entries, basis, accounts):
        bucket = income if account_type == "Income" else expenses
        line = bucket.setdefault(code, {"account_code": code, "account_name": name, "amount_cents": 0})
        amount = normal_balance(account_type, dr, cr)
        line["amount_cents"] += amount

        month = monthly.setdefault(
            _month_key(entry.period_year, entry.period_month),
            {"income_cents": 0, "expenses_cents": 0, "net_income_cents": 0},
        )
        if account_type == "Income":
            month["income_cents"] += amount
        else:
            month["expenses_cents"] += amount

    for month in monthly.values():
        month["net_income_cents"] = month["income_cents"] - month["expenses_cents"]

    total_income = sum(line["amount_cents"] for line in income.values())
    total_expenses = sum(line["amount_cents"] for line in expenses.values())

    return {
        "period": _period_dict(period),
        "basis": basis,
        "residence_id": residence_id,
        "income": {
            "accounts": sorted(income.values(), key=lambda l: l["account_code"]),
            "total_cents": total_income,
        },
        "expenses": {
            "accounts": sorted(expenses.values(), key=lambda l: l["account_code"]),
            "total_cents": total_expenses,
        },
        "net_income_cents": total_income - total_expenses,
        "monthly_breakdown": monthly,
    }


# =============================================================================
# ACCOUNT DRILL-DOWN
# =============================================================================

def account_details(
    *,
    account_code: str,
    year: int | None = None,
    month: int | None = None,
    basis: str = "accrual",
    residence_id: int | None = None,
) -> dict:
    """
    Entries behind one statement line, child accounts included.

    Running balance accumulates oldest -> newest; rows come back newest first.
    """
    basis = validate_basis(basis)
    account = get_account_by_code(account_code)
    if account is None:
        raise NotFoundError(f"Account {account_code} not found")
    if month is not None and year is None:
        raise ValidationError("month requires year", details={"field": "month"})
    if month is not None and not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12", details={"field": "month"})

    codes = get_descendant_codes(account_code)
    periods = None
    if year is not None:
        periods = [(year, month)] if month is not None else [(year, m) for m in range(1, 13)]

    entries = ledger_service.query_entries(EntryFilter(
        account_code=account_code, periods=periods, basis=basis, residence_id=residence_id,
    ))
    if basis == "cash" and account.type == "Expense":
        settlements = ledger_service.query_entries(EntryFilter(
            source=SOURCE_EXPENSE_SETTLEMENT, periods=periods, basis=basis, residence_id=residence_id,
        ))
        entries.extend(e for e in settlements if _settled_expense_code(e) in codes)
        entries.sort(key=lambda e: (e.transaction.date, e.id))

    running = 0
    rows = []
    total_debit = 0
    total_credit = 0
    for entry in entries:
        attributed = entry.account_code not in codes
        dr, cr = entry.debit_cents, entry.credit_cents
        running += normal_balance(account.type, dr, cr)
        total_debit += dr
        total_credit += cr
        rows.append({
            "entry_id": entry.id,
            "transaction_id": entry.transaction.transaction_id,
            "date": to_utc_z(entry.transaction.date),
            "description": entry.description,
            "account_code": _settled_expense_code(entry) if attributed else entry.account_code,
            "account_name": entry.account_name,
            "source": entry.source,
            "source_id": entry.source_id,
            "debit_cents": dr,
            "credit_cents": cr,
            "running_balance_cents": running,
            "period_year": entry.period_year,
            "period_month": entry.period_month,
        })
    rows.reverse()

    return {
        "account": account.to_dict(),
        "included_codes": codes,
        "year": year,
        "month": month,
        "basis": basis,
        "residence_id": residence_id,
        "entries": rows,
        "totals": {
            "debit_cents": total_debit,
            "credit_cents": total_credit,
            "balance_cents": running,
            "entry_count": len(rows),
        },
    }


# =============================================================================
# BALANCE SHEET
# =============================================================================

def _is_non_current(account_name: str, category: str | None, keywords) -> bool:
    text = f"{account_name} {category or ''}".lower()
    return any(k in text for k in keywords)


def balance_sheet(*, as_of: datetime, basis: str = "accrual", residence_id: int | None = None) -> dict:
    """
    Asset, liability and equity balances as of a date.

    Income and expense to date are folded into equity as current earnings.
    Cash basis keeps only cash/bank/wallet assets and drops payable and
    receivable accounts.
    """
    basis = validate_basis(basis)
    entries = ledger_service.query_entries(EntryFilter(end=as_of, basis=basis, residence_id=residence_id))
    accounts = _accounts_by_code()

    balances: dict[str, dict] = {}
    earnings = 0
    for code, name, account_type, dr, cr, _entry in _pl_lines(entries, basis, accounts):
        earnings += normal_balance(account_type, dr, cr) if account_type == "Income" else -normal_balance(account_type, dr, cr)

    # Cash basis: counter legs that are neither cash nor P&L stay off the
    # sheet and are carried as one equity line, credit-normal.
    non_cash_adjustments = 0
    for entry in entries:
        if entry.account_type not in ("Asset", "Liability", "Equity"):
            continue
        if basis == "cash":
            if _settled_expense_code(entry) is not None:
                continue
            lowered = entry.account_name.lower()
            excluded = any(k in lowered for k in CASH_BASIS_EXCLUDED_KEYWORDS)
            if excluded or (entry.account_type == "Asset" and not _is_cash(entry, accounts)):
                non_cash_adjustments += entry.credit_cents - entry.debit_cents
                continue
        row = balances.setdefault(entry.account_code, {
            "account_code": entry.account_code,
            "account_name": entry.account_name,
            "account_type": entry.account_type,
            "debit_cents": 0,
            "credit_cents": 0,
        })
        row["debit_cents"] += entry.debit_cents
        row["credit_cents"] += entry.credit_cents

    assets = {"current": [], "non_current": []}
    liabilities = {"current": [], "non_current": []}
    equity_lines = []
    for code in sorted(balances):
        row = balances[code]
        balance = normal_balance(row["account_type"], row["debit_cents"], row["credit_cents"])
        if balance == 0:
            continue
        account = accounts.get(code)
        category = account.category if account else None
        line = {"account_code": code, "account_name": row["account_name"], "balance_cents": balance}
        if row["account_type"] == "Asset":
            key = "non_current" if _is_non_current(row["account_name"], category, NON_CURRENT_ASSET_KEYWORDS) else "current"
            assets[key].append(line)
        elif row["account_type"] == "Liability":
            key = "non_current" if _is_non_current(row["account_name"], category, NON_CURRENT_LIABILITY_KEYWORDS) else "current"
            liabilities[key].append(line)
        else:
            equity_lines.append(line)

    def _section(groups: dict) -> dict:
        current = sum(l["balance_cents"] for l in groups["current"])
        non_current = sum(l["balance_cents"] for l in groups["non_current"])
        return {
            "current": groups["current"],
            "non_current": groups["non_current"],
            "total_current_cents": current,
            "total_non_current_cents": non_current,
            "total_cents": current + non_current,
        }

    asset_section = _section(assets)
    liability_section = _section(liabilities)
    equity_accounts_total = sum(l["balance_cents"] for l in equity_lines)
    total_equity = equity_accounts_total + earnings + non_cash_adjustments
    total_le = liability_section["total_cents"] + total_equity
    difference = asset_section["total_cents"] - total_le

    return {
        "as_of": to_utc_z(as_of),
        "basis": basis,
        "residence_id": residence_id,
        "assets": asset_section,
        "liabilities": liability_section,
        "equity": {
            "accounts": equity_lines,
            "current_earnings_cents": earnings,
            "non_cash_adjustments_cents": non_cash_adjustments,
            "retained_earnings_code": get_well_known_accounts().code("RETAINED_EARNINGS"),
            "total_cents": total_equity,
        },
        "total_liabilities_and_equity_cents": total_le,
        "accounting_equation": {
            "assets_cents": asset_section["total_cents"],
            "liabilities_plus_equity_cents": total_le,
            "difference_cents": difference,
            "is_balanced": difference == 0,
        },
    }


# =============================================================================
# CASH FLOW
# =============================================================================

def _cash_balance(end: datetime, residence_id: int | None, accounts: dict[str, Account]) -> int:
    balance = 0
    for entry in ledger_service.query_entries(EntryFilter(end=end, basis="cash", residence_id=residence_id)):
        if _is_cash(entry, accounts):
            balance += entry.debit_cents - entry.credit_cents
    return balance


def _classify_manual(counterparts: list[TransactionEntry], accounts: dict[str, Account]) -> str:
    for entry in counterparts:
        account = accounts.get(entry.account_code)
        category = (account.category if account else "") or ""
        text = f"{entry.account_name} {category}".lower()
        if entry.account_type == "Equity":
            return "financing"
        if entry.account_type == "Liability" and any(k in text for k in NON_CURRENT_LIABILITY_KEYWORDS):
            return "financing"
        if entry.account_type == "Asset":
            return "investing"
    return "operating"


def cash_flow(*, period: ReportingPeriod, basis: str = "cash", residence_id: int | None = None) -> dict:
    """
    Cash movements in a period grouped into operating, investing and financing.

    Only cash, bank and wallet legs count. Source tags decide the bucket;
    manual entries fall back to the type of the non-cash counterpart.
    Transfers between cash accounts net to zero and are skipped.
    """
    basis = validate_basis(basis)
    entries = ledger_service.query_entries(EntryFilter(
        start=period.start, end=period.end, basis="cash", residence_id=residence_id,
    ))
    accounts = _accounts_by_code()

    by_txn: OrderedDict[int, list[TransactionEntry]] = OrderedDict()
    for entry in entries:
        by_txn.setdefault(entry.transaction_pk, []).append(entry)

    sections = {name: OrderedDict() for name in ("operating", "investing", "financing")}
    for txn_entries in by_txn.values():
        cash_legs = [e for e in txn_entries if _is_cash(e, accounts)]
        others = [e for e in txn_entries if not _is_cash(e, accounts)]
        net = sum(e.debit_cents - e.credit_cents for e in cash_legs)
        if net == 0 or not others:
            continue

        source = txn_entries[0].source
        if source in OPERATING_SOURCES:
            bucket = "operating"
        elif source == SOURCE_MANUAL:
            bucket = _classify_manual(others, accounts)
        else:
            bucket = "operating"

        label = others[0].account_name
        if source == SOURCE_EXPENSE_SETTLEMENT:
            code = _settled_expense_code(others[0])
            account = accounts.get(code) if code else None
            label = account.name if account else label
        item = sections[bucket].setdefault(label, {"label": label, "inflow_cents": 0, "outflow_cents": 0})
        if net > 0:
            item["inflow_cents"] += net
        else:
            item["outflow_cents"] += -net

    result_sections = {}
    net_change = 0
    for name, items in sections.items():
        rows = []
        section_net = 0
        for item in items.values():
            item["net_cents"] = item["inflow_cents"] - item["outflow_cents"]
            section_net += item["net_cents"]
            rows.append(item)
        result_sections[name] = {"items": rows, "net_cents": section_net}
        net_change += section_net

    opening = _cash_balance(period.start - timedelta(microseconds=1), residence_id, accounts)
    closing = _cash_balance(period.end, residence_id, accounts)

    return {
        "period": _period_dict(period),
        "basis": basis,
        "residence_id": residence_id,
        "operating_activities": result_sections["operating"],
        "investing_activities": result_sections["investing"],
        "financing_activities": result_sections["financing"],
        "net_change_in_cash_cents": net_change,
        "cash_at_beginning_cents": opening,
        "cash_at_end_cents": closing,
        "reconciled": opening + net_change == closing,
    }


# =============================================================================
# GENERAL LEDGER
# =============================================================================

def general_ledger(
    *,
    account_code: str,
    period: ReportingPeriod,
    basis: str = "accrual",
    residence_id: int | None = None,
) -> dict:
    """Opening balance, period entries with running balance, closing balance."""
    basis = validate_basis(basis)
    account = get_account_by_code(account_code)
    if account is None:
        raise NotFoundError(f"Account {account_code} not found")

    prior = ledger_service.query_entries(EntryFilter(
        account_code=account_code,
        end=period.start - timedelta(microseconds=1),
        basis=basis,
        residence_id=residence_id,
    ))
    opening = sum(normal_balance(account.type, e.debit_cents, e.credit_cents) for e in prior)

    entries = ledger_service.query_entries(EntryFilter(
        account_code=account_code, start=period.start, end=period.end, basis=basis, residence_id=residence_id,
    ))

    running = opening
    rows = []
    for entry in entries:
        running += normal_balance(account.type, entry.debit_cents, entry.credit_cents)
        rows.append({
            "entry_id": entry.id,
            "transaction_id": entry.transaction.transaction_id,
            "date": to_utc_z(entry.transaction.date),
            "description": entry.description,
            "account_code": entry.account_code,
            "source": entry.source,
            "debit_cents": entry.debit_cents,
            "credit_cents": entry.credit_cents,
            "running_balance_cents": running,
        })

    return {
        "account": account.to_dict(),
        "period": _period_dict(period),
        "basis": basis,
        "residence_id": residence_id,
        "opening_balance_cents": opening,
        "entries": rows,
        "total_debit_cents": sum(e.debit_cents for e in entries),
        "total_credit_cents": sum(e.credit_cents for e in entries),
        "closing_balance_cents": running,
    }
