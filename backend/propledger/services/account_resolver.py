# Overview: Maps payment methods and categories to chart-of-accounts rows.

"""
Account Resolver

Single source of truth for "which account does this business concept post to".

RESOLUTION ORDER (per key):
1. Dynamic: ordered name patterns for the key, matched case-insensitively
   against active accounts of the expected type. First pattern with a match
   wins; ties inside a pattern go to the lowest code. If no key pattern
   matches, generic keywords for the account family are tried the same way.
2. Legacy: fixed key -> account code table for charts seeded before the
   dynamic names existed. Only consulted when tier 1 found nothing.
2b. Default: keys missing from the legacy table (or whose legacy account
    is gone) use the well-known default account for the family
    (CASH_DEFAULT, MISC_EXPENSE_DEFAULT, OTHER_INCOME_DEFAULT).
3. Fail: resolve_* returns None; require_* raises AccountResolutionError.

Read-only: no function in this module writes to the database.

Well-known accounts (AP, default cash, misc expense, other income, retained
earnings) are named by logical role and configured per deployment. They are
loaded once at startup into a WellKnownAccounts registry that posting rules
receive explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import AccountResolutionError, ValidationError
from ..models import Account


# =============================================================================
# KEYS AND PATTERNS
# =============================================================================

PAYMENT_METHODS = [
    "Bank Transfer",
    "Cash",
    "Ecocash",
    "Innbucks",
    "Online Payment",
    "MasterCard",
    "Visa",
    "PayPal",
    "Petty Cash",
]

EXPENSE_CATEGORIES = [
    "Maintenance",
    "Utilities",
    "Water",
    "Electricity",
    "Gas",
    "WiFi",
    "Internet",
    "Taxes",
    "Insurance",
    "Salaries",
    "Supplies",
    "Other",
]

INCOME_CATEGORIES = [
    "Investment",
    "Interest",
    "Commission",
    "Rental",
    "Service",
    "Other",
]

PAYMENT_METHOD_PATTERNS = {
    "Bank Transfer": ["bank account", "bank"],
    "Cash": ["cash on hand", "cash"],
    "Ecocash": ["ecocash"],
    "Innbucks": ["innbucks"],
    "Online Payment": ["online", "bank"],
    "MasterCard": ["mastercard", "card", "bank"],
    "Visa": ["visa", "card", "bank"],
    "PayPal": ["paypal", "online", "bank"],
    "Petty Cash": ["petty cash", "cash"],
}

EXPENSE_CATEGORY_PATTERNS = {
    "Maintenance": ["maintenance", "repair"],
    "Utilities": ["utilities", "utility"],
    "Water": ["water"],
    "Electricity": ["electricity", "power"],
    "Gas": ["gas"],
    "WiFi": ["wifi", "internet"],
    "Internet": ["internet", "wifi"],
    "Taxes": ["tax"],
    "Insurance": ["insurance"],
    "Salaries": ["salar", "wage"],
    "Supplies": ["supplies", "cleaning"],
    "Other": ["other", "miscellaneous"],
}

INCOME_CATEGORY_PATTERNS = {
    "Investment": ["investment"],
    "Interest": ["interest"],
    "Commission": ["commission"],
    "Rental": ["residential", "rental"],
    "Service": ["service"],
    "Other": ["other income", "other"],
}

PAYMENT_FALLBACK_KEYWORDS = ["bank", "cash", "account"]
EXPENSE_FALLBACK_KEYWORDS = ["other", "operating", "miscellaneous"]
INCOME_FALLBACK_KEYWORDS = ["other"]

# Legacy fixed codes. Keys not listed fall through to the well-known default.
LEGACY_PAYMENT_METHOD_CODES = {
    "Cash": "1000",
    "Bank Transfer": "1001",
    "Ecocash": "1003",
    "Innbucks": "1004",
    "Petty Cash": "1002",
    "Online Payment": "1001",
    "MasterCard": "1001",
    "Visa": "1001",
    "PayPal": "1001",
}

LEGACY_EXPENSE_CATEGORY_CODES = {
    "Maintenance": "5007",
    "Utilities": "5003",
    "Water": "5004",
    "WiFi": "5006",
    "Internet": "5006",
}

LEGACY_INCOME_CATEGORY_CODES = {
    "Rental": "4001",
}

# Keywords identifying cash, bank and wallet accounts
CASH_ACCOUNT_KEYWORDS = ("cash", "bank", "wallet", "petty", "ecocash", "innbucks", "mobile money")


def canonical_key(value: str | None, choices: list[str]) -> str | None:
    """Case-insensitive lookup of a supported key; None when unsupported."""
    if not value:
        return None
    wanted = value.strip().lower()
    for choice in choices:
        if choice.lower() == wanted:
            return choice
    return None


def is_cash_account(account) -> bool:
    """
    True for cash, bank and wallet accounts.

    Accepts an Account or any object exposing type/name/category
    (entries carry account_type/account_name instead).
    """
    account_type = getattr(account, "account_type", None) or getattr(account, "type", None)
    if account_type not in ("Asset", "asset"):
        return False
    name = (getattr(account, "account_name", None) or getattr(account, "name", "") or "").lower()
    category = (getattr(account, "category", None) or "").lower()
    if "receivable" in name:
        return False
    return any(k in name or k in category for k in CASH_ACCOUNT_KEYWORDS)


# =============================================================================
# TIERS
# =============================================================================

def _active_accounts(account_type: str) -> list[Account]:
    return (
        db.session.query(Account)
        .filter(Account.type == account_type, Account.is_active.is_(True))
        .order_by(Account.code.asc())
        .all()
    )


def _match_patterns(accounts: list[Account], patterns: list[str]) -> Account | None:
    for pattern in patterns:
        needle = pattern.lower()
        for account in accounts:
            if needle in account.name.lower():
                return account
    return None


def _dynamic(key: str | None, account_type: str, pattern_table: dict, fallback: list[str], only=None) -> Account | None:
    accounts = _active_accounts(account_type)
    if only is not None:
        accounts = [a for a in accounts if only(a)]
    if not accounts:
        return None
    if key is not None:
        match = _match_patterns(accounts, pattern_table.get(key, []))
        if match is not None:
            return match
    return _match_patterns(accounts, fallback)


def _active_by_code(code: str | None, account_type: str) -> Account | None:
    if code is None:
        return None
    account = db.session.query(Account).filter_by(code=code, is_active=True).first()
    if account is None or account.type != account_type:
        return None
    return account


def _legacy(key: str | None, account_type: str, code_table: dict) -> Account | None:
    code = code_table.get(key) if key is not None else None
    return _active_by_code(code, account_type)


def _default(account_type: str, default_role: str | None) -> Account | None:
    if default_role is None:
        return None
    return _active_by_code(get_well_known_accounts().codes.get(default_role), account_type)


def _resolve(raw_key, choices, account_type, pattern_table, fallback, legacy_table, default_role, only=None) -> Account | None:
    key = canonical_key(raw_key, choices)
    account = _dynamic(key, account_type, pattern_table, fallback, only)
    if account is not None:
        return account

    account = _legacy(key, account_type, legacy_table)
    if account is not None:
        current_app.logger.info("Resolved '%s' through legacy code table to %s", raw_key, account.code)
        return account

    account = _default(account_type, default_role)
    if account is not None:
        current_app.logger.info("Resolved '%s' to well-known default %s (%s)", raw_key, account.code, default_role)
    return account


# =============================================================================
# PUBLIC API
# =============================================================================

def resolve_payment_account(payment_method: str | None) -> Account | None:
    """Only cash, bank and wallet accounts are candidates in the dynamic tier."""
    return _resolve(
        payment_method, PAYMENT_METHODS, "Asset",
        PAYMENT_METHOD_PATTERNS, PAYMENT_FALLBACK_KEYWORDS,
        LEGACY_PAYMENT_METHOD_CODES, "CASH_DEFAULT",
        only=is_cash_account,
    )


def resolve_expense_account(category: str | None) -> Account | None:
    return _resolve(
        category, EXPENSE_CATEGORIES, "Expense",
        EXPENSE_CATEGORY_PATTERNS, EXPENSE_FALLBACK_KEYWORDS,
        LEGACY_EXPENSE_CATEGORY_CODES, "MISC_EXPENSE_DEFAULT",
    )


def resolve_income_account(category: str | None) -> Account | None:
    return _resolve(
        category, INCOME_CATEGORIES, "Income",
        INCOME_CATEGORY_PATTERNS, INCOME_FALLBACK_KEYWORDS,
        LEGACY_INCOME_CATEGORY_CODES, "OTHER_INCOME_DEFAULT",
    )


def require_payment_account(payment_method: str | None) -> Account:
    account = resolve_payment_account(payment_method)
    if account is None:
        raise AccountResolutionError(
            f"No account found for payment method '{payment_method}'. "
            "Add an active Asset account for this payment method to the chart of accounts.",
            details={"payment_method": payment_method},
        )
    return account


def require_expense_account(category: str | None) -> Account:
    account = resolve_expense_account(category)
    if account is None:
        raise AccountResolutionError(
            f"No expense account found for category '{category}'. "
            "Add an active Expense account for this category to the chart of accounts.",
            details={"category": category},
        )
    return account


def require_income_account(category: str | None) -> Account:
    account = resolve_income_account(category)
    if account is None:
        raise AccountResolutionError(
            f"No income account found for category '{category}'. "
            "Add an active Income account for this category to the chart of accounts.",
            details={"category": category},
        )
    return account


def validate_payment_method(payment_method: str | None) -> str:
    """Canonical payment method name, or ValidationError."""
    key = canonical_key(payment_method, PAYMENT_METHODS)
    if key is None:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
            details={"field": "payment_method"},
        )
    return key


def get_payment_source_accounts() -> list[Account]:
    """Active cash, bank and wallet accounts."""
    return [a for a in _active_accounts("Asset") if is_cash_account(a)]


def get_expense_accounts() -> list[Account]:
    return _active_accounts("Expense")


def payment_method_options() -> list[dict]:
    """Each supported method with the account it currently resolves to."""
    options = []
    for method in PAYMENT_METHODS:
        account = resolve_payment_account(method)
        options.append({
            "payment_method": method,
            "account": account.to_dict() if account else None,
        })
    return options


# =============================================================================
# WELL-KNOWN ACCOUNTS
# =============================================================================

@dataclass(frozen=True)
class WellKnownAccounts:
    """
    Logical role -> account code registry, built once from configuration.

    Roles: AP_DEFAULT, CASH_DEFAULT, MISC_EXPENSE_DEFAULT,
    OTHER_INCOME_DEFAULT, RETAINED_EARNINGS.
    """
    codes: dict

    @classmethod
    def from_config(cls, config) -> "WellKnownAccounts":
        return cls(codes=dict(config["WELL_KNOWN_ACCOUNT_CODES"]))

    def code(self, role: str) -> str:
        try:
            return self.codes[role]
        except KeyError:
            raise AccountResolutionError(f"Well-known account role '{role}' is not configured")

    def get(self, role: str) -> Account:
        code = self.code(role)
        account = db.session.query(Account).filter_by(code=code).first()
        if account is None or not account.is_active:
            raise AccountResolutionError(
                f"Well-known account {role} (code {code}) is missing or inactive",
                details={"role": role, "code": code},
            )
        return account

    @property
    def accounts_payable(self) -> Account:
        return self.get("AP_DEFAULT")

    @property
    def retained_earnings(self) -> Account:
        return self.get("RETAINED_EARNINGS")


def get_well_known_accounts() -> WellKnownAccounts:
    return current_app.extensions["well_known_accounts"]
