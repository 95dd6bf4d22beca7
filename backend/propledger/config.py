# backend/propledger/config.py
from __future__ import annotations
import os


# Logical role -> default chart-of-accounts code.
# Overridable per deployment via ACCOUNT_CODE_<ROLE> environment variables.
DEFAULT_WELL_KNOWN_ACCOUNT_CODES = {
    "AP_DEFAULT": "2000",
    "CASH_DEFAULT": "1000",
    "MISC_EXPENSE_DEFAULT": "5099",
    "OTHER_INCOME_DEFAULT": "4900",
    "RETAINED_EARNINGS": "3100",
}


def _well_known_account_codes() -> dict[str, str]:
    codes = dict(DEFAULT_WELL_KNOWN_ACCOUNT_CODES)
    for role in codes:
        override = os.environ.get(f"ACCOUNT_CODE_{role}")
        if override:
            codes[role] = override.strip()
    return codes


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/propledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///propledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    # Statement basis used when a report request omits ?basis=
    DEFAULT_BASIS = os.environ.get("DEFAULT_BASIS", "accrual")

    WELL_KNOWN_ACCOUNT_CODES = _well_known_account_codes()

    # Retry policy for ledger units of work (see services/concurrency.py)
    POSTING_RETRY_ATTEMPTS = int(os.environ.get("POSTING_RETRY_ATTEMPTS", "3"))

    CORS_ALLOWED_ORIGINS = tuple(
        o.strip() for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
        ).split(",") if o.strip()
    )


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
