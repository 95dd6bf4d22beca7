# Overview: Service-layer operations for business identifiers.

"""
Identifier Service

Business ids follow "<PREFIX>-<YYYYMMDDHHMMSS>-<RANDOM>" (e.g. TXN-20250301120000-8F3A2C).
Uniqueness is guaranteed by the unique constraint on each id column; the
random suffix makes collisions within one second practically impossible.
"""

import secrets

from propledger.time_utils import utcnow


TRANSACTION_PREFIX = "TXN"
EXPENSE_PREFIX = "EXP"
INCOME_PREFIX = "INC"
MAINTENANCE_PREFIX = "MNT"


def generate_unique_id(prefix: str) -> str:
    stamp = utcnow().strftime("%Y%m%d%H%M%S")
    return f"{prefix}-{stamp}-{secrets.token_hex(3).upper()}"


def normalize_identifier(value: str) -> str:
    """Normalize to uppercase, no spaces."""
    return value.upper().strip().replace(" ", "")
