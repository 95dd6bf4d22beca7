from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from propledger.errors import ValidationError
from propledger.time_utils import parse_iso_datetime


# Maximum single amount: 99,999,999.99 (9,999,999,999 cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 9_999_999_999


def require_fields(payload: dict, fields: Iterable[str]) -> None:
    """Raise ValidationError listing every required field that is missing or blank."""
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(
            f"Please provide: {', '.join(missing)}",
            details={"missing_fields": missing},
        )


def parse_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Rejects floats, decimals and scientific notation so "12.5" or "1e3"
    never silently become an id or a cents amount.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_amount_cents(payload: dict, *, field: str = "amount") -> int:
    """
    Read a positive money amount from a request body as integer cents.

    Accepts either "<field>_cents" (int) or "<field>" (number or numeric
    string with at most two decimal places).
    """
    cents_key = f"{field}_cents"
    if payload.get(cents_key) is not None:
        cents = parse_int(payload[cents_key], cents_key)
    else:
        raw = payload.get(field)
        if raw is None or raw == "" or isinstance(raw, bool):
            raise ValidationError(f"{field} is required", details={"field": field})
        try:
            amount = Decimal(str(raw).strip())
            if not amount.is_finite():
                raise InvalidOperation
            quantized = amount.quantize(Decimal("0.01"))
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number", details={"field": field})
        if amount != quantized:
            raise ValidationError(f"{field} must have at most two decimal places", details={"field": field})
        cents = int(amount * 100)

    if cents <= 0:
        raise ValidationError(f"{field} must be a positive number", details={"field": field})
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} exceeds the maximum allowed amount", details={"field": field})
    return cents


def parse_choice(value: Any, choices: Iterable[str], field: str) -> str:
    """Validate an enum-like string against its allowed values (exact match)."""
    allowed = list(choices)
    if value not in allowed:
        raise ValidationError(
            f"{field} must be one of: {', '.join(allowed)}",
            details={"field": field},
        )
    return value


def parse_datetime_field(value: Any, field: str, *, required: bool = False) -> datetime | None:
    """Parse an ISO-8601 date/datetime request field to UTC-naive."""
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", details={"field": field})
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 date", details={"field": field})
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date", details={"field": field})


def parse_optional_id(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    parsed = parse_int(value, field)
    if parsed <= 0:
        raise ValidationError(f"Invalid {field}", details={"field": field})
    return parsed


def parse_pagination(args, *, default_per_page: int = 50, max_per_page: int = 200) -> tuple[int, int]:
    """(page, per_page) from query args, clamped to sane bounds."""
    page = parse_int(args.get("page", 1), "page")
    per_page = parse_int(args.get("per_page", default_per_page), "per_page")
    return max(1, page), max(1, min(per_page, max_per_page))


def parse_bool(value: Any, field: str) -> bool | None:
    """Parse a true/false/1/0 query flag; None when absent."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValidationError(f"{field} must be true or false", details={"field": field})
