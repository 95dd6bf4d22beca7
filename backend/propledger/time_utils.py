from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" is interpreted as midnight UTC
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def end_of_day(d: date | datetime) -> datetime:
    """Inclusive upper bound for a calendar day."""
    return datetime(d.year, d.month, d.day, 23, 59, 59, 999999)


_YEAR_RE = re.compile(r"^(\d{4})$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})$")
_QUARTER_RE = re.compile(r"^(\d{4})-[Qq]([1-4])$")


@dataclass(frozen=True)
class ReportingPeriod:
    """
    Closed reporting window.

    label: the period string as requested ("2025", "2025-03", "2025-Q2")
    start/end: inclusive UTC-naive datetime bounds
    """
    label: str
    start: datetime
    end: datetime
    # True for explicit start/end ranges; those filter on dates, not canonical periods
    explicit: bool = False

    def months(self) -> list[tuple[int, int]]:
        """(year, month) pairs covered by the window, oldest first."""
        out = []
        y, m = self.start.year, self.start.month
        while (y, m) <= (self.end.year, self.end.month):
            out.append((y, m))
            m += 1
            if m > 12:
                y, m = y + 1, 1
        return out


def parse_period(value: Optional[str], *, start: Optional[str] = None, end: Optional[str] = None) -> ReportingPeriod:
    """
    Parse a reporting period.

    Accepts "YYYY", "YYYY-MM", "YYYY-Qn", or explicit start/end ISO dates.
    Explicit start/end take precedence over the period string.
    Raises ValueError on malformed input.
    """
    if start or end:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
        if start_dt is None or end_dt is None:
            raise ValueError("start_date and end_date must both be provided")
        if end_dt.time() == datetime.min.time():
            end_dt = end_of_day(end_dt)
        if end_dt < start_dt:
            raise ValueError("end_date must not be before start_date")
        return ReportingPeriod(label=f"{start_dt.date()}..{end_dt.date()}", start=start_dt, end=end_dt, explicit=True)

    if not value:
        raise ValueError("period is required (YYYY, YYYY-MM or YYYY-Qn)")

    s = value.strip()

    m = _YEAR_RE.match(s)
    if m:
        year = int(m.group(1))
        return ReportingPeriod(label=s, start=datetime(year, 1, 1), end=end_of_day(date(year, 12, 31)))

    m = _MONTH_RE.match(s)
    if m:
        year, month = int(m.group(1)), int(m.group(2))
        if not 1 <= month <= 12:
            raise ValueError("month must be between 1 and 12")
        last_day = calendar.monthrange(year, month)[1]
        return ReportingPeriod(
            label=f"{year:04d}-{month:02d}",
            start=datetime(year, month, 1),
            end=end_of_day(date(year, month, last_day)),
        )

    m = _QUARTER_RE.match(s)
    if m:
        year, quarter = int(m.group(1)), int(m.group(2))
        first_month = (quarter - 1) * 3 + 1
        last_month = first_month + 2
        last_day = calendar.monthrange(year, last_month)[1]
        return ReportingPeriod(
            label=f"{year:04d}-Q{quarter}",
            start=datetime(year, first_month, 1),
            end=end_of_day(date(year, last_month, last_day)),
        )

    raise ValueError(f"Unrecognized period '{value}' (expected YYYY, YYYY-MM or YYYY-Qn)")


def parse_as_of(value: Optional[str]) -> datetime:
    """As-of bound for balance reports; a bare date means end of that day. Defaults to now."""
    if not value:
        return utcnow()
    dt = parse_iso_datetime(value)
    if dt is None:
        return utcnow()
    if dt.time() == datetime.min.time() and "T" not in value:
        return end_of_day(dt)
    return dt
