from __future__ import annotations

import re
import uuid
from datetime import date
from typing import List, Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from .errors import ValidationError

_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def is_valid_month(value) -> bool:
    """True for a ``YYYY-MM`` string with a month in 01..12."""
    return isinstance(value, str) and bool(_MONTH_RE.match(value))


def require_month(value, label: str = "month") -> str:
    if not is_valid_month(value):
        raise ValidationError(f"Invalid {label} {value!r}: expected YYYY-MM")
    return value


def month_to_date(month: str) -> date:
    require_month(month)
    year, mon = month.split("-")
    return date(int(year), int(mon), 1)


def date_to_month(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def current_month(today: Optional[date] = None) -> str:
    return date_to_month(today or date.today())


def offset_month(month: str, months: int) -> str:
    """Shift a YYYY-MM month by ``months`` (may be negative)."""
    return date_to_month(month_to_date(month) + relativedelta(months=months))


def months_between(start: str, end: str) -> int:
    """Whole months from ``start`` to ``end`` (exclusive of end; negative if end < start)."""
    s = month_to_date(start)
    e = month_to_date(end)
    return (e.year - s.year) * 12 + (e.month - s.month)


def months_in_period(start: str, end: str) -> int:
    """Inclusive month count: 2025-01..2025-12 is 12."""
    return months_between(start, end) + 1


def month_range(start: str, end: str) -> List[str]:
    """Every month from start to end, both inclusive. Empty if end < start."""
    n = months_in_period(start, end)
    return [offset_month(start, i) for i in range(max(n, 0))]


def to_month(value: str) -> str:
    """
    Normalize a YYYY-MM string or an ISO-8601 date/datetime
    ("2026-01-01", "2026-01-01T00:00:00Z") to YYYY-MM.
    """
    if is_valid_month(value):
        return value
    try:
        parsed = isoparse(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid date {value!r}: expected ISO-8601 or YYYY-MM") from exc
    return date_to_month(parsed.date())


def month_year(month: str) -> int:
    return int(require_month(month)[:4])


def generate_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"
