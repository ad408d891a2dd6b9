"""
CapCompare — Common Utility Functions
"""
from datetime import date, datetime, timezone
from typing import Optional, Union


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date(value: Union[str, date, datetime]) -> date:
    """Accept YYYY-MM-DD strings, dates or datetimes and return a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as e:
        raise ValueError(f"Invalid date {value!r}. Use YYYY-MM-DD") from e


def pct_change(old_val: float, new_val: float) -> float:
    """Percentage change between two values; 0.0 when the old value is zero."""
    if old_val == 0:
        return 0.0
    return ((new_val - old_val) / old_val) * 100.0


def optional_sub(a: Optional[float], b: Optional[float]) -> Optional[float]:
    """a - b, or None when either side is missing."""
    if a is None or b is None:
        return None
    return a - b


def years_between(start: date, end: date, days_per_year: float = 365.25) -> float:
    """Fractional years between two dates."""
    return (end - start).days / days_per_year


def format_billions(value: Optional[float]) -> str:
    if value is None:
        return "NA"
    return f"{value / 1_000_000_000:.2f}B"
