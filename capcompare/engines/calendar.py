"""
CapCompare — Calendar Alignment
Year-over-year, quarter-over-quarter and rolling-window date arithmetic,
plus comparison of consecutive calendar periods.
"""
import pandas as pd
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Any, Iterable, List, Optional, Tuple

from capcompare.data.models import NormalizedSnapshot
from capcompare.engines.comparison import ComparisonReport, compare_snapshots
from capcompare.utils.logger import get_logger

logger = get_logger("calendar")


def _shift_months(anchor: date, months: int) -> date:
    """Subtract whole months, clamping to month end (Mar 31 - 1m = Feb 28/29)."""
    return (pd.Timestamp(anchor) - pd.DateOffset(months=months)).date()


def year_over_year_dates(anchor: date, years: int) -> List[date]:
    """
    anchor minus 0..years whole years, oldest first.
    Feb 29 maps to Feb 28 in non-leap years.
    """
    if years < 1:
        raise ValueError("years must be >= 1")
    return [_shift_months(anchor, 12 * i) for i in range(years, -1, -1)]


def quarter_over_quarter_dates(anchor: date, quarters: int) -> List[date]:
    """anchor minus 0..quarters quarters (3 months each), oldest first."""
    if quarters < 1:
        raise ValueError("quarters must be >= 1")
    return [_shift_months(anchor, 3 * i) for i in range(quarters, -1, -1)]


@dataclass(frozen=True)
class RollingWindow:
    """Trailing window of a fixed number of days ending at an anchor date."""
    name: str
    days: int

    def __post_init__(self):
        if self.days < 1:
            raise ValueError(f"Rolling window must span at least one day, got {self.days}")

    @classmethod
    def custom(cls, days: int) -> "RollingWindow":
        return cls(name=f"{days}d", days=days)

    @classmethod
    def named(cls, name: str) -> "RollingWindow":
        try:
            return NAMED_WINDOWS[name.strip().lower()]
        except KeyError:
            known = ", ".join(NAMED_WINDOWS)
            raise ValueError(f"Unknown rolling window {name!r}. Known: {known}") from None

    def start(self, anchor: date) -> date:
        return anchor - timedelta(days=self.days)


NAMED_WINDOWS: Dict[str, RollingWindow] = {
    "30d": RollingWindow("30d", 30),
    "90d": RollingWindow("90d", 90),
    "180d": RollingWindow("180d", 180),
    "1y": RollingWindow("1y", 365),
}


def rolling_dates(anchor: date, window: RollingWindow) -> Tuple[date, date]:
    """(window start, anchor) for a trailing window."""
    return window.start(anchor), anchor


@dataclass
class PeriodComparison:
    from_date: date
    to_date: date
    report: Optional[ComparisonReport] = None
    missing_dates: List[date] = field(default_factory=list)

    @property
    def is_missing(self) -> bool:
        return self.report is None

    @property
    def total_change_pct(self) -> Optional[float]:
        return self.report.total_change_pct if self.report else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_date": self.from_date.isoformat(),
            "to_date": self.to_date.isoformat(),
            "missing_dates": [d.isoformat() for d in self.missing_dates],
            "total_change_pct": self.total_change_pct,
            "report": self.report.to_dict() if self.report else None,
        }


@dataclass
class CalendarComparison:
    dates: List[date]
    periods: List[PeriodComparison] = field(default_factory=list)

    @property
    def missing_periods(self) -> List[PeriodComparison]:
        return [p for p in self.periods if p.is_missing]

    @property
    def complete_periods(self) -> List[PeriodComparison]:
        return [p for p in self.periods if not p.is_missing]

    @property
    def unresolved_tickers(self) -> List[str]:
        return sorted({t for p in self.complete_periods for t in p.report.unresolved_tickers})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dates": [d.isoformat() for d in self.dates],
            "periods": [p.to_dict() for p in self.periods],
        }


def compare_calendar_periods(
    snapshots: Iterable[NormalizedSnapshot], dates: Iterable[date]
) -> CalendarComparison:
    """
    Compare each pair of consecutive dates. A period whose start or end has
    no snapshot is reported missing; nothing is interpolated.
    """
    by_date = {s.snapshot_date: s for s in snapshots}
    ordered = sorted(set(dates))
    result = CalendarComparison(dates=ordered)

    for start, end in zip(ordered, ordered[1:]):
        missing = [d for d in (start, end) if d not in by_date]
        if missing:
            result.periods.append(PeriodComparison(start, end, missing_dates=missing))
            continue
        result.periods.append(PeriodComparison(start, end, compare_snapshots(by_date[start], by_date[end])))

    if result.missing_periods:
        logger.warning(
            "calendar_periods_missing",
            missing=[p.from_date.isoformat() + ".." + p.to_date.isoformat() for p in result.missing_periods],
        )
    return result
