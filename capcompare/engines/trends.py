"""
CapCompare — Trend & Analytics Engine
Multi-period growth metrics per ticker: overall change, CAGR,
volatility of period returns and maximum drawdown.
"""
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Any, List, Optional, Sequence

from capcompare.data.models import NormalizedSnapshot, TrendPoint
from capcompare.utils.helpers import pct_change, years_between
from capcompare.utils.logger import get_logger

logger = get_logger("trends")

MIN_POINTS_VOLATILITY = 3
MIN_POINTS_DRAWDOWN = 2


def compute_cagr(start_value: float, end_value: float, years: float) -> Optional[float]:
    """
    Compound annual growth rate in percent.
    None unless start > 0, end >= 0 and years > 0.
    """
    if start_value is None or end_value is None or years is None:
        return None
    if start_value <= 0 or end_value < 0 or years <= 0:
        return None
    return ((end_value / start_value) ** (1.0 / years) - 1.0) * 100.0


def period_returns(points: Sequence[TrendPoint]) -> List[float]:
    """Percentage change between each pair of consecutive points."""
    values = [p.reference_amount for p in points]
    return [pct_change(a, b) for a, b in zip(values, values[1:])]


def compute_volatility(points: Sequence[TrendPoint]) -> Optional[float]:
    """Population standard deviation of period returns (percent)."""
    if len(points) < MIN_POINTS_VOLATILITY:
        return None
    return float(np.std(np.array(period_returns(points), dtype=float)))


def compute_max_drawdown(points: Sequence[TrendPoint]) -> Optional[float]:
    """Largest decline from a running peak, as a positive percentage."""
    if len(points) < MIN_POINTS_DRAWDOWN:
        return None
    series = pd.Series([p.reference_amount for p in points], dtype=float)
    peak = series.cummax()
    # A non-positive peak has no meaningful relative decline
    drawdown = ((peak - series) / peak.where(peak > 0)) * 100.0
    worst = drawdown.max(skipna=True)
    if pd.isna(worst):
        return 0.0
    return float(worst)


@dataclass
class TickerTrend:
    ticker: str
    name: str
    points: List[TrendPoint] = field(default_factory=list)
    overall_change_abs: Optional[float] = None
    overall_change_pct: Optional[float] = None
    cagr: Optional[float] = None
    volatility: Optional[float] = None
    max_drawdown: Optional[float] = None

    @property
    def insufficient_data(self) -> bool:
        return len(self.points) < 2

    @property
    def first_value(self) -> Optional[float]:
        return self.points[0].reference_amount if self.points else None

    @property
    def last_value(self) -> Optional[float]:
        return self.points[-1].reference_amount if self.points else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "name": self.name,
            "points": [
                {"date": p.snapshot_date.isoformat(), "value": p.reference_amount}
                for p in self.points
            ],
            "overall_change_abs": self.overall_change_abs,
            "overall_change_pct": self.overall_change_pct,
            "cagr": self.cagr,
            "volatility": self.volatility,
            "max_drawdown": self.max_drawdown,
            "insufficient_data": self.insufficient_data,
        }


@dataclass
class TrendSummary:
    start_date: date
    end_date: date
    num_periods: int
    start_total: float
    end_total: float
    total_change_pct: float
    best_performer: Optional[str] = None
    worst_performer: Optional[str] = None
    most_volatile: Optional[str] = None
    most_stable: Optional[str] = None


@dataclass
class TrendReport:
    reference_currency: str
    anchor_date: date
    trends: List[TickerTrend]
    summary: TrendSummary
    unresolved_tickers: List[str] = field(default_factory=list)

    def trend(self, ticker: str) -> Optional[TickerTrend]:
        for t in self.trends:
            if t.ticker == ticker:
                return t
        return None

    def to_dataframe(self) -> pd.DataFrame:
        """Wide table: one row per date, one column per ticker."""
        data = {
            t.ticker: pd.Series({p.snapshot_date: p.reference_amount for p in t.points})
            for t in self.trends
        }
        return pd.DataFrame(data).sort_index()

    def to_dict(self) -> Dict[str, Any]:
        s = self.summary
        return {
            "reference_currency": self.reference_currency,
            "anchor_date": self.anchor_date.isoformat(),
            "summary": {
                "start_date": s.start_date.isoformat(),
                "end_date": s.end_date.isoformat(),
                "num_periods": s.num_periods,
                "start_total": s.start_total,
                "end_total": s.end_total,
                "total_change_pct": s.total_change_pct,
                "best_performer": s.best_performer,
                "worst_performer": s.worst_performer,
                "most_volatile": s.most_volatile,
                "most_stable": s.most_stable,
            },
            "trends": [t.to_dict() for t in self.trends],
            "unresolved_tickers": self.unresolved_tickers,
        }


def build_ticker_trend(
    ticker: str, name: str, points: List[TrendPoint], days_per_year: float = 365.25
) -> TickerTrend:
    trend = TickerTrend(ticker=ticker, name=name, points=points)
    if trend.insufficient_data:
        return trend

    first, last = points[0], points[-1]
    trend.overall_change_abs = last.reference_amount - first.reference_amount
    trend.overall_change_pct = pct_change(first.reference_amount, last.reference_amount)
    trend.cagr = compute_cagr(
        first.reference_amount,
        last.reference_amount,
        years_between(first.snapshot_date, last.snapshot_date, days_per_year),
    )
    trend.volatility = compute_volatility(points)
    trend.max_drawdown = compute_max_drawdown(points)
    return trend


def analyze_trends(
    snapshots: Sequence[NormalizedSnapshot], days_per_year: float = 365.25
) -> TrendReport:
    """
    Trend metrics across normalized snapshots. A single snapshot yields a
    report whose tickers are all marked insufficient_data.

    Each ticker's series only contains the dates it appears on; CAGR is
    measured between that ticker's own first and last observation.
    """
    if not snapshots:
        raise ValueError("Trend analysis requires at least one snapshot")

    ordered = sorted(snapshots, key=lambda s: s.snapshot_date)
    series: Dict[str, List[TrendPoint]] = {}
    names: Dict[str, str] = {}
    unresolved = set()
    for snap in ordered:
        for r in snap.records:
            series.setdefault(r.ticker, []).append(
                TrendPoint(snapshot_date=snap.snapshot_date, reference_amount=r.reference_amount)
            )
            names[r.ticker] = r.name
            if r.is_unresolved:
                unresolved.add(r.ticker)

    trends = [
        build_ticker_trend(ticker, names[ticker], points, days_per_year)
        for ticker, points in sorted(series.items())
    ]
    trends.sort(key=lambda t: (t.overall_change_pct is None, -(t.overall_change_pct or 0.0)))

    with_change = [t for t in trends if t.overall_change_pct is not None]
    with_vol = sorted(
        (t for t in trends if t.volatility is not None), key=lambda t: (t.volatility, t.ticker)
    )
    first, last = ordered[0], ordered[-1]
    summary = TrendSummary(
        start_date=first.snapshot_date,
        end_date=last.snapshot_date,
        num_periods=len(ordered),
        start_total=first.total,
        end_total=last.total,
        total_change_pct=pct_change(first.total, last.total),
        best_performer=with_change[0].ticker if with_change else None,
        worst_performer=with_change[-1].ticker if with_change else None,
        most_volatile=with_vol[-1].ticker if with_vol else None,
        most_stable=with_vol[0].ticker if with_vol else None,
    )

    report = TrendReport(
        reference_currency=first.reference_currency,
        anchor_date=last.anchor_date,
        trends=trends,
        summary=summary,
        unresolved_tickers=sorted(unresolved),
    )
    logger.info(
        "trends_analyzed",
        periods=summary.num_periods,
        tickers=len(trends),
        insufficient=sum(1 for t in trends if t.insufficient_data),
    )
    return report
