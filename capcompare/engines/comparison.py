"""
CapCompare — Comparison Calculator
Point-in-time comparison of two normalized snapshots: value change,
rank movement and market-share shift per ticker.
"""
import pandas as pd
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Dict, Any, List, Optional

from capcompare.data.models import NormalizedSnapshot, RateSource
from capcompare.utils.helpers import format_billions, optional_sub, pct_change
from capcompare.utils.logger import get_logger

logger = get_logger("comparison")


def unresolved_warning(ticker: str) -> str:
    return f"{ticker}: exchange rate unresolved, value kept in original currency"


def _tickers(rows: List["ComparisonRow"]) -> List[str]:
    return [r.ticker for r in rows]


@dataclass(frozen=True)
class ComparisonRow:
    """One ticker across two snapshots. Missing sides are None."""
    ticker: str
    name: str
    from_value: Optional[float]
    to_value: Optional[float]
    absolute_change: Optional[float]
    percentage_change: Optional[float]
    from_rank: Optional[int]
    to_rank: Optional[int]
    rank_change: Optional[int]
    from_share: Optional[float]
    to_share: Optional[float]
    from_rate_source: Optional[RateSource] = None
    to_rate_source: Optional[RateSource] = None
    from_rate_used: Optional[float] = None
    to_rate_used: Optional[float] = None
    from_secondary_value: Optional[float] = None
    to_secondary_value: Optional[float] = None

    @property
    def has_conversion_warning(self) -> bool:
        return RateSource.UNRESOLVED in (self.from_rate_source, self.to_rate_source)

    @property
    def share_change(self) -> Optional[float]:
        return optional_sub(self.to_share, self.from_share)

    @property
    def in_both(self) -> bool:
        return self.from_value is not None and self.to_value is not None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["from_rate_source"] = self.from_rate_source.value if self.from_rate_source else None
        d["to_rate_source"] = self.to_rate_source.value if self.to_rate_source else None
        d["has_conversion_warning"] = self.has_conversion_warning
        return d


@dataclass
class ComparisonReport:
    """All rows of a two-snapshot comparison plus aggregate figures."""
    from_date: date
    to_date: date
    reference_currency: str
    rows: List[ComparisonRow] = field(default_factory=list)
    total_from: float = 0.0
    total_to: float = 0.0
    currencies_used: List[str] = field(default_factory=list)
    # Raw currency -> multiplier applied by the anchor map
    rates_used: Dict[str, float] = field(default_factory=dict)
    secondary_currency: Optional[str] = None
    top_n: int = 10

    @property
    def total_change(self) -> float:
        return self.total_to - self.total_from

    @property
    def total_change_pct(self) -> float:
        return pct_change(self.total_from, self.total_to)

    @property
    def unresolved_tickers(self) -> List[str]:
        return sorted(r.ticker for r in self.rows if r.has_conversion_warning)

    @property
    def warnings(self) -> List[str]:
        return [unresolved_warning(t) for t in self.unresolved_tickers]

    def row(self, ticker: str) -> Optional[ComparisonRow]:
        for r in self.rows:
            if r.ticker == ticker:
                return r
        return None

    def _limit(self, n: Optional[int]) -> int:
        return self.top_n if n is None else n

    def top_gainers(self, n: Optional[int] = None) -> List[ComparisonRow]:
        ranked = [r for r in self.rows if r.percentage_change is not None]
        return ranked[:self._limit(n)]

    def top_losers(self, n: Optional[int] = None) -> List[ComparisonRow]:
        ranked = [r for r in self.rows if r.percentage_change is not None]
        return sorted(ranked, key=lambda r: (r.percentage_change, r.ticker))[:self._limit(n)]

    def top_absolute_gainers(self, n: Optional[int] = None) -> List[ComparisonRow]:
        gains = [r for r in self.rows if r.absolute_change is not None and r.absolute_change > 0]
        return sorted(gains, key=lambda r: (-r.absolute_change, r.ticker))[:self._limit(n)]

    def top_absolute_losers(self, n: Optional[int] = None) -> List[ComparisonRow]:
        losses = [r for r in self.rows if r.absolute_change is not None and r.absolute_change < 0]
        return sorted(losses, key=lambda r: (r.absolute_change, r.ticker))[:self._limit(n)]

    def rank_improvers(self, n: Optional[int] = None) -> List[ComparisonRow]:
        moved = [r for r in self.rows if r.rank_change is not None and r.rank_change > 0]
        return sorted(moved, key=lambda r: (-r.rank_change, r.ticker))[:self._limit(n)]

    def rank_decliners(self, n: Optional[int] = None) -> List[ComparisonRow]:
        moved = [r for r in self.rows if r.rank_change is not None and r.rank_change < 0]
        return sorted(moved, key=lambda r: (r.rank_change, r.ticker))[:self._limit(n)]

    @property
    def increased(self) -> List[str]:
        return sorted(r.ticker for r in self.rows if (r.percentage_change or 0.0) > 0)

    @property
    def decreased(self) -> List[str]:
        return sorted(r.ticker for r in self.rows if (r.percentage_change or 0.0) < 0)

    @property
    def new_tickers(self) -> List[str]:
        """Present only in the later snapshot."""
        return sorted(r.ticker for r in self.rows if r.from_value is None)

    @property
    def dropped_tickers(self) -> List[str]:
        """Present only in the earlier snapshot."""
        return sorted(r.ticker for r in self.rows if r.to_value is None)

    def movement_counts(self) -> Dict[str, int]:
        return {
            "increased": len(self.increased),
            "decreased": len(self.decreased),
            "new": len(self.new_tickers),
            "dropped": len(self.dropped_tickers),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_date": self.from_date.isoformat(),
            "to_date": self.to_date.isoformat(),
            "reference_currency": self.reference_currency,
            "total_from": self.total_from,
            "total_to": self.total_to,
            "total_from_display": format_billions(self.total_from),
            "total_to_display": format_billions(self.total_to),
            "total_change": self.total_change,
            "total_change_pct": round(self.total_change_pct, 4),
            "currencies_used": list(self.currencies_used),
            "rates_used": dict(self.rates_used),
            "secondary_currency": self.secondary_currency,
            "unresolved_tickers": self.unresolved_tickers,
            "movement_counts": self.movement_counts(),
            "top_gainers": _tickers(self.top_gainers()),
            "top_losers": _tickers(self.top_losers()),
            "top_absolute_gainers": _tickers(self.top_absolute_gainers()),
            "top_absolute_losers": _tickers(self.top_absolute_losers()),
            "rank_improvers": _tickers(self.rank_improvers()),
            "rank_decliners": _tickers(self.rank_decliners()),
            "rows": [r.to_dict() for r in self.rows],
        }

    def to_dataframe(self) -> pd.DataFrame:
        columns = [
            "ticker", "name", "from_value", "to_value", "absolute_change",
            "percentage_change", "from_rank", "to_rank", "rank_change",
            "from_share", "to_share", "from_rate_source", "to_rate_source",
            "from_rate_used", "to_rate_used", "from_secondary_value",
            "to_secondary_value", "has_conversion_warning",
        ]
        if not self.rows:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([r.to_dict() for r in self.rows], columns=columns).set_index("ticker")


def _sort_rows(rows: List[ComparisonRow]) -> List[ComparisonRow]:
    """Percentage change descending; rows without one go last, by ticker."""
    by_ticker = sorted(rows, key=lambda r: r.ticker)
    return sorted(
        by_ticker,
        key=lambda r: (r.percentage_change is None, -(r.percentage_change or 0.0)),
    )


def compare_snapshots(
    from_snapshot: NormalizedSnapshot, to_snapshot: NormalizedSnapshot, top_n: int = 10
) -> ComparisonReport:
    """
    Compare two snapshots normalized with the same anchor RateMap.

    Tickers present on only one side are kept with None for the other side.
    """
    if from_snapshot.reference_currency != to_snapshot.reference_currency:
        raise ValueError(
            f"Snapshots use different reference currencies: "
            f"{from_snapshot.reference_currency} vs {to_snapshot.reference_currency}"
        )
    if from_snapshot.anchor_date != to_snapshot.anchor_date:
        logger.warning(
            "comparison_anchor_mismatch",
            from_anchor=from_snapshot.anchor_date.isoformat(),
            to_anchor=to_snapshot.anchor_date.isoformat(),
        )

    before = from_snapshot.by_ticker()
    after = to_snapshot.by_ticker()
    from_shares = from_snapshot.shares()
    to_shares = to_snapshot.shares()

    rows: List[ComparisonRow] = []
    for ticker in sorted(set(before) | set(after)):
        old = before.get(ticker)
        new = after.get(ticker)
        from_value = old.reference_amount if old else None
        to_value = new.reference_amount if new else None
        absolute = optional_sub(to_value, from_value)
        pct = pct_change(from_value, to_value) if absolute is not None else None
        from_rank = old.rank if old else None
        to_rank = new.rank if new else None

        rows.append(ComparisonRow(
            ticker=ticker,
            name=(new or old).name,
            from_value=from_value,
            to_value=to_value,
            absolute_change=absolute,
            percentage_change=pct,
            from_rank=from_rank,
            to_rank=to_rank,
            rank_change=optional_sub(from_rank, to_rank),
            from_share=from_shares.get(ticker) if old else None,
            to_share=to_shares.get(ticker) if new else None,
            from_rate_source=old.rate_source if old else None,
            to_rate_source=new.rate_source if new else None,
            from_rate_used=old.rate_used if old else None,
            to_rate_used=new.rate_used if new else None,
            from_secondary_value=old.secondary_amount if old else None,
            to_secondary_value=new.secondary_amount if new else None,
        ))

    reference = from_snapshot.reference_currency
    currencies = set()
    rates_used: Dict[str, float] = {}
    secondary = None
    for snap in (from_snapshot, to_snapshot):
        for r in snap.records:
            secondary = secondary or r.secondary_currency
            if r.raw_currency == reference:
                continue
            currencies.add(r.raw_currency)
            if not r.is_unresolved:
                rates_used[r.raw_currency] = r.rate_used

    report = ComparisonReport(
        from_date=from_snapshot.snapshot_date,
        to_date=to_snapshot.snapshot_date,
        reference_currency=reference,
        rows=_sort_rows(rows),
        total_from=from_snapshot.total,
        total_to=to_snapshot.total,
        currencies_used=sorted(currencies),
        rates_used=dict(sorted(rates_used.items())),
        secondary_currency=secondary,
        top_n=top_n,
    )
    logger.debug(
        "snapshots_compared",
        from_date=report.from_date.isoformat(),
        to_date=report.to_date.isoformat(),
        rows=len(report.rows),
        unresolved=len(report.unresolved_tickers),
    )
    return report
