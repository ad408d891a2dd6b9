"""
CapCompare — Benchmark Comparison
Relative performance of each ticker against a market proxy. The proxy
return is the total normalized change of every tracked ticker.
"""
import pandas as pd
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Any, List, Optional

from capcompare.data.models import NormalizedSnapshot
from capcompare.engines.comparison import compare_snapshots
from capcompare.utils.helpers import optional_sub
from capcompare.utils.logger import get_logger

logger = get_logger("benchmark")


@dataclass(frozen=True)
class Benchmark:
    """Display name plus the index ETF the proxy stands in for."""
    name: str
    ticker: str


SP500 = Benchmark("S&P 500", "SPY")
MSCI_WORLD = Benchmark("MSCI World", "URTH")


@dataclass(frozen=True)
class BenchmarkRow:
    ticker: str
    name: str
    change_pct: Optional[float]
    benchmark_change_pct: float
    relative_performance: Optional[float]

    @property
    def outperformed(self) -> bool:
        return self.relative_performance is not None and self.relative_performance > 0


@dataclass
class BenchmarkReport:
    benchmark: Benchmark
    from_date: date
    to_date: date
    benchmark_change_pct: float
    rows: List[BenchmarkRow] = field(default_factory=list)
    unresolved_tickers: List[str] = field(default_factory=list)

    @property
    def outperformers(self) -> List[BenchmarkRow]:
        return [r for r in self.rows if r.outperformed]

    @property
    def underperformers(self) -> List[BenchmarkRow]:
        return [r for r in self.rows if r.relative_performance is not None and r.relative_performance < 0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "benchmark": self.benchmark.name,
            "proxy": "total market cap",
            "from_date": self.from_date.isoformat(),
            "to_date": self.to_date.isoformat(),
            "benchmark_change_pct": self.benchmark_change_pct,
            "outperformers": len(self.outperformers),
            "underperformers": len(self.underperformers),
            "rows": [
                {
                    "ticker": r.ticker,
                    "name": r.name,
                    "change_pct": r.change_pct,
                    "relative_performance": r.relative_performance,
                }
                for r in self.rows
            ],
        }

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "ticker": r.ticker,
                    "name": r.name,
                    "change_pct": r.change_pct,
                    "benchmark_change_pct": r.benchmark_change_pct,
                    "relative_performance": r.relative_performance,
                }
                for r in self.rows
            ],
            columns=["ticker", "name", "change_pct", "benchmark_change_pct", "relative_performance"],
        )


def compare_with_benchmark(
    from_snapshot: NormalizedSnapshot,
    to_snapshot: NormalizedSnapshot,
    benchmark: Benchmark = SP500,
) -> BenchmarkReport:
    """
    Per-ticker change minus the proxy change, best relative performer first.
    Tickers missing on either side have no relative performance and sort last.
    """
    comparison = compare_snapshots(from_snapshot, to_snapshot)
    proxy = comparison.total_change_pct

    rows = [
        BenchmarkRow(
            ticker=r.ticker,
            name=r.name,
            change_pct=r.percentage_change,
            benchmark_change_pct=proxy,
            relative_performance=optional_sub(r.percentage_change, proxy),
        )
        for r in comparison.rows
    ]
    rows.sort(key=lambda r: (r.relative_performance is None, -(r.relative_performance or 0.0), r.ticker))

    logger.info(
        "benchmark_compared",
        benchmark=benchmark.name,
        benchmark_change_pct=round(proxy, 4),
        tickers=len(rows),
    )
    return BenchmarkReport(
        benchmark=benchmark,
        from_date=comparison.from_date,
        to_date=comparison.to_date,
        benchmark_change_pct=proxy,
        rows=rows,
        unresolved_tickers=comparison.unresolved_tickers,
    )
