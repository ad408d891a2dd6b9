"""
CapCompare — Comparison Service
Loads snapshots and quotes from the stores, normalizes them against one
anchor RateMap and runs the requested analysis. Every entry point returns
an Outcome: fatal errors become failed outcomes, unresolved conversions
become warnings.
"""
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, TypeVar, Union

from capcompare.config.peer_groups import select_peer_groups
from capcompare.config.settings import AppSettings, get_settings
from capcompare.core.outcome import CapCompareError, MissingSnapshotError, NoSnapshotsError, Outcome
from capcompare.data.models import NormalizedSnapshot
from capcompare.db.stores import RateStore, SnapshotStore
from capcompare.engines.benchmark import SP500, Benchmark, BenchmarkReport, compare_with_benchmark
from capcompare.engines.calendar import (
    CalendarComparison, RollingWindow, compare_calendar_periods,
    quarter_over_quarter_dates, rolling_dates, year_over_year_dates,
)
from capcompare.engines.comparison import ComparisonReport, compare_snapshots, unresolved_warning
from capcompare.engines.normalizer import SnapshotNormalizer
from capcompare.engines.peer_groups import PeerGroupReport, compare_peer_groups
from capcompare.engines.trends import TrendReport, analyze_trends
from capcompare.fx.rate_map import anchor_instant
from capcompare.utils.helpers import parse_date
from capcompare.utils.logger import get_logger, log_context

logger = get_logger("service")

T = TypeVar("T")
DateLike = Union[str, date]


class ComparisonService:
    """
    Read-only orchestration over the rate and snapshot stores.

    Usage:
        service = ComparisonService(rate_store, snapshot_store)
        outcome = service.compare(date(2025, 1, 1), date(2025, 6, 30))
        report = outcome.unwrap()
    """

    def __init__(
        self,
        rate_store: RateStore,
        snapshot_store: SnapshotStore,
        settings: Optional[AppSettings] = None,
    ):
        self.rate_store = rate_store
        self.snapshot_store = snapshot_store
        self.settings = settings or get_settings()

    @property
    def reference_currency(self) -> str:
        return self.settings.normalization.reference_currency

    # ─── Loading ─────────────────────────────────────────────

    def load_normalized(
        self, dates: Sequence[date], reference_currency: Optional[str] = None
    ) -> Dict[date, NormalizedSnapshot]:
        """
        Normalize the snapshots of `dates` with the RateMap of the latest one.
        Raises MissingSnapshotError or MissingRatesError.
        """
        if not dates:
            raise ValueError("At least one date is required")

        raw = {}
        for day in sorted(set(dates)):
            records = self.snapshot_store.records_for(day)
            if not records:
                raise MissingSnapshotError(day)
            raw[day] = records

        anchor = max(raw)
        quotes = self.rate_store.quotes(until=anchor_instant(anchor))
        normalizer = SnapshotNormalizer(
            reference_currency or self.reference_currency,
            self.settings.normalization.secondary_currency,
        )
        normalizer.load(raw)
        normalizer.resolve_rates(quotes)
        return {s.snapshot_date: s for s in normalizer.normalize()}

    def _run(self, operation: str, compute: Callable[[], T], unresolved: Callable[[T], List[str]]) -> Outcome[T]:
        with log_context(operation=operation):
            try:
                value = compute()
            except CapCompareError as e:
                logger.error("comparison_failed", error=str(e))
                return Outcome.failed(e)
        warnings = [unresolved_warning(t) for t in unresolved(value)]
        if warnings:
            logger.warning("comparison_has_unresolved_rates", operation=operation, count=len(warnings))
        return Outcome.from_warnings(value, warnings)

    # ─── Operations ──────────────────────────────────────────

    def compare(
        self, from_date: DateLike, to_date: DateLike, reference_currency: Optional[str] = None
    ) -> Outcome[ComparisonReport]:
        from_date, to_date = parse_date(from_date), parse_date(to_date)

        def compute() -> ComparisonReport:
            snaps = self.load_normalized([from_date, to_date], reference_currency)
            return compare_snapshots(snaps[from_date], snaps[to_date], self.settings.analytics.top_n)

        return self._run("compare", compute, lambda r: r.unresolved_tickers)

    def trend(
        self, dates: Optional[Sequence[DateLike]] = None, reference_currency: Optional[str] = None
    ) -> Outcome[TrendReport]:
        """Trend analysis over `dates`, or every stored snapshot date."""
        def compute() -> TrendReport:
            wanted = [parse_date(d) for d in dates] if dates else self.snapshot_store.available_dates()
            if not wanted:
                raise NoSnapshotsError()
            snaps = self.load_normalized(wanted, reference_currency)
            return analyze_trends(list(snaps.values()), self.settings.analytics.days_per_year)

        return self._run("trend", compute, lambda r: r.unresolved_tickers)

    def _calendar(
        self, operation: str, period_dates: List[date], reference_currency: Optional[str]
    ) -> Outcome[CalendarComparison]:
        def compute() -> CalendarComparison:
            available = set(self.snapshot_store.available_dates())
            present = [d for d in period_dates if d in available]
            snaps = self.load_normalized(present, reference_currency) if present else {}
            return compare_calendar_periods(snaps.values(), period_dates)

        outcome = self._run(operation, compute, lambda r: r.unresolved_tickers)
        if not outcome.succeeded or not outcome.value.missing_periods:
            return outcome
        missing = [
            f"no snapshot for {', '.join(d.isoformat() for d in p.missing_dates)} "
            f"({p.from_date.isoformat()} to {p.to_date.isoformat()} skipped)"
            for p in outcome.value.missing_periods
        ]
        return Outcome.warning(outcome.value, outcome.warnings + missing)

    def year_over_year(
        self, anchor: DateLike, years: Optional[int] = None, reference_currency: Optional[str] = None
    ) -> Outcome[CalendarComparison]:
        years = years or self.settings.analytics.yoy_years
        return self._calendar("year_over_year", year_over_year_dates(parse_date(anchor), years), reference_currency)

    def quarter_over_quarter(
        self, anchor: DateLike, quarters: Optional[int] = None, reference_currency: Optional[str] = None
    ) -> Outcome[CalendarComparison]:
        quarters = quarters or self.settings.analytics.qoq_quarters
        return self._calendar(
            "quarter_over_quarter", quarter_over_quarter_dates(parse_date(anchor), quarters), reference_currency
        )

    def rolling(
        self,
        anchor: DateLike,
        window: Union[str, int, RollingWindow] = "30d",
        reference_currency: Optional[str] = None,
    ) -> Outcome[ComparisonReport]:
        """
        Compare the snapshots at both ends of a rolling window.

        An unknown window name or a non-positive length is a caller error and
        raises ValueError before any data is loaded.
        """
        if isinstance(window, str):
            window = RollingWindow.named(window)
        elif isinstance(window, int):
            window = RollingWindow.custom(window)
        start, end = rolling_dates(parse_date(anchor), window)
        logger.debug("rolling_window", window=window.name, start=start.isoformat(), end=end.isoformat())
        return self.compare(start, end, reference_currency)

    def benchmark(
        self,
        from_date: DateLike,
        to_date: DateLike,
        benchmark: Benchmark = SP500,
        reference_currency: Optional[str] = None,
    ) -> Outcome[BenchmarkReport]:
        from_date, to_date = parse_date(from_date), parse_date(to_date)

        def compute() -> BenchmarkReport:
            snaps = self.load_normalized([from_date, to_date], reference_currency)
            return compare_with_benchmark(snaps[from_date], snaps[to_date], benchmark)

        return self._run("benchmark", compute, lambda r: r.unresolved_tickers)

    def peer_groups(
        self,
        from_date: DateLike,
        to_date: DateLike,
        names: Optional[Sequence[str]] = None,
        reference_currency: Optional[str] = None,
    ) -> Outcome[PeerGroupReport]:
        """
        Compare peer groups by name, defaulting to the configured groups.

        Unknown group names are a caller error and raise ValueError before
        any data is loaded.
        """
        from_date, to_date = parse_date(from_date), parse_date(to_date)
        groups = select_peer_groups(names or self.settings.analytics.default_peer_groups)

        def compute() -> PeerGroupReport:
            snaps = self.load_normalized([from_date, to_date], reference_currency)
            return compare_peer_groups(snaps[from_date], snaps[to_date], groups)

        return self._run("peer_groups", compute, lambda r: r.unresolved_tickers)
