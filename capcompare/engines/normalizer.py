"""
CapCompare — Snapshot Loader & Normalizer

Re-expresses every snapshot of a multi-date comparison in one reference
currency. All dates are converted with the single RateMap of the latest
snapshot date (the anchor), never with their own contemporaneous rates.
"""
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from capcompare.core.outcome import MissingRatesError, MissingSnapshotError, NormalizerStateError
from capcompare.data.models import (
    CurrencyQuote, MarketCapRecord, NormalizedRecord, NormalizedSnapshot, RateSource,
)
from capcompare.fx.converter import convert, to_major_unit
from capcompare.fx.rate_map import RateMap, build_rate_map_for_date
from capcompare.utils.logger import get_logger

logger = get_logger("normalizer")


class LoaderState(str, Enum):
    UNLOADED = "Unloaded"
    RECORDS_PARSED = "RecordsParsed"
    RATES_RESOLVED = "RatesResolved"
    NORMALIZED = "Normalized"


def rank_records(records: Sequence[NormalizedRecord]) -> List[NormalizedRecord]:
    """
    Re-rank by reference amount, descending, 1-based. Ties keep input order.
    """
    ordered = sorted(enumerate(records), key=lambda item: (-item[1].reference_amount, item[0]))
    return [r.model_copy(update={"rank": i}) for i, (_, r) in enumerate(ordered, start=1)]


def normalize_record(
    record: MarketCapRecord,
    reference_currency: str,
    rate_map: RateMap,
    secondary_currency: Optional[str] = None,
) -> NormalizedRecord:
    conversion = convert(record.raw_amount, record.raw_currency, reference_currency, rate_map)
    if not conversion.resolved:
        logger.warning(
            "record_conversion_unresolved",
            ticker=record.ticker,
            raw_currency=record.raw_currency,
            reference_currency=reference_currency,
        )

    secondary_amount = None
    if secondary_currency:
        secondary = convert(record.raw_amount, record.raw_currency, secondary_currency, rate_map)
        secondary_amount = secondary.amount if secondary.resolved else None

    return NormalizedRecord(
        **record.model_dump(),
        reference_amount=conversion.amount,
        reference_currency=reference_currency,
        rate_used=conversion.rate,
        rate_source=conversion.source,
        secondary_currency=secondary_currency,
        secondary_amount=secondary_amount,
    )


class SnapshotNormalizer:
    """
    Stateful loader driving Unloaded -> RecordsParsed -> RatesResolved -> Normalized.

    Usage:
        normalizer = SnapshotNormalizer("USD", secondary_currency="EUR")
        normalizer.load({d1: records_1, d2: records_2})
        normalizer.resolve_rates(quotes)
        snapshots = normalizer.normalize()
    """

    def __init__(self, reference_currency: str = "USD", secondary_currency: Optional[str] = None):
        self.reference_currency = reference_currency
        self.secondary_currency = (
            secondary_currency if secondary_currency != reference_currency else None
        )
        self.state = LoaderState.UNLOADED
        self._snapshots: Dict[date, List[MarketCapRecord]] = {}
        self._rate_map: Optional[RateMap] = None
        self._anchor_date: Optional[date] = None
        self._result: List[NormalizedSnapshot] = []

    @property
    def anchor_date(self) -> Optional[date]:
        return self._anchor_date

    @property
    def rate_map(self) -> Optional[RateMap]:
        return self._rate_map

    def _require(self, *states: LoaderState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise NormalizerStateError(
                f"Normalizer is {self.state.value}; expected one of: {allowed}"
            )

    def load(self, snapshots: Mapping[date, Sequence[MarketCapRecord]]) -> None:
        """Accept the raw snapshots keyed by date."""
        self._require(LoaderState.UNLOADED)
        if not snapshots:
            raise ValueError("At least one snapshot date is required")

        parsed: Dict[date, List[MarketCapRecord]] = {}
        for day in sorted(snapshots):
            records = list(snapshots[day])
            if not records:
                raise MissingSnapshotError(day)
            tickers = [r.ticker for r in records]
            if len(set(tickers)) != len(tickers):
                dupes = sorted({t for t in tickers if tickers.count(t) > 1})
                raise ValueError(f"Duplicate tickers in snapshot {day.isoformat()}: {dupes}")
            parsed[day] = records

        self._snapshots = parsed
        self._anchor_date = max(parsed)
        self.state = LoaderState.RECORDS_PARSED
        logger.debug("snapshots_loaded", dates=[d.isoformat() for d in parsed])

    def _currencies_needing_rates(self) -> List[str]:
        reference_major, _ = to_major_unit(self.reference_currency)
        return sorted({
            r.raw_currency
            for records in self._snapshots.values()
            for r in records
            if to_major_unit(r.raw_currency)[0] != reference_major
        })

    def resolve_rates(self, quotes: Iterable[CurrencyQuote]) -> RateMap:
        """Build the anchor-date RateMap shared by every snapshot."""
        self._require(LoaderState.RECORDS_PARSED)
        rate_map = build_rate_map_for_date(quotes, self._anchor_date)

        needed = self._currencies_needing_rates()
        if not rate_map and needed:
            logger.error(
                "anchor_rates_missing",
                anchor_date=self._anchor_date.isoformat(),
                currencies=needed,
            )
            raise MissingRatesError(self._anchor_date, needed)

        self._rate_map = rate_map
        self.state = LoaderState.RATES_RESOLVED
        return rate_map

    def use_rate_map(self, rate_map: RateMap) -> None:
        """Supply an already-built anchor RateMap instead of raw quotes."""
        self._require(LoaderState.RECORDS_PARSED)
        needed = self._currencies_needing_rates()
        if not rate_map and needed:
            raise MissingRatesError(self._anchor_date, needed)
        self._rate_map = rate_map
        self.state = LoaderState.RATES_RESOLVED

    def normalize(self) -> List[NormalizedSnapshot]:
        """Convert and re-rank every snapshot with the anchor RateMap."""
        self._require(LoaderState.RATES_RESOLVED, LoaderState.NORMALIZED)
        if self.state == LoaderState.NORMALIZED:
            return list(self._result)

        result: List[NormalizedSnapshot] = []
        unresolved = 0
        for day, records in self._snapshots.items():
            normalized = [
                normalize_record(r, self.reference_currency, self._rate_map, self.secondary_currency)
                for r in records
            ]
            unresolved += sum(1 for r in normalized if r.rate_source == RateSource.UNRESOLVED)
            result.append(NormalizedSnapshot(
                snapshot_date=day,
                reference_currency=self.reference_currency,
                anchor_date=self._anchor_date,
                records=rank_records(normalized),
            ))

        self._result = result
        self.state = LoaderState.NORMALIZED
        logger.info(
            "snapshots_normalized",
            dates=len(result),
            anchor_date=self._anchor_date.isoformat(),
            reference_currency=self.reference_currency,
            unresolved=unresolved,
        )
        return list(result)


def normalize_snapshots(
    snapshots: Mapping[date, Sequence[MarketCapRecord]],
    quotes: Iterable[CurrencyQuote],
    reference_currency: str = "USD",
    secondary_currency: Optional[str] = None,
) -> List[NormalizedSnapshot]:
    """One-shot load, resolve and normalize."""
    normalizer = SnapshotNormalizer(reference_currency, secondary_currency)
    normalizer.load(snapshots)
    normalizer.resolve_rates(quotes)
    return normalizer.normalize()


def restrict_snapshot(snapshot: NormalizedSnapshot, tickers: Iterable[str]) -> NormalizedSnapshot:
    """Subset of a snapshot, re-ranked among the kept tickers only."""
    keep = set(tickers)
    members = [r for r in snapshot.records if r.ticker in keep]
    return snapshot.model_copy(update={"records": rank_records(members)})
