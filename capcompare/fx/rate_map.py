"""
CapCompare — Rate Map Builder
Builds an immutable currency-pair -> rate mapping for one logical instant,
with reciprocal pairs and one-hop cross-rates resolved at construction time.
"""
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from capcompare.data.models import CurrencyQuote, RateSource
from capcompare.utils.helpers import ensure_utc
from capcompare.utils.logger import get_logger

logger = get_logger("rate_map")

Pair = Tuple[str, str]


def anchor_instant(anchor: date) -> datetime:
    """Instant whose rates represent a calendar date: midnight UTC of that date."""
    return datetime.combine(anchor, time.min, tzinfo=timezone.utc)


class RateMap(Mapping):
    """
    Read-only mapping of (from_currency, to_currency) -> rate.

    Each entry remembers how it was obtained: DIRECT for quoted pairs,
    REVERSE for reciprocals and CROSS for pairs composed through an
    intermediate currency.
    """

    def __init__(
        self,
        rates: Dict[Pair, float],
        origins: Dict[Pair, RateSource],
        as_of: Optional[datetime] = None,
        intermediates: Optional[Dict[Pair, str]] = None,
    ):
        self._rates = MappingProxyType(dict(rates))
        self._origins = MappingProxyType(dict(origins))
        self._intermediates = MappingProxyType(dict(intermediates or {}))
        self.as_of = as_of

    def __getitem__(self, pair: Pair) -> float:
        return self._rates[pair]

    def __iter__(self) -> Iterator[Pair]:
        return iter(self._rates)

    def __len__(self) -> int:
        return len(self._rates)

    def __repr__(self) -> str:
        mode = self.as_of.isoformat() if self.as_of else "latest"
        return f"RateMap(as_of={mode}, pairs={len(self)})"

    @property
    def is_latest(self) -> bool:
        return self.as_of is None

    def origin(self, pair: Pair) -> Optional[RateSource]:
        return self._origins.get(pair)

    def intermediate(self, pair: Pair) -> Optional[str]:
        """Intermediate currency a CROSS entry was composed through."""
        return self._intermediates.get(pair)

    @property
    def currencies(self) -> Set[str]:
        return {c for pair in self._rates for c in pair}

    def pairs_by_origin(self, source: RateSource) -> List[Pair]:
        return sorted(p for p, o in self._origins.items() if o == source)

    @classmethod
    def empty(cls, as_of: Optional[datetime] = None) -> "RateMap":
        return cls({}, {}, as_of=as_of)

    @classmethod
    def from_rates(cls, rates: Dict[Pair, float], as_of: Optional[datetime] = None) -> "RateMap":
        """
        Wrap already-resolved rates, tagging them DIRECT and adding the
        missing reciprocals tagged REVERSE. Cross entries are not expanded.
        """
        full: Dict[Pair, float] = {}
        origins: Dict[Pair, RateSource] = {}
        for (a, b), rate in rates.items():
            if rate <= 0:
                raise ValueError(f"Rate for {a}/{b} must be positive, got {rate}")
            full[(a, b)] = rate
            origins[(a, b)] = RateSource.DIRECT
        for (a, b), rate in list(full.items()):
            if (b, a) not in full:
                full[(b, a)] = 1.0 / rate
                origins[(b, a)] = RateSource.REVERSE
        return cls(full, origins, as_of=as_of)

    def to_dict(self) -> Dict[str, float]:
        return {f"{a}/{b}": rate for (a, b), rate in sorted(self._rates.items())}


def select_quotes(
    quotes: Iterable[CurrencyQuote], as_of: Optional[datetime] = None
) -> Dict[str, CurrencyQuote]:
    """
    Pick one quote per symbol.

    With as_of: the latest quote not after the instant (closest-before).
    Without: the most recent quote overall.
    """
    cutoff = ensure_utc(as_of) if as_of is not None else None
    selected: Dict[str, CurrencyQuote] = {}
    for q in quotes:
        if cutoff is not None and q.as_of > cutoff:
            continue
        current = selected.get(q.symbol)
        if current is None or q.as_of > current.as_of:
            selected[q.symbol] = q
    return selected


def build_rate_map(
    quotes: Iterable[CurrencyQuote], as_of: Optional[datetime] = None
) -> RateMap:
    """
    Build the RateMap for one instant. Never raises: symbols with no usable
    quote simply contribute no pair.

    Args:
        quotes: All available quotes, any order
        as_of: Instant to resolve rates for; None selects the latest quotes
    """
    selected = select_quotes(quotes, as_of)

    rates: Dict[Pair, float] = {}
    origins: Dict[Pair, RateSource] = {}

    # Newest first so that when both directions are quoted the fresher one wins
    ordered = sorted(selected.values(), key=lambda q: (-q.as_of.timestamp(), q.symbol))
    for q in ordered:
        a, b = q.pair
        if a == b or (a, b) in rates:
            continue
        rates[(a, b)] = q.rate
        origins[(a, b)] = RateSource.DIRECT
        rates[(b, a)] = 1.0 / q.rate
        origins[(b, a)] = RateSource.REVERSE

    # Cross expansion uses only the quoted and reciprocal pairs (one hop)
    base_rates = dict(rates)
    intermediates: Dict[Pair, str] = {}
    currencies = sorted({c for pair in base_rates for c in pair})
    for a in currencies:
        for c in currencies:
            if a == c or (a, c) in rates:
                continue
            for b in currencies:
                if b in (a, c):
                    continue
                first = base_rates.get((a, b))
                second = base_rates.get((b, c))
                if first is None or second is None:
                    continue
                cross = first * second
                rates[(a, c)] = cross
                origins[(a, c)] = RateSource.CROSS
                intermediates[(a, c)] = b
                rates[(c, a)] = 1.0 / cross
                origins[(c, a)] = RateSource.CROSS
                intermediates[(c, a)] = b
                break

    rate_map = RateMap(rates, origins, as_of=ensure_utc(as_of) if as_of else None,
                       intermediates=intermediates)
    if not rate_map:
        logger.warning(
            "rate_map_empty",
            as_of=as_of.isoformat() if as_of else "latest",
            quotes_available=len(selected),
        )
    else:
        logger.debug(
            "rate_map_built",
            as_of=as_of.isoformat() if as_of else "latest",
            symbols=len(selected),
            pairs=len(rate_map),
            cross_pairs=len(intermediates),
        )
    return rate_map


def build_rate_map_for_date(quotes: Iterable[CurrencyQuote], anchor: date) -> RateMap:
    """RateMap as of the anchor instant of a calendar date."""
    return build_rate_map(quotes, anchor_instant(anchor))
