"""
CapCompare — Currency Converter
Converts amounts through a RateMap, handling minor-unit currencies and
reporting how the applied rate was obtained.
"""
from typing import Dict, NamedTuple, Optional, Tuple

from capcompare.data.models import RateSource
from capcompare.fx.rate_map import RateMap
from capcompare.utils.logger import get_logger

logger = get_logger("converter")

# Minor-unit code -> (major code, units per major). Codes are case-sensitive:
# "GBp" is pence while "GBP" is pounds.
MINOR_UNITS: Dict[str, Tuple[str, int]] = {
    "GBp": ("GBP", 100),
    "GBX": ("GBP", 100),
    "ZAc": ("ZAR", 100),
    "ILA": ("ILS", 100),
}


class Conversion(NamedTuple):
    """Result of a single conversion. amount == original * rate."""
    amount: float
    rate: float
    source: RateSource

    @property
    def resolved(self) -> bool:
        return self.source != RateSource.UNRESOLVED


def to_major_unit(currency: str) -> Tuple[str, int]:
    """Major currency code and divisor for a (possibly minor-unit) code."""
    return MINOR_UNITS.get(currency, (currency, 1))


def is_minor_unit(currency: str) -> bool:
    return currency in MINOR_UNITS


def lookup_rate(
    from_currency: str, to_currency: str, rate_map: RateMap
) -> Optional[Tuple[float, RateSource]]:
    """
    Resolve a major-unit rate: direct entry, then reciprocal of the
    reverse entry, then composition through an intermediate currency
    (lexicographically smallest code first).
    """
    pair = (from_currency, to_currency)
    rate = rate_map.get(pair)
    if rate is not None:
        return rate, rate_map.origin(pair) or RateSource.DIRECT

    reverse = rate_map.get((to_currency, from_currency))
    if reverse:
        return 1.0 / reverse, RateSource.REVERSE

    for via in sorted(rate_map.currencies - {from_currency, to_currency}):
        first = rate_map.get((from_currency, via))
        second = rate_map.get((via, to_currency))
        if first is not None and second is not None:
            return first * second, RateSource.CROSS

    return None


def convert(
    amount: float, from_currency: str, to_currency: str, rate_map: RateMap
) -> Conversion:
    """
    Convert an amount between currencies.

    Unresolvable conversions do not raise: the original amount comes back
    with rate 1.0 and source UNRESOLVED.
    """
    if from_currency == to_currency:
        return Conversion(amount, 1.0, RateSource.SAME)

    from_major, from_div = to_major_unit(from_currency)
    to_major, to_div = to_major_unit(to_currency)
    # Multiplier from the source minor unit into the target minor unit
    scale = to_div / from_div

    if from_major == to_major:
        return Conversion(amount * scale, scale, RateSource.SAME)

    resolved = lookup_rate(from_major, to_major, rate_map)
    if resolved is None:
        logger.warning(
            "conversion_unresolved",
            from_currency=from_currency,
            to_currency=to_currency,
            rate_map=repr(rate_map),
        )
        return Conversion(amount, 1.0, RateSource.UNRESOLVED)

    rate, source = resolved
    effective = rate * scale
    return Conversion(amount * effective, effective, source)
