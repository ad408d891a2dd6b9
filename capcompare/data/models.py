"""
CapCompare — Data Models
Canonical structures for quotes, market-cap records and their normalized forms.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Tuple
from datetime import date, datetime
from enum import Enum

from capcompare.utils.helpers import ensure_utc

# Bumped whenever MarketCapRecord gains or loses a field
SCHEMA_VERSION = 1


class RateSource(str, Enum):
    """How the rate applied to a conversion was obtained."""
    SAME = "Same"
    DIRECT = "Direct"
    REVERSE = "Reverse"
    CROSS = "Cross"
    UNRESOLVED = "Unresolved"


class CurrencyQuote(BaseModel):
    """Bid/ask quote for one currency pair at one instant."""
    base: str = Field(..., min_length=1)
    quote: str = Field(..., min_length=1)
    ask: float = Field(..., gt=0)
    bid: float = Field(..., gt=0)
    as_of: datetime

    model_config = {"frozen": True}

    @field_validator("as_of")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.base, self.quote)

    @property
    def symbol(self) -> str:
        return f"{self.base}/{self.quote}"

    @property
    def rate(self) -> float:
        """Scalar rate used for conversions (the ask side)."""
        return self.ask

    @classmethod
    def from_symbol(cls, symbol: str, ask: float, bid: float, as_of: datetime) -> "CurrencyQuote":
        """Build a quote from a 'BASE/QUOTE' symbol."""
        parts = symbol.split("/")
        if len(parts) != 2 or not all(p.strip() for p in parts):
            raise ValueError(f"Invalid currency pair symbol: {symbol!r}")
        return cls(base=parts[0].strip(), quote=parts[1].strip(), ask=ask, bid=bid, as_of=as_of)


class MarketCapRecord(BaseModel):
    """One ticker's raw market cap within one snapshot (schema v1)."""
    ticker: str = Field(..., min_length=1)
    name: str = ""
    raw_amount: float
    raw_currency: str = Field(..., min_length=1)
    as_of: datetime
    rank: Optional[int] = Field(default=None, ge=1)
    active: bool = True

    # Provider extras are dropped here, never carried into the core
    model_config = {"frozen": True, "extra": "ignore"}

    @field_validator("as_of")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def snapshot_date(self) -> date:
        return self.as_of.date()


class NormalizedRecord(MarketCapRecord):
    """MarketCapRecord re-expressed in a reference currency, with provenance."""
    reference_amount: float
    reference_currency: str
    rate_used: float
    rate_source: RateSource
    # Same anchor map, second display currency; None when not requested or unresolved
    secondary_currency: Optional[str] = None
    secondary_amount: Optional[float] = None

    @property
    def is_unresolved(self) -> bool:
        return self.rate_source == RateSource.UNRESOLVED


class NormalizedSnapshot(BaseModel):
    """All normalized records of one snapshot date, ordered by rank."""
    snapshot_date: date
    reference_currency: str
    anchor_date: date
    records: List[NormalizedRecord] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def total(self) -> float:
        return sum(r.reference_amount for r in self.records)

    @property
    def tickers(self) -> List[str]:
        return [r.ticker for r in self.records]

    @property
    def unresolved(self) -> List[NormalizedRecord]:
        return [r for r in self.records if r.is_unresolved]

    def by_ticker(self) -> Dict[str, NormalizedRecord]:
        return {r.ticker: r for r in self.records}

    def shares(self) -> Dict[str, float]:
        """Market share per ticker in percent of the snapshot total."""
        total = self.total
        if total <= 0:
            return {}
        return {r.ticker: (r.reference_amount / total) * 100.0 for r in self.records}


class TrendPoint(BaseModel):
    """Single dated observation of a ticker's normalized value."""
    snapshot_date: date
    reference_amount: float

    model_config = {"frozen": True}


class PeerGroup(BaseModel):
    """Named, static cohort of tickers."""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    tickers: Tuple[str, ...] = Field(..., min_length=1)

    model_config = {"frozen": True}

    @field_validator("tickers")
    @classmethod
    def _unique(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if len(set(v)) != len(v):
            raise ValueError("peer group tickers must be unique")
        return v
