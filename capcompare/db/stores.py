"""
CapCompare — Store Accessors
Read access to persisted currency quotes and market-cap snapshots.
The comparison core only ever reads through these.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from capcompare.data.models import CurrencyQuote, MarketCapRecord
from capcompare.db.schema import ForexRate, MarketCap, init_db_sync
from capcompare.utils.helpers import ensure_utc
from capcompare.utils.logger import get_logger

logger = get_logger("stores")


def _to_db_time(value: datetime) -> datetime:
    """Aware datetime -> naive UTC for storage."""
    return ensure_utc(value).replace(tzinfo=None)


def _from_db_time(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def _day_bounds(day: date):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class RateStore:
    """Accessor for the forex_rates table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def quotes(self, until: Optional[datetime] = None) -> List[CurrencyQuote]:
        """All stored quotes, optionally only those not after `until`."""
        stmt = select(ForexRate).order_by(ForexRate.timestamp, ForexRate.symbol)
        if until is not None:
            stmt = stmt.where(ForexRate.timestamp <= _to_db_time(until))

        result: List[CurrencyQuote] = []
        with self._session_factory() as session:
            for row in session.scalars(stmt):
                try:
                    result.append(CurrencyQuote.from_symbol(
                        row.symbol, ask=row.ask, bid=row.bid,
                        as_of=_from_db_time(row.timestamp),
                    ))
                except ValueError as e:
                    logger.warning("forex_row_skipped", symbol=row.symbol, error=str(e))
        return result

    def add_quotes(self, quotes: Iterable[CurrencyQuote]) -> int:
        """Insert quotes, skipping (symbol, timestamp) rows already stored."""
        inserted = 0
        with self._session_factory() as session:
            for q in quotes:
                ts = _to_db_time(q.as_of)
                exists = session.scalar(
                    select(ForexRate.id).where(
                        ForexRate.symbol == q.symbol, ForexRate.timestamp == ts
                    )
                )
                if exists is not None:
                    continue
                session.add(ForexRate(symbol=q.symbol, ask=q.ask, bid=q.bid, timestamp=ts))
                inserted += 1
            session.commit()
        logger.info("forex_rates_stored", inserted=inserted)
        return inserted


class SnapshotStore:
    """Accessor for the market_caps table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _to_record(row: MarketCap) -> MarketCapRecord:
        return MarketCapRecord(
            ticker=row.ticker,
            name=row.name or "",
            raw_amount=row.market_cap_original,
            raw_currency=row.original_currency,
            as_of=_from_db_time(row.timestamp),
            rank=row.rank,
            active=bool(row.active) if row.active is not None else True,
        )

    def records_for(self, day: date) -> List[MarketCapRecord]:
        """
        Records of the snapshot taken on `day`. When a ticker was stored
        more than once that day the latest row wins. Empty when none exist.
        """
        start, end = _day_bounds(day)
        stmt = (
            select(MarketCap)
            .where(MarketCap.timestamp >= start, MarketCap.timestamp < end)
            .order_by(MarketCap.timestamp)
        )
        latest: Dict[str, MarketCapRecord] = {}
        with self._session_factory() as session:
            for row in session.scalars(stmt):
                latest[row.ticker] = self._to_record(row)
        return sorted(latest.values(), key=lambda r: (r.rank is None, r.rank or 0, r.ticker))

    def available_dates(self) -> List[date]:
        with self._session_factory() as session:
            stamps = session.scalars(select(MarketCap.timestamp).distinct())
            return sorted({ts.date() for ts in stamps})

    def add_records(self, records: Iterable[MarketCapRecord]) -> int:
        """Insert or replace records keyed by (ticker, timestamp)."""
        count = 0
        with self._session_factory() as session:
            for r in records:
                session.merge(MarketCap(
                    ticker=r.ticker,
                    timestamp=_to_db_time(r.as_of),
                    name=r.name,
                    market_cap_original=r.raw_amount,
                    original_currency=r.raw_currency,
                    rank=r.rank,
                    active=r.active,
                ))
                count += 1
            session.commit()
        logger.info("market_caps_stored", records=count)
        return count


def open_stores(db_url: str):
    """Convenience: (RateStore, SnapshotStore) sharing one database."""
    factory = init_db_sync(db_url)
    return RateStore(factory), SnapshotStore(factory)
