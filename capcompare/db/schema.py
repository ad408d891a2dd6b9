"""
CapCompare — Database Schema Design
SQLAlchemy models for persisted currency quotes and market-cap snapshots.
"""
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime,
    Index, UniqueConstraint, create_engine
)
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class ForexRate(Base):
    """Bid/ask quote of one currency pair at one instant."""
    __tablename__ = "forex_rates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    symbol = Column(String(20), nullable=False)  # BASE/QUOTE, e.g. EUR/USD
    ask = Column(Float, nullable=False)
    bid = Column(Float, nullable=False)
    timestamp = Column(DateTime, nullable=False)  # naive UTC
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("symbol", "timestamp", name="uq_forex_rates_symbol_ts"),
        Index("idx_forex_rates_time", "timestamp"),
    )


class MarketCap(Base):
    """One ticker's raw market cap within one snapshot."""
    __tablename__ = "market_caps"

    ticker = Column(String(30), primary_key=True)
    timestamp = Column(DateTime, primary_key=True)  # naive UTC
    name = Column(String(200), nullable=False, default="")
    market_cap_original = Column(Float, nullable=False)
    original_currency = Column(String(10), nullable=False)
    rank = Column(Integer)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("idx_market_caps_time", "timestamp"),
    )


def init_db_sync(db_url: str = "sqlite:///capcompare.db", echo: bool = False):
    """Create all tables and return a session factory."""
    engine = create_engine(db_url, echo=echo)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
