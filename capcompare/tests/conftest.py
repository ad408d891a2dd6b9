"""
CapCompare — Test Configuration & Fixtures
Shared fixtures for all test modules.
"""
import pytest

from capcompare.config.settings import AppSettings
from capcompare.db.stores import open_stores
from capcompare.tests.factories import D1, D2, quote, record


@pytest.fixture
def eur_quotes():
    """EUR/USD moves 1.0 -> 1.1 between the two snapshot dates."""
    return [quote("EUR/USD", 1.0, D1), quote("EUR/USD", 1.1, D2)]


@pytest.fixture
def multi_quotes():
    """A small quote set with EUR and GBP against USD on both dates."""
    return [
        quote("EUR/USD", 1.0, D1),
        quote("GBP/USD", 1.25, D1),
        quote("EUR/USD", 1.1, D2),
        quote("GBP/USD", 1.3, D2),
    ]


@pytest.fixture
def two_snapshots():
    """
    X is quoted in EUR and grows 100 -> 110 EUR. Y is USD and only in D2.
    Z is USD and flat.
    """
    return {
        D1: [
            record("X", 100.0, "EUR", D1, rank=1),
            record("Z", 50.0, "USD", D1, rank=2),
        ],
        D2: [
            record("X", 110.0, "EUR", D2, rank=1),
            record("Y", 80.0, "USD", D2, rank=2),
            record("Z", 50.0, "USD", D2, rank=3),
        ],
    }


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def stores(tmp_path):
    """(RateStore, SnapshotStore) on a fresh SQLite file."""
    db_url = f"sqlite:///{tmp_path / 'capcompare_test.db'}"
    return open_stores(db_url)


@pytest.fixture
def populated_stores(stores, multi_quotes, two_snapshots):
    rate_store, snapshot_store = stores
    rate_store.add_quotes(multi_quotes)
    for records in two_snapshots.values():
        snapshot_store.add_records(records)
    return rate_store, snapshot_store
