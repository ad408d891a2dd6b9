"""
CapCompare — Unit Tests for the Rate Map Builder
"""
import pytest
from datetime import datetime, timezone

from capcompare.data.models import RateSource
from capcompare.fx.rate_map import (
    RateMap, anchor_instant, build_rate_map, build_rate_map_for_date, select_quotes,
)
from capcompare.tests.factories import D1, D2, quote


class TestAnchorInstant:
    def test_midnight_utc(self):
        assert anchor_instant(D2) == datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestQuoteSelection:
    def test_closest_before(self, eur_quotes):
        selected = select_quotes(eur_quotes, anchor_instant(D1))
        assert selected["EUR/USD"].rate == 1.0

    def test_quote_exactly_at_instant_is_included(self, eur_quotes):
        selected = select_quotes(eur_quotes, anchor_instant(D2))
        assert selected["EUR/USD"].rate == 1.1

    def test_later_quote_excluded(self):
        quotes = [quote("EUR/USD", 1.0, D2), quote("EUR/USD", 1.5, D2, hour=12)]
        selected = select_quotes(quotes, anchor_instant(D2))
        assert selected["EUR/USD"].rate == 1.0

    def test_latest_mode(self, eur_quotes):
        selected = select_quotes(reversed(eur_quotes))
        assert selected["EUR/USD"].rate == 1.1


class TestBuildRateMap:
    def test_direct_and_reciprocal(self):
        rm = build_rate_map([quote("EUR/USD", 1.25, D1)])
        assert rm[("EUR", "USD")] == 1.25
        assert rm[("USD", "EUR")] == pytest.approx(0.8)
        assert rm.origin(("EUR", "USD")) == RateSource.DIRECT
        assert rm.origin(("USD", "EUR")) == RateSource.REVERSE

    def test_reciprocal_round_trip(self, multi_quotes):
        rm = build_rate_map(multi_quotes)
        for (a, b), rate in rm.items():
            assert rate * rm[(b, a)] == pytest.approx(1.0)

    def test_newest_direction_wins(self):
        quotes = [quote("USD/EUR", 0.5, D1), quote("EUR/USD", 1.1, D2)]
        rm = build_rate_map(quotes)
        assert rm[("EUR", "USD")] == 1.1
        assert rm[("USD", "EUR")] == pytest.approx(1 / 1.1)
        assert rm.origin(("EUR", "USD")) == RateSource.DIRECT

    def test_cross_rate(self, multi_quotes):
        rm = build_rate_map(multi_quotes)
        assert rm[("EUR", "GBP")] == pytest.approx(1.1 / 1.3)
        assert rm[("GBP", "EUR")] == pytest.approx(1.3 / 1.1)
        assert rm.origin(("EUR", "GBP")) == RateSource.CROSS
        assert rm.intermediate(("EUR", "GBP")) == "USD"

    def test_cross_rate_consistency(self, multi_quotes):
        rm = build_rate_map(multi_quotes)
        composed = rm[("EUR", "USD")] * rm[("USD", "GBP")]
        assert rm[("EUR", "GBP")] == pytest.approx(composed)

    def test_smallest_intermediate_wins(self):
        quotes = [
            quote("EUR/CHF", 0.95, D1),
            quote("CHF/JPY", 160.0, D1),
            quote("EUR/USD", 1.1, D1),
            quote("USD/JPY", 150.0, D1),
        ]
        rm = build_rate_map(quotes)
        assert rm.intermediate(("EUR", "JPY")) == "CHF"
        assert rm[("EUR", "JPY")] == pytest.approx(0.95 * 160.0)

    def test_empty_quotes(self):
        rm = build_rate_map([])
        assert len(rm) == 0
        assert not rm

    def test_nothing_before_instant(self, eur_quotes):
        rm = build_rate_map(eur_quotes, datetime(2023, 6, 1, tzinfo=timezone.utc))
        assert len(rm) == 0
        assert rm.as_of == datetime(2023, 6, 1, tzinfo=timezone.utc)

    def test_for_date(self, eur_quotes):
        assert build_rate_map_for_date(eur_quotes, D1)[("EUR", "USD")] == 1.0
        assert build_rate_map_for_date(eur_quotes, D2)[("EUR", "USD")] == 1.1

    def test_latest_flag(self, eur_quotes):
        assert build_rate_map(eur_quotes).is_latest
        assert not build_rate_map_for_date(eur_quotes, D2).is_latest


class TestRateMapValue:
    def test_read_only(self):
        rm = RateMap.from_rates({("EUR", "USD"): 1.1})
        with pytest.raises(TypeError):
            rm[("EUR", "USD")] = 2.0

    def test_to_dict_and_origins(self, multi_quotes):
        rm = build_rate_map(multi_quotes)
        d = rm.to_dict()
        assert d["EUR/USD"] == 1.1
        assert ("EUR", "GBP") in rm.pairs_by_origin(RateSource.CROSS)
        assert rm.currencies == {"EUR", "GBP", "USD"}

    def test_from_rates_adds_reciprocals(self):
        rm = RateMap.from_rates({("EUR", "USD"): 1.25})
        assert rm[("USD", "EUR")] == pytest.approx(0.8)
        assert rm.origin(("EUR", "USD")) == RateSource.DIRECT
        assert rm.origin(("USD", "EUR")) == RateSource.REVERSE

    def test_from_rates_keeps_given_reverse(self):
        rm = RateMap.from_rates({("EUR", "USD"): 1.25, ("USD", "EUR"): 0.79})
        assert rm[("USD", "EUR")] == 0.79
        assert rm.origin(("USD", "EUR")) == RateSource.DIRECT

    def test_from_rates_rejects_non_positive(self):
        with pytest.raises(ValueError):
            RateMap.from_rates({("EUR", "USD"): 0.0})
