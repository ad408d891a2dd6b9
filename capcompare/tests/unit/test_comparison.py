"""
CapCompare — Unit Tests for the Comparison Calculator
"""
import pytest

from capcompare.data.models import RateSource
from capcompare.engines.comparison import compare_snapshots
from capcompare.engines.normalizer import normalize_snapshots
from capcompare.tests.factories import D1, D2, quote, record, usd_snapshot


@pytest.fixture
def report(two_snapshots, eur_quotes):
    first, last = normalize_snapshots(two_snapshots, eur_quotes)
    return compare_snapshots(first, last)


class TestRows:
    def test_eur_scenario(self, report):
        x = report.row("X")
        assert x.from_value == pytest.approx(110.0)
        assert x.to_value == pytest.approx(121.0)
        assert x.absolute_change == pytest.approx(11.0)
        assert x.percentage_change == pytest.approx(10.0)

    def test_one_sided_ticker_retained(self, report):
        y = report.row("Y")
        assert y.from_value is None
        assert y.to_value == pytest.approx(80.0)
        assert y.absolute_change is None
        assert y.percentage_change is None
        assert y.from_rank is None
        assert y.rank_change is None
        assert y.from_share is None
        assert y.to_share is not None
        assert not y.in_both

    def test_rows_sorted_with_missing_last(self, report):
        assert [r.ticker for r in report.rows] == ["X", "Z", "Y"]

    def test_shares_sum_to_100(self, report):
        assert sum(r.from_share for r in report.rows if r.from_share is not None) == pytest.approx(100.0)
        assert sum(r.to_share for r in report.rows if r.to_share is not None) == pytest.approx(100.0)

    def test_share_change(self, report):
        z = report.row("Z")
        assert z.share_change == pytest.approx(z.to_share - z.from_share)

    def test_rate_sources(self, report):
        x = report.row("X")
        assert x.from_rate_source == RateSource.DIRECT
        assert report.row("Z").to_rate_source == RateSource.SAME
        assert not x.has_conversion_warning


class TestRankChange:
    def test_rank_five_to_two_is_plus_three(self):
        before = usd_snapshot(D1, {"A": 500, "B": 400, "C": 300, "D": 200, "T": 100})
        after = usd_snapshot(D2, {"A": 500, "T": 450, "B": 400, "C": 300, "D": 200})
        t = compare_snapshots(before, after).row("T")
        assert (t.from_rank, t.to_rank, t.rank_change) == (5, 2, 3)


class TestEdgeCases:
    def test_zero_from_value(self):
        before = usd_snapshot(D1, {"A": 0.0, "B": 10.0})
        after = usd_snapshot(D2, {"A": 5.0, "B": 10.0})
        assert compare_snapshots(before, after).row("A").percentage_change == 0.0

    def test_reference_currency_mismatch(self, two_snapshots, eur_quotes):
        usd = normalize_snapshots(two_snapshots, eur_quotes, "USD")
        eur = normalize_snapshots(two_snapshots, eur_quotes, "EUR")
        with pytest.raises(ValueError):
            compare_snapshots(usd[0], eur[1])

    def test_unresolved_surfaces(self, eur_quotes):
        snaps = {
            D1: [record("J", 100.0, "JPY", D1)],
            D2: [record("J", 120.0, "JPY", D2)],
        }
        first, last = normalize_snapshots(snaps, eur_quotes)
        report = compare_snapshots(first, last)
        assert report.row("J").has_conversion_warning
        assert report.unresolved_tickers == ["J"]
        assert report.warnings


class TestReport:
    def test_totals(self, report):
        assert report.total_from == pytest.approx(160.0)
        assert report.total_to == pytest.approx(251.0)
        assert report.total_change == pytest.approx(91.0)
        assert report.total_change_pct == pytest.approx(91.0 / 160.0 * 100)

    def test_currencies_used(self, report):
        assert report.currencies_used == ["EUR"]
        assert report.unresolved_tickers == []

    def test_top_movers(self):
        before = usd_snapshot(D1, {"A": 100, "B": 100, "C": 100})
        after = usd_snapshot(D2, {"A": 150, "B": 90, "C": 110})
        report = compare_snapshots(before, after)
        assert [r.ticker for r in report.top_gainers(2)] == ["A", "C"]
        assert [r.ticker for r in report.top_losers(1)] == ["B"]

    def test_to_dict(self, report):
        d = report.to_dict()
        assert d["from_date"] == "2024-01-01"
        assert d["rows"][0]["ticker"] == "X"
        assert d["rows"][0]["from_rate_source"] == "Direct"
        assert "total_to_display" in d

    def test_to_dataframe(self, report):
        df = report.to_dataframe()
        assert list(df.index) == ["X", "Z", "Y"]
        assert df.loc["X", "percentage_change"] == pytest.approx(10.0)
        assert "has_conversion_warning" in df.columns

    def test_reverse_quote_only(self):
        """Quoted the other way round, the stored reciprocal is used."""
        snaps = {D2: [record("X", 100.0, "EUR", D2)]}
        (snap,) = normalize_snapshots(snaps, [quote("USD/EUR", 0.8, D2)])
        x = snap.by_ticker()["X"]
        assert x.reference_amount == pytest.approx(125.0)
        assert x.rate_source == RateSource.REVERSE


class TestSummaryAnalytics:
    @pytest.fixture
    def movers(self):
        before = usd_snapshot(D1, {"A": 1000, "B": 500, "C": 100, "D": 50, "GONE": 10})
        after = usd_snapshot(D2, {"A": 900, "B": 700, "C": 101, "D": 950, "NEW": 5})
        return compare_snapshots(before, after, top_n=2)

    def test_absolute_movers(self, movers):
        assert [r.ticker for r in movers.top_absolute_gainers()] == ["D", "B"]
        assert [r.ticker for r in movers.top_absolute_losers()] == ["A"]
        assert [r.ticker for r in movers.top_absolute_gainers(5)] == ["D", "B", "C"]

    def test_rank_movers(self, movers):
        # D climbs from 4 to 1, everything it passed slips one place
        assert [(r.ticker, r.rank_change) for r in movers.rank_improvers()] == [("D", 3)]
        assert [(r.ticker, r.rank_change) for r in movers.rank_decliners()] == [("A", -1), ("B", -1)]

    def test_movement_counts(self, movers):
        assert movers.increased == ["B", "C", "D"]
        assert movers.decreased == ["A"]
        assert movers.new_tickers == ["NEW"]
        assert movers.dropped_tickers == ["GONE"]
        assert movers.movement_counts() == {"increased": 3, "decreased": 1, "new": 1, "dropped": 1}

    def test_top_n_default(self, movers):
        assert len(movers.top_gainers()) == 2
        assert len(movers.top_losers()) == 2
        assert len(movers.top_gainers(10)) == 4

    def test_rates_used(self, report):
        assert report.rates_used == {"EUR": pytest.approx(1.1)}

    def test_row_rate_provenance(self, report):
        x = report.row("X")
        assert x.from_rate_source == RateSource.DIRECT
        assert x.from_rate_used == pytest.approx(1.1)
        assert x.to_rate_used == pytest.approx(1.1)
        assert report.row("Y").from_rate_used is None

    def test_secondary_values(self, two_snapshots, eur_quotes):
        first, last = normalize_snapshots(two_snapshots, eur_quotes, "USD", "EUR")
        report = compare_snapshots(first, last)
        assert report.secondary_currency == "EUR"
        x = report.row("X")
        assert x.from_secondary_value == pytest.approx(100.0)
        assert x.to_secondary_value == pytest.approx(110.0)

    def test_summary_in_to_dict(self, movers):
        d = movers.to_dict()
        assert d["movement_counts"]["new"] == 1
        assert d["rank_improvers"] == ["D"]
        assert d["top_absolute_losers"] == ["A"]
