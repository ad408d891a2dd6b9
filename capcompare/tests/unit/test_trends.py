"""
CapCompare — Unit Tests for the Trend & Analytics Engine
"""
import pytest
from datetime import date

from capcompare.data.models import TrendPoint
from capcompare.engines.trends import (
    analyze_trends, compute_cagr, compute_max_drawdown, compute_volatility, period_returns,
)
from capcompare.tests.factories import usd_snapshot


def points(*values):
    return [TrendPoint(snapshot_date=date(2020 + i, 1, 1), reference_amount=v) for i, v in enumerate(values)]


class TestCAGR:
    def test_ten_percent_over_two_years(self):
        assert compute_cagr(100.0, 121.0, 2.0) == pytest.approx(10.0)

    def test_decline(self):
        assert compute_cagr(100.0, 81.0, 2.0) == pytest.approx(-10.0)

    @pytest.mark.parametrize("start,end,years", [
        (0.0, 100.0, 1.0),
        (-5.0, 100.0, 1.0),
        (100.0, -1.0, 1.0),
        (100.0, 120.0, 0.0),
    ])
    def test_unavailable(self, start, end, years):
        assert compute_cagr(start, end, years) is None

    def test_end_zero_allowed(self):
        assert compute_cagr(100.0, 0.0, 1.0) == pytest.approx(-100.0)


class TestVolatility:
    def test_population_std(self):
        assert period_returns(points(100, 110, 99)) == pytest.approx([10.0, -10.0])
        assert compute_volatility(points(100, 110, 99)) == pytest.approx(10.0)

    def test_needs_three_points(self):
        assert compute_volatility(points(100, 110)) is None

    def test_flat_series(self):
        assert compute_volatility(points(50, 50, 50, 50)) == 0.0


class TestDrawdown:
    def test_running_peak(self):
        assert compute_max_drawdown(points(100, 120, 90, 130)) == pytest.approx(25.0)

    def test_monotonic_rise(self):
        assert compute_max_drawdown(points(100, 110, 120)) == 0.0

    def test_needs_two_points(self):
        assert compute_max_drawdown(points(100)) is None


class TestAnalyzeTrends:
    @pytest.fixture
    def snapshots(self):
        return [
            usd_snapshot(date(2023, 1, 1), {"A": 100, "B": 100, "C": 50}),
            usd_snapshot(date(2024, 1, 1), {"A": 130, "B": 90}),
            usd_snapshot(date(2025, 1, 1), {"A": 121, "B": 80, "N": 10}),
        ]

    def test_single_snapshot_is_insufficient_data(self, snapshots):
        report = analyze_trends(snapshots[:1])
        assert {t.ticker for t in report.trends} == {"A", "B", "C"}
        for t in report.trends:
            assert t.insufficient_data
            assert t.overall_change_pct is None
            assert t.cagr is None
            assert t.volatility is None
            assert t.max_drawdown is None
        assert report.summary.num_periods == 1
        assert report.summary.total_change_pct == 0.0
        assert report.summary.best_performer is None

    def test_empty_input_rejected(self):
        with pytest.raises(ValueError):
            analyze_trends([])

    def test_order_and_metrics(self, snapshots):
        report = analyze_trends(list(reversed(snapshots)))
        assert [t.ticker for t in report.trends[:2]] == ["A", "B"]
        a = report.trend("A")
        assert len(a.points) == 3
        assert a.overall_change_pct == pytest.approx(21.0)
        # 731 days over a 365.25-day year
        assert a.cagr == pytest.approx(10.0, abs=0.05)
        assert a.max_drawdown == pytest.approx((130 - 121) / 130 * 100)
        assert a.volatility is not None

    def test_insufficient_data(self, snapshots):
        report = analyze_trends(snapshots)
        n = report.trend("N")
        assert n.insufficient_data
        assert n.cagr is None
        assert n.overall_change_pct is None

    def test_two_point_series_has_no_volatility(self, snapshots):
        c = analyze_trends(snapshots).trend("C")
        assert c.insufficient_data
        b = analyze_trends(snapshots[:2]).trend("B")
        assert not b.insufficient_data
        assert b.volatility is None
        assert b.max_drawdown == pytest.approx(10.0)

    def test_summary(self, snapshots):
        s = analyze_trends(snapshots).summary
        assert s.start_date == date(2023, 1, 1)
        assert s.end_date == date(2025, 1, 1)
        assert s.num_periods == 3
        assert s.start_total == 250
        assert s.end_total == 211
        assert s.best_performer == "A"
        assert s.worst_performer == "B"
        assert s.most_stable in ("A", "B")

    def test_exports(self, snapshots):
        report = analyze_trends(snapshots)
        df = report.to_dataframe()
        assert df.shape == (3, 4)
        d = report.to_dict()
        assert d["summary"]["num_periods"] == 3
        assert d["unresolved_tickers"] == []
