import math

from conftest import make_snapshot

from ppqsa.domain.services import ScoreCalculator
from ppqsa.domain.trends import TrendSeries, chronological, sparkline, subject_options
from ppqsa.utils.charts import make_pillar_radar, make_trend_figure, score_color


def test_sparkline_scaling():
    assert sparkline([]) == ""
    assert sparkline([5, 5, 5]) == "==="
    assert sparkline([0, 24]) == " @"
    assert sparkline([0, 12, 24]) == " +@"
    # halves round up
    assert sparkline([0, 1, 2]) == " +@"


def test_sparkline_skips_non_finite():
    assert sparkline([math.nan, 3, math.inf]) == "="
    assert sparkline([math.nan]) == ""


def test_chronological_puts_unparsable_first():
    log = [
        make_snapshot(timestamp="2024-02-01T00:00:00Z", total=2),
        make_snapshot(timestamp="zzz", total=3),
        make_snapshot(timestamp="2024-01-01T00:00:00Z", total=1),
    ]
    assert [s.total_score24 for s in chronological(log)] == [3, 1, 2]


def test_trend_series_for_token():
    log = [
        make_snapshot(token="t1", timestamp="2024-02-01T00:00:00Z", total=15, averages={"GOV": 2.0}),
        make_snapshot(token="t2", timestamp="2024-01-15T00:00:00Z", total=7),
        make_snapshot(token="t1", timestamp="2024-01-01T00:00:00Z", total=10),
    ]
    series = TrendSeries.for_token(log, "t1")
    assert series.scores == [10, 15]
    assert series.delta == 5.0
    assert series.latest.total_score24 == 15
    assert series.sparkline == " @"


def test_trend_series_single_point_has_no_delta():
    series = TrendSeries.for_token([make_snapshot(total=4)], "t1")
    assert series.delta is None
    assert TrendSeries.for_token([], "t1").latest is None


def test_subject_options_sorted_by_label():
    log = [
        make_snapshot(token="t1", org="Beta", country="Samoa"),
        make_snapshot(token="t2", org="alpha", country=""),
    ]
    labels = [o.label for o in subject_options(log)]
    assert labels == ["alpha — Not set (t2)", "Beta — Samoa (t1)"]


def test_radar_titles_lowest_pillar():
    averages = ScoreCalculator().calculate({"GOV-01": 3, "IAM-01": 2}).pillar_averages
    fig = make_pillar_radar(averages[:3])
    # AST has no answers so averages 0
    assert fig.layout.title.text == "AST is the lowest pillar"
    assert len(fig.data) == 2
    assert len(make_pillar_radar(averages, target_average=2.25).data) == 3


def test_trend_figure_has_target_line():
    series = TrendSeries.for_token([make_snapshot(total=4), make_snapshot(timestamp="2024-05-01T00:00:00Z", total=9)], "t1")
    fig = make_trend_figure(series, target_score24=18)
    assert list(fig.data[0].y) == [4, 9]
    assert len(fig.layout.shapes) == 1


def test_score_color_stops():
    assert score_color(0.2) == "#D73027"
    assert score_color(3.0) == "#1A9850"
