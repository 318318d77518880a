from conftest import make_snapshot

from ppqsa.domain.aggregation import (
    admin_insights,
    band_distribution,
    build_rows,
    country_options,
    filter_rows,
    latest_per_subject,
    sort_rows,
    top_quick_wins,
    weakest_pillar,
)


class TestLatestPerSubject:
    """Collapsing the log to one record per token."""

    def test_newest_record_wins(self):
        log = [
            make_snapshot(token="t1", timestamp="2024-01-01T00:00:00Z", total=10),
            make_snapshot(token="t1", timestamp="2024-02-01T00:00:00Z", total=15),
        ]
        latest = latest_per_subject(log)
        assert len(latest) == 1
        assert latest[0].total_score24 == 15

    def test_order_of_first_appearance(self):
        log = [
            make_snapshot(token="b", timestamp="2024-01-01T00:00:00Z"),
            make_snapshot(token="a", timestamp="2024-01-02T00:00:00Z"),
            make_snapshot(token="b", timestamp="2024-01-03T00:00:00Z"),
        ]
        assert [s.token for s in latest_per_subject(log)] == ["b", "a"]

    def test_parsed_beats_unparsable(self):
        valid = make_snapshot(timestamp="2020-01-01T00:00:00Z", total=1)
        broken = make_snapshot(timestamp="zzzz", total=2)
        assert latest_per_subject([valid, broken])[0] is valid
        assert latest_per_subject([broken, valid])[0] is valid

    def test_unparsable_compare_as_strings(self):
        a = make_snapshot(timestamp="a-not-a-date", total=1)
        b = make_snapshot(timestamp="b-not-a-date", total=2)
        assert latest_per_subject([b, a])[0] is b
        assert latest_per_subject([a, b])[0] is b

    def test_tie_keeps_first_seen(self):
        first = make_snapshot(total=3)
        second = make_snapshot(total=4)
        assert latest_per_subject([first, second])[0] is first


class TestRows:
    """Filtering and sorting the admin table."""

    def _rows(self):
        return build_rows(
            [
                make_snapshot(token="t1", timestamp="2024-01-01T00:00:00Z", total=10, org="Alpha", country="Fiji"),
                make_snapshot(token="t2", timestamp="2024-02-01T00:00:00Z", total=10, org="Beta", country="Samoa"),
                make_snapshot(token="t3", timestamp="2024-02-01T00:00:00Z", total=20, org="", country=""),
                make_snapshot(token="t4", timestamp="garbage", total=5, org="Delta", country="Fiji"),
            ]
        )

    def test_placeholders_for_blank_profile(self):
        row = next(r for r in self._rows() if r.token == "t3")
        assert row.organisation_name == "Not set"
        assert row.country == "Not set"

    def test_country_options(self):
        assert country_options(self._rows()) == ["Fiji", "Samoa"]

    def test_filter_by_country(self):
        rows = self._rows()
        assert {r.token for r in filter_rows(rows, country="Fiji")} == {"t1", "t4"}
        assert len(filter_rows(rows, country="All")) == 4
        assert len(filter_rows(rows, country=None)) == 4

    def test_search_is_case_insensitive(self):
        rows = self._rows()
        assert [r.token for r in filter_rows(rows, search="ALPHA")] == ["t1"]
        assert [r.token for r in filter_rows(rows, search="samoa")] == ["t2"]
        assert [r.token for r in filter_rows(rows, search=" t3 ")] == ["t3"]
        assert [r.token for r in filter_rows(rows, country="Fiji", search="delta")] == ["t4"]

    def test_sort_by_score_ties_newest_first(self):
        rows = self._rows()
        assert [r.token for r in sort_rows(rows, "score", "desc")] == ["t3", "t2", "t1", "t4"]
        assert [r.token for r in sort_rows(rows, "score", "asc")] == ["t4", "t2", "t1", "t3"]

    def test_sort_by_date_ties_highest_score_first(self):
        rows = self._rows()
        assert [r.token for r in sort_rows(rows, "date", "desc")] == ["t3", "t2", "t1", "t4"]
        assert [r.token for r in sort_rows(rows, "date", "asc")] == ["t4", "t1", "t3", "t2"]


class TestInsights:
    """Cross-subject summaries."""

    def test_weakest_pillar(self):
        latest = [
            make_snapshot(token="a", averages={"GOV": 1.0, "IAM": 2.0}),
            make_snapshot(token="b", averages={"GOV": 3.0, "IAM": 2.5}),
        ]
        weakest = weakest_pillar(latest)
        assert weakest.code == "GOV"
        assert weakest.average == 2.0
        assert weakest.name

    def test_weakest_pillar_skips_unreported(self):
        latest = [make_snapshot(token="a", averages={"IAM": 2.0})]
        assert weakest_pillar(latest).code == "IAM"
        assert weakest_pillar([]) is None

    def test_top_quick_wins(self):
        latest = [
            make_snapshot(token="a", answers={"IAM-01": 0, "GOV-01": 1, "BAK-01": 2}),
            make_snapshot(token="b", answers={"IAM-01": 1, "GOV-02": 0}),
            make_snapshot(token="c", answers={"GOV-01": "NA", "IAM-01": 3}),
        ]
        wins = top_quick_wins(latest)
        assert [(w.question_id, w.count) for w in wins] == [("IAM-01", 2), ("GOV-01", 1), ("GOV-02", 1)]
        assert wins[0].text

    def test_top_quick_wins_limit(self):
        answers = {f"GOV-0{i}": 0 for i in range(1, 5)} | {f"AST-0{i}": 1 for i in range(1, 5)}
        wins = top_quick_wins([make_snapshot(answers=answers)])
        assert len(wins) == 5
        assert [w.question_id for w in wins] == ["GOV-01", "GOV-02", "GOV-03", "GOV-04", "AST-01"]

    def test_band_distribution(self):
        counts = band_distribution(["Mature", "", "Weird", "Foundational", "Mature"])
        assert [(b.band, b.count) for b in counts] == [("Foundational", 1), ("Mature", 2), ("Unknown", 2)]
        assert band_distribution([]) == []

    def test_admin_insights(self):
        empty = admin_insights([])
        assert empty.total_subjects == 0
        assert empty.weakest_pillar is None
        assert empty.top_quick_wins == []
        assert empty.bands == []

        latest = [make_snapshot(token="a", total=20), make_snapshot(token="b", total=3)]
        insights = admin_insights(latest)
        assert insights.total_subjects == 2
        assert [(b.band, b.count) for b in insights.bands] == [("Foundational", 1), ("Mature", 1)]
