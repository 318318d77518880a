import math

import pytest

from ppqsa.domain.catalog import get_catalog
from ppqsa.domain.schemas import normalize_score
from ppqsa.domain.services import (
    QuickWinResolver,
    ScoreCalculator,
    band_for,
    coerce_target_score,
    confidence_label,
    score_gap,
)


def _avg(summary, code):
    return next(p for p in summary.pillar_averages if p.pillar_code == code)


def test_catalog_shape():
    catalog = get_catalog()
    assert catalog.pillar_codes == ["GOV", "AST", "IAM", "END", "PER", "BAK", "LOG", "IR"]
    assert len(catalog) == 30
    for q in catalog.iter_questions():
        assert q.id.startswith(q.pillar_code + "-")
        assert catalog.recommendation(q.id) is not None


@pytest.mark.parametrize(
    "total, band",
    [
        (0, "Foundational"),
        (5.99, "Foundational"),
        (6, "Developing"),
        (11.99, "Developing"),
        (12, "Established"),
        (17.99, "Established"),
        (18, "Mature"),
        (24, "Mature"),
    ],
)
def test_band_boundaries(total, band):
    assert band_for(total) == band


def test_all_threes_is_full_marks():
    catalog = get_catalog()
    answers = {q.id: 3 for q in catalog.iter_questions()}
    summary = ScoreCalculator().calculate(answers)
    assert summary.total_score24 == 24.0
    assert summary.band == "Mature"
    assert len(summary.pillar_averages) == 8
    assert all(p.average_score == 3.0 for p in summary.pillar_averages)
    assert summary.answered_count == 30


def test_empty_answers_score_zero():
    summary = ScoreCalculator().calculate({})
    assert summary.total_score24 == 0.0
    assert summary.band == "Foundational"
    assert summary.answered_count == 0
    assert all(p.answered_count == 0 for p in summary.pillar_averages)


def test_na_excluded_from_pillar_mean():
    summary = ScoreCalculator().calculate({"GOV-01": 3, "GOV-02": "NA", "GOV-03": 1})
    gov = _avg(summary, "GOV")
    assert gov.average_score == 2.0
    assert gov.answered_count == 2
    assert gov.question_count == 4
    # N/A still counts as answered for progress
    assert summary.answered_count == 3


def test_total_is_rounded_sum_of_averages():
    summary = ScoreCalculator().calculate({"GOV-01": 1, "GOV-02": 1, "GOV-03": 2})
    assert summary.total_score24 == 1.33
    assert summary.total_score24 == round(sum(p.average_score for p in summary.pillar_averages), 2)


def test_invalid_answer_values_are_ignored():
    summary = ScoreCalculator().calculate({"GOV-01": True, "GOV-02": 2.5, "GOV-03": "3", "XXX-01": 3})
    assert summary.total_score24 == 0.0
    assert summary.answered_count == 3  # ids present in the catalog


@pytest.mark.parametrize(
    "value, expected",
    [(0, 0), (3, 3), (2.0, 2), ("NA", "NA"), (True, None), (4, None), (1.5, None), ("na", None), (None, None)],
)
def test_normalize_score(value, expected):
    assert normalize_score(value) == expected


def test_quick_wins_in_catalog_order():
    answers = {"GOV-01": 0, "GOV-02": 2, "IAM-01": 1, "BAK-02": "NA"}
    wins = QuickWinResolver().resolve(answers)
    assert [w.question_id for w in wins] == ["GOV-01", "IAM-01"]
    assert wins[0].score == 0
    assert wins[0].recommendation.title == "Assign clear cyber accountability"
    assert len(wins[0].recommendation.action_steps) == 3


def test_quick_wins_empty_when_no_low_scores():
    assert QuickWinResolver().resolve({"GOV-01": 2, "GOV-02": 3}) == []


@pytest.mark.parametrize(
    "answered, total, label",
    [(3, 4, "High"), (2, 4, "Medium"), (1, 4, "Low"), (1, 0, "Low"), (math.nan, 4, "Low")],
)
def test_confidence_label(answered, total, label):
    assert confidence_label(answered, total) == label


@pytest.mark.parametrize(
    "value, expected",
    [("20", 20.0), (30, 24.0), (-5, 0.0), ("abc", 18.0), ("", 18.0), (math.inf, 18.0), (True, 18.0)],
)
def test_coerce_target_score(value, expected):
    assert coerce_target_score(value) == expected


def test_score_gap_never_negative():
    assert score_gap(15, 18) == 3.0
    assert score_gap(20, 18) == 0.0
