from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from .catalog import ReferenceCatalog, get_catalog
from .models import QuickWin
from .schemas import NOT_APPLICABLE, Band, PillarAverage, normalize_score

ConfidenceLabel = Literal["High", "Medium", "Low"]

MAX_PILLAR_SCORE = 3.0
MAX_TOTAL_SCORE = 24.0
DEFAULT_TARGET_SCORE24 = 18.0

BAND_DESCRIPTIONS: dict[str, str] = {
    "Foundational": (
        "Core cybersecurity controls are limited or inconsistent. Focus first on a small "
        "number of practical basics (MFA, backups, patching, admin separation)."
    ),
    "Developing": (
        "Controls exist in some areas but may be inconsistent or not embedded. Focus on "
        "consistency, ownership, and quick standardisation."
    ),
    "Established": (
        "Most foundational controls are in place. Focus on improving monitoring, testing, "
        "and strengthening governance and resilience."
    ),
    "Mature": (
        "Strong baseline maturity. Focus on continuous improvement, metrics, assurance "
        "testing, and operational resilience."
    ),
}


def band_for(total_score24: float) -> Band:
    """Half-open bands: [0,6) [6,12) [12,18) [18,24]."""
    if total_score24 < 6:
        return "Foundational"
    if total_score24 < 12:
        return "Developing"
    if total_score24 < 18:
        return "Established"
    return "Mature"


def band_description(band: str) -> str:
    return BAND_DESCRIPTIONS.get(band, "")


def confidence_label(answered_excluding_na: float, total_questions: float) -> ConfidenceLabel:
    """How much of a pillar was actually answered (N/A excluded)."""
    if not math.isfinite(answered_excluding_na) or not math.isfinite(total_questions):
        return "Low"
    if total_questions <= 0:
        return "Low"

    ratio = answered_excluding_na / total_questions
    if ratio >= 0.75:
        return "High"
    if ratio >= 0.5:
        return "Medium"
    return "Low"


def clamp(n: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, n))


def coerce_target_score(value: Any, previous: float = DEFAULT_TARGET_SCORE24) -> float:
    """
    Accept a user-entered target out of 24.

    Unparsable or non-finite input is rejected and ``previous`` is kept;
    anything else is clamped to [0, 24].
    """
    if isinstance(value, bool):
        return previous
    if isinstance(value, str):
        if value.strip() == "":
            return previous
        try:
            value = float(value)
        except ValueError:
            return previous
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return previous
    return clamp(float(value), 0.0, MAX_TOTAL_SCORE)


def score_gap(total_score24: float, target_score24: float) -> float:
    """Points still needed to reach the target (never negative)."""
    return round(max(0.0, target_score24 - total_score24), 2)


@dataclass
class ScoreSummary:
    pillar_averages: list[PillarAverage]
    total_score24: float
    band: Band
    answered_count: int  # answers whose ids exist in the catalog, N/A included
    question_count: int


class ScoreCalculator:
    """Turns a raw answer map into per-pillar averages and a total /24."""

    def __init__(self, catalog: ReferenceCatalog | None = None, logger: logging.Logger | None = None):
        self.catalog = catalog or get_catalog()
        self.logger = logger or logging.getLogger(__name__)

    def pillar_averages(self, answers: Mapping[str, Any]) -> list[PillarAverage]:
        """
        One entry per pillar, in catalog order.
        - N/A and unanswered questions are excluded from the mean.
        - A pillar with no scored answers averages 0 (answered_count == 0).
        """
        results: list[PillarAverage] = []
        for pillar in self.catalog.pillars:
            questions = self.catalog.questions_for(pillar.code)
            total = 0
            count = 0
            for q in questions:
                score = normalize_score(answers.get(q.id))
                if score is None or score == NOT_APPLICABLE:
                    continue
                total += score
                count += 1

            average = total / count if count > 0 else 0.0
            results.append(
                PillarAverage(
                    pillar_code=pillar.code,
                    pillar_name=pillar.name,
                    average_score=clamp(average, 0.0, MAX_PILLAR_SCORE),
                    answered_count=count,
                    question_count=len(questions),
                )
            )
        return results

    @staticmethod
    def total_score24(pillar_averages: list[PillarAverage]) -> float:
        total = sum(p.average_score for p in pillar_averages)
        return round(clamp(total, 0.0, MAX_TOTAL_SCORE), 2)

    def calculate(self, answers: Mapping[str, Any]) -> ScoreSummary:
        averages = self.pillar_averages(answers)
        total = self.total_score24(averages)
        answered = sum(1 for qid in answers if self.catalog.question(qid) is not None)

        self.logger.debug(
            "Scored %d answers: total %.2f/24 across %d pillars", answered, total, len(averages)
        )
        return ScoreSummary(
            pillar_averages=averages,
            total_score24=total,
            band=band_for(total),
            answered_count=answered,
            question_count=len(self.catalog),
        )


class QuickWinResolver:
    """Recommendations for every question scored 0 or 1, in catalog order."""

    def __init__(self, catalog: ReferenceCatalog | None = None):
        self.catalog = catalog or get_catalog()

    def resolve(self, answers: Mapping[str, Any]) -> list[QuickWin]:
        wins: list[QuickWin] = []
        for q in self.catalog.iter_questions():
            score = normalize_score(answers.get(q.id))
            if score not in (0, 1):
                continue
            rec = self.catalog.recommendation(q.id)
            if rec is None:
                continue
            wins.append(
                QuickWin(
                    question_id=q.id,
                    pillar_code=q.pillar_code,
                    question_text=q.text,
                    score=score,
                    recommendation=rec,
                )
            )
        return wins
