from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Effort = Literal["Low", "Med", "High"]
IndicativeCost = Literal["$", "$$", "$$$"]
Timeframe = Literal["0-30 days", "30-90 days", "90+"]


@dataclass(slots=True, frozen=True)
class Pillar:
    code: str  # e.g. "GOV"
    name: str  # e.g. "Governance & Ownership"


@dataclass(slots=True, frozen=True)
class Question:
    id: str  # "<PillarCode>-<2-digit-seq>"
    pillar_code: str
    text: str
    order: int


@dataclass(slots=True, frozen=True)
class Recommendation:
    title: str
    action_steps: tuple[str, str, str]
    why_it_matters: str
    suggested_owner: str
    effort: Effort
    indicative_cost: IndicativeCost
    timeframe: Timeframe


@dataclass(slots=True, frozen=True)
class QuickWin:
    question_id: str
    pillar_code: str
    question_text: str
    score: int  # 0 or 1
    recommendation: Recommendation
