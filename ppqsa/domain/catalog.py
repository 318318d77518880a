"""
Read-only reference data: pillars, questions and quick-win recommendations.

The packaged ``catalog.json`` is loaded once per process. Lookups never
mutate it; a question or recommendation that is absent simply yields None.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

from .models import Pillar, Question, Recommendation

CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "catalog.json"


class ReferenceCatalog:
    def __init__(
        self,
        pillars: list[Pillar],
        questions: list[Question],
        recommendations: Mapping[str, Recommendation] | None = None,
    ):
        codes = [p.code for p in pillars]
        if len(set(codes)) != len(codes):
            raise ValueError("Pillar codes must be unique")
        ids = [q.id for q in questions]
        if len(set(ids)) != len(ids):
            raise ValueError("Question ids must be unique")
        unknown = sorted({q.pillar_code for q in questions} - set(codes))
        if unknown:
            raise ValueError(f"Questions reference unknown pillars: {unknown}")

        self.pillars: tuple[Pillar, ...] = tuple(pillars)
        self._pillars_by_code = {p.code: p for p in pillars}
        self._questions_by_pillar: dict[str, tuple[Question, ...]] = {
            code: tuple(sorted((q for q in questions if q.pillar_code == code), key=lambda q: q.order))
            for code in codes
        }
        self._questions_by_id = {q.id: q for q in questions}
        self._recommendations = dict(recommendations or {})

    @property
    def pillar_codes(self) -> list[str]:
        return [p.code for p in self.pillars]

    def pillar(self, code: str) -> Pillar | None:
        return self._pillars_by_code.get(code)

    def questions_for(self, pillar_code: str) -> tuple[Question, ...]:
        return self._questions_by_pillar.get(pillar_code, ())

    def question(self, question_id: str) -> Question | None:
        return self._questions_by_id.get(question_id)

    def recommendation(self, question_id: str) -> Recommendation | None:
        return self._recommendations.get(question_id)

    def iter_questions(self) -> Iterator[Question]:
        """Questions in pillar order, then in-pillar order."""
        for pillar in self.pillars:
            yield from self._questions_by_pillar[pillar.code]

    def __len__(self) -> int:
        return len(self._questions_by_id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ReferenceCatalog:
        pillars = [Pillar(code=p["code"], name=p["name"]) for p in data["pillars"]]
        questions = [
            Question(id=q["id"], pillar_code=q["pillar_code"], text=q["text"], order=int(q["order"]))
            for q in data["questions"]
        ]
        recommendations = {
            qid: Recommendation(
                title=r["title"],
                action_steps=tuple(r["action_steps"]),
                why_it_matters=r["why_it_matters"],
                suggested_owner=r["suggested_owner"],
                effort=r["effort"],
                indicative_cost=r["indicative_cost"],
                timeframe=r["timeframe"],
            )
            for qid, r in data.get("recommendations", {}).items()
        }
        return cls(pillars, questions, recommendations)

    @classmethod
    def from_json_file(cls, path: str | Path) -> ReferenceCatalog:
        with open(path, encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


@lru_cache(maxsize=1)
def get_catalog() -> ReferenceCatalog:
    """The packaged catalog (cached)."""
    return ReferenceCatalog.from_json_file(CATALOG_PATH)
