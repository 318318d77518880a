"""
Cross-subject aggregation for the admin overview.

Works on the latest snapshot per token: display rows, filtering and sorting,
and summary insights (weakest pillar, most common quick wins, band counts).
Every function accepts an empty log and returns empty results.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from .catalog import ReferenceCatalog, get_catalog
from .schemas import BANDS, DEFAULT_TOKEN, NOT_SET, UNKNOWN_BAND, Snapshot
from .timestamps import is_more_recent, sortable_time

SortKey = Literal["score", "date"]
SortDirection = Literal["asc", "desc"]

ALL_COUNTRIES = "All"
TOP_QUICK_WINS = 5


@dataclass(slots=True)
class SubjectRow:
    """One subject's latest snapshot, with display values filled in."""

    token: str
    organisation_name: str
    country: str
    total_score24: float
    band: str
    timestamp_iso: str
    snapshot: Snapshot

    @classmethod
    def from_snapshot(cls, s: Snapshot) -> "SubjectRow":
        return cls(
            token=s.token or DEFAULT_TOKEN,
            organisation_name=s.organisation_name.strip() or NOT_SET,
            country=s.country.strip() or NOT_SET,
            total_score24=s.total_score24,
            band=s.band,
            timestamp_iso=s.timestamp_iso,
            snapshot=s,
        )

    def matches(self, query: str) -> bool:
        q = query.strip().lower()
        if not q:
            return True
        return (
            q in self.organisation_name.lower()
            or q in self.country.lower()
            or q in self.token.lower()
        )


@dataclass(slots=True)
class WeakestPillar:
    code: str
    name: str
    average: float


@dataclass(slots=True)
class QuickWinCount:
    question_id: str
    count: int
    text: str = ""


@dataclass(slots=True)
class BandCount:
    band: str
    count: int


@dataclass(slots=True)
class AdminInsights:
    total_subjects: int = 0
    weakest_pillar: WeakestPillar | None = None
    top_quick_wins: list[QuickWinCount] = field(default_factory=list)
    bands: list[BandCount] = field(default_factory=list)


def latest_per_subject(log: Iterable[Snapshot]) -> list[Snapshot]:
    """
    The most recent snapshot for every token, in order of first appearance.

    Parsed timestamps outrank unparsable ones; two unparsable timestamps
    compare as strings. On a tie the record seen first is kept.
    """
    latest: dict[str, Snapshot] = {}
    for s in log:
        key = s.token or DEFAULT_TOKEN
        current = latest.get(key)
        if current is None or is_more_recent(s.timestamp_iso, current.timestamp_iso):
            latest[key] = s
    return list(latest.values())


def build_rows(log: Iterable[Snapshot]) -> list[SubjectRow]:
    return [SubjectRow.from_snapshot(s) for s in latest_per_subject(log)]


def country_options(rows: Iterable[SubjectRow]) -> list[str]:
    """Distinct known countries, sorted, excluding the "Not set" placeholder."""
    return sorted({r.country for r in rows if r.country and r.country != NOT_SET})


def filter_rows(
    rows: Iterable[SubjectRow], country: str | None = None, search: str = ""
) -> list[SubjectRow]:
    out = []
    for r in rows:
        if country not in (None, "", ALL_COUNTRIES) and r.country != country:
            continue
        if not r.matches(search):
            continue
        out.append(r)
    return out


def sort_rows(
    rows: Iterable[SubjectRow], key: SortKey = "date", direction: SortDirection = "desc"
) -> list[SubjectRow]:
    """
    Sort by score or capture date.

    Score ties put the newest row first; date ties put the highest score first,
    whatever the direction. Unparsable dates sort as the oldest.
    """
    sign = -1 if direction == "desc" else 1
    if key == "score":
        return sorted(
            rows, key=lambda r: (sign * r.total_score24, -sortable_time(r.timestamp_iso))
        )
    return sorted(rows, key=lambda r: (sign * sortable_time(r.timestamp_iso), -r.total_score24))


# ---------- Insights ----------


def weakest_pillar(
    latest: Sequence[Snapshot], catalog: ReferenceCatalog | None = None
) -> WeakestPillar | None:
    """
    Pillar with the lowest mean average across subjects.

    Only subjects reporting a finite value count towards a pillar; a pillar
    nobody reported is skipped. Ties keep catalog order.
    """
    catalog = catalog or get_catalog()
    sums = {code: 0.0 for code in catalog.pillar_codes}
    counts = {code: 0 for code in catalog.pillar_codes}

    for s in latest:
        for p in s.pillar_averages:
            if p.pillar_code not in sums or not math.isfinite(p.average_score):
                continue
            sums[p.pillar_code] += p.average_score
            counts[p.pillar_code] += 1

    weakest: WeakestPillar | None = None
    for pillar in catalog.pillars:
        n = counts[pillar.code]
        if n == 0:
            continue
        avg = sums[pillar.code] / n
        if weakest is None or avg < weakest.average:
            weakest = WeakestPillar(code=pillar.code, name=pillar.name, average=avg)
    return weakest


def top_quick_wins(
    latest: Sequence[Snapshot],
    catalog: ReferenceCatalog | None = None,
    limit: int = TOP_QUICK_WINS,
) -> list[QuickWinCount]:
    """Questions most often scored 0 or 1, counted once per subject."""
    catalog = catalog or get_catalog()
    counts: Counter[str] = Counter()
    for s in latest:
        for qid, score in s.raw_answers.items():
            if score in (0, 1) and not isinstance(score, bool):
                counts[qid] += 1

    # catalog order first, then ids the catalog does not know in first-seen order
    order = {q.id: i for i, q in enumerate(catalog.iter_questions())}
    first_seen = {qid: i for i, qid in enumerate(counts)}
    ranked = sorted(counts, key=lambda qid: (order.get(qid, len(order)), first_seen[qid]))
    ranked.sort(key=lambda qid: counts[qid], reverse=True)

    out = []
    for qid in ranked[: max(0, limit)]:
        q = catalog.question(qid)
        out.append(QuickWinCount(question_id=qid, count=counts[qid], text=q.text if q else ""))
    return out


def band_distribution(bands: Iterable[str]) -> list[BandCount]:
    """Counts per band in canonical order; blank or unrecognised bands count as Unknown."""
    counts: Counter[str] = Counter()
    for band in bands:
        label = band.strip() if isinstance(band, str) else ""
        counts[label if label in BANDS else UNKNOWN_BAND] += 1
    return [BandCount(band=b, count=counts[b]) for b in (*BANDS, UNKNOWN_BAND) if counts[b]]


def admin_insights(
    latest: Sequence[Snapshot], catalog: ReferenceCatalog | None = None
) -> AdminInsights:
    catalog = catalog or get_catalog()
    return AdminInsights(
        total_subjects=len(latest),
        weakest_pillar=weakest_pillar(latest, catalog),
        top_quick_wins=top_quick_wins(latest, catalog),
        bands=band_distribution(s.band for s in latest),
    )
