"""
Lenient decoding of snapshot records.

The persisted log can hold records from older builds, hand-edited imports or
partially written entries. Every path here substitutes a safe default for a
missing or wrong-typed field instead of raising, and every Snapshot leaving
the codec satisfies these rules:

- ``token`` is non-empty (``"default"`` when absent)
- ``pillarAverages`` holds at most one entry per known pillar, in catalog order,
  each average within [0, 3]
- ``totalScore24`` is within [0, 24], rounded to 2 places, and equals the
  rounded sum of the averages whenever all pillars are present
- ``band`` is derived from ``totalScore24``
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any

from .catalog import ReferenceCatalog, get_catalog
from .schemas import (
    DEFAULT_TOKEN,
    PillarAverage,
    Score,
    Snapshot,
    normalize_answers,
)
from .services import MAX_PILLAR_SCORE, MAX_TOTAL_SCORE, ScoreSummary, band_for, clamp
from .timestamps import now_iso

logger = logging.getLogger(__name__)


def read_string(value: Any, fallback: str = "") -> str:
    return value if isinstance(value, str) else fallback


def read_number(value: Any, fallback: float = 0.0) -> float:
    """A finite int/float (never a bool), else ``fallback``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    try:
        number = float(value)
    except OverflowError:
        return fallback
    return number if math.isfinite(number) else fallback


def read_count(value: Any) -> int:
    number = read_number(value, 0.0)
    if number < 0 or not number.is_integer():
        return 0
    return int(number)


def read_notes(value: Any) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {k: v for k, v in value.items() if isinstance(k, str) and isinstance(v, str)}


class SnapshotCodec:
    def __init__(self, catalog: ReferenceCatalog | None = None):
        self.catalog = catalog or get_catalog()

    # ---------- Decoding ----------

    def normalize(self, value: Any) -> Snapshot:
        """
        Build a well-formed Snapshot from any decoded JSON value.

        Never raises; a non-mapping input yields an all-defaults record.
        """
        record: Mapping[str, Any] = value if isinstance(value, Mapping) else {}

        token = read_string(record.get("token")).strip() or DEFAULT_TOKEN
        timestamp = read_string(record.get("timestampISO")).strip() or now_iso()

        averages = self._normalize_pillar_averages(record.get("pillarAverages"))
        total = self._total_score24(averages, record.get("totalScore24"))

        stored_band = read_string(record.get("band"))
        band = band_for(total)
        if stored_band and stored_band != band:
            logger.debug("Re-derived band %r for stored band %r (token %s)", band, stored_band, token)

        return Snapshot(
            token=token,
            organisation_name=read_string(record.get("organisationName")),
            country=read_string(record.get("country")),
            contact_email=read_string(record.get("contactEmail")),
            timestamp_iso=timestamp,
            total_score24=total,
            band=band,
            pillar_averages=tuple(averages),
            pillar_notes=read_notes(record.get("pillarNotes")),
            raw_answers=normalize_answers(dict(record.get("rawAnswers")))
            if isinstance(record.get("rawAnswers"), Mapping)
            else {},
        )

    def decode(self, value: Any) -> Snapshot | None:
        """Like ``normalize`` but rejects values that are not records at all."""
        if not isinstance(value, Mapping):
            logger.debug("Dropping non-record log entry of type %s", type(value).__name__)
            return None
        return self.normalize(value)

    def decode_many(self, values: Any) -> list[Snapshot]:
        if not isinstance(values, Sequence) or isinstance(values, (str, bytes)):
            return []
        out: list[Snapshot] = []
        for item in values:
            snapshot = self.decode(item)
            if snapshot is not None:
                out.append(snapshot)
        return out

    def from_legacy(self, value: Any) -> Snapshot | None:
        """
        Reshape a pre-v1 record (``profile`` sub-object, ``timestamp``,
        ``totalScoreOutOf24``, ``maturityBand``, ``answers``) into a Snapshot.
        """
        if not isinstance(value, Mapping):
            return None
        profile = value.get("profile")
        if not isinstance(profile, Mapping):
            profile = {}
        return self.normalize(
            {
                "token": value.get("token"),
                "organisationName": profile.get("organisationName"),
                "country": profile.get("country"),
                "contactEmail": profile.get("contactEmail"),
                "timestampISO": value.get("timestamp"),
                "totalScore24": value.get("totalScoreOutOf24"),
                "band": value.get("maturityBand"),
                "pillarAverages": value.get("pillarAverages"),
                "rawAnswers": value.get("answers"),
            }
        )

    # ---------- Encoding ----------

    def build(
        self,
        *,
        token: str | None,
        summary: ScoreSummary,
        answers: Mapping[str, Score],
        timestamp_iso: str,
        organisation_name: str = "",
        country: str = "",
        contact_email: str = "",
        pillar_notes: Mapping[str, str] | None = None,
    ) -> Snapshot:
        """Assemble a new snapshot from a freshly computed score summary."""
        return self.normalize(
            {
                "token": token,
                "organisationName": organisation_name.strip(),
                "country": country.strip(),
                "contactEmail": contact_email.strip(),
                "timestampISO": timestamp_iso,
                "totalScore24": summary.total_score24,
                "band": summary.band,
                "pillarAverages": [p.model_dump(by_alias=True) for p in summary.pillar_averages],
                "pillarNotes": dict(pillar_notes or {}),
                "rawAnswers": dict(answers),
            }
        )

    @staticmethod
    def encode(snapshots: Sequence[Snapshot]) -> list[dict[str, Any]]:
        return [s.to_record() for s in snapshots]

    # ---------- Helpers ----------

    def _normalize_pillar_averages(self, value: Any) -> list[PillarAverage]:
        if not isinstance(value, list):
            return []

        by_code: dict[str, PillarAverage] = {}
        for item in value:
            if not isinstance(item, Mapping):
                continue
            code = read_string(item.get("pillarCode")).strip()
            pillar = self.catalog.pillar(code)
            if pillar is None or code in by_code:
                logger.debug("Dropping pillar average with code %r", code)
                continue
            by_code[code] = PillarAverage(
                pillar_code=code,
                pillar_name=read_string(item.get("pillarName")) or pillar.name,
                average_score=clamp(read_number(item.get("averageScore")), 0.0, MAX_PILLAR_SCORE),
                answered_count=read_count(item.get("answeredCount")),
                question_count=read_count(item.get("questionCount")),
            )

        return [by_code[code] for code in self.catalog.pillar_codes if code in by_code]

    def _total_score24(self, averages: list[PillarAverage], stored: Any) -> float:
        if len(averages) == len(self.catalog.pillars):
            total = sum(p.average_score for p in averages)
        else:
            total = read_number(stored)
        return round(clamp(total, 0.0, MAX_TOTAL_SCORE), 2)
