from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .aggregation import latest_per_subject
from .schemas import DEFAULT_TOKEN, NOT_SET, Snapshot
from .timestamps import chronological_key

SPARK_LEVELS = " .:-=+*#%@"


def chronological(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    """Oldest first; unparsable timestamps lead, compared as strings."""
    return sorted(snapshots, key=lambda s: chronological_key(s.timestamp_iso))


def sparkline(values: Sequence[float]) -> str:
    """
    One character per value, scaled linearly between the series min and max.

    >>> sparkline([0, 12, 24])
    ' +@'
    >>> sparkline([5, 5])
    '=='
    """
    finite = [v for v in values if math.isfinite(v)]
    if not finite:
        return ""

    top = len(SPARK_LEVELS) - 1
    lo, hi = min(finite), max(finite)
    if lo == hi:
        return SPARK_LEVELS[top // 2] * len(finite)

    scale = top / (hi - lo)
    out = []
    for v in finite:
        level = math.floor((v - lo) * scale + 0.5)
        out.append(SPARK_LEVELS[max(0, min(top, level))])
    return "".join(out)


@dataclass(slots=True)
class SubjectOption:
    token: str
    label: str


def subject_options(log: Iterable[Snapshot]) -> list[SubjectOption]:
    """Picker entries ``"<org> — <country> (<token>)"`` from each token's latest record."""
    options = []
    for s in latest_per_subject(log):
        org = s.organisation_name.strip() or NOT_SET
        country = s.country.strip() or NOT_SET
        token = s.token or DEFAULT_TOKEN
        options.append(SubjectOption(token=token, label=f"{org} — {country} ({token})"))
    options.sort(key=lambda o: o.label.casefold())
    return options


@dataclass(slots=True)
class TrendSeries:
    """A single subject's score history, oldest first."""

    token: str
    snapshots: list[Snapshot]

    @classmethod
    def for_token(cls, log: Iterable[Snapshot], token: str) -> "TrendSeries":
        token = token.strip() or DEFAULT_TOKEN
        return cls(token=token, snapshots=chronological(s for s in log if s.token == token))

    @property
    def scores(self) -> list[float]:
        return [s.total_score24 for s in self.snapshots]

    @property
    def sparkline(self) -> str:
        return sparkline(self.scores)

    @property
    def latest(self) -> Snapshot | None:
        found = latest_per_subject(self.snapshots)
        return found[0] if found else None

    @property
    def delta(self) -> float | None:
        """Change from the first to the last point, or None with fewer than two."""
        if len(self.snapshots) < 2:
            return None
        return round(self.scores[-1] - self.scores[0], 2)
