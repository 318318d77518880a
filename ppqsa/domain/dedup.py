from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .schemas import DEFAULT_TOKEN, Snapshot
from .timestamps import is_more_recent, parse_timestamp

DEFAULT_WINDOW_SECONDS = 60.0


def fingerprint(answers: Mapping[str, Any]) -> str:
    """Order-independent identity of an answer set: ``"k1:v1|k2:v2"`` over sorted keys."""
    return "|".join(f"{key}:{answers[key]}" for key in sorted(answers))


def latest_for_token(snapshots: Iterable[Snapshot], token: str) -> Snapshot | None:
    """Most recent record for ``token``; on a recency tie the first one seen is kept."""
    latest: Snapshot | None = None
    for s in snapshots:
        if s.token != token:
            continue
        if latest is None or is_more_recent(s.timestamp_iso, latest.timestamp_iso):
            latest = s
    return latest


class DedupGuard:
    """
    Suppresses a repeated save of the same answers.

    A candidate is a duplicate when the latest prior record for its token has
    the same answer fingerprint and was stored less than ``window_seconds``
    earlier. If either timestamp cannot be parsed the candidate is kept.
    """

    def __init__(self, window_seconds: float = DEFAULT_WINDOW_SECONDS, logger: logging.Logger | None = None):
        self.window_ms = window_seconds * 1000.0
        self.logger = logger or logging.getLogger(__name__)

    def is_duplicate(self, candidate: Snapshot, log: Sequence[Snapshot]) -> bool:
        token = candidate.token or DEFAULT_TOKEN
        latest = latest_for_token(log, token)
        if latest is None:
            return False

        candidate_ms = parse_timestamp(candidate.timestamp_iso)
        latest_ms = parse_timestamp(latest.timestamp_iso)
        if candidate_ms is None or latest_ms is None:
            return False

        # a candidate older than the latest record still counts as "within" the window
        if candidate_ms - latest_ms >= self.window_ms:
            return False

        duplicate = fingerprint(candidate.raw_answers) == fingerprint(latest.raw_answers)
        if duplicate:
            self.logger.info("Suppressed duplicate snapshot for token %s", token)
        return duplicate
