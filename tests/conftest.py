from __future__ import annotations

from typing import Any

import pytest

from ppqsa.domain.codec import SnapshotCodec
from ppqsa.domain.schemas import Snapshot
from ppqsa.infrastructure.config import reset_settings
from ppqsa.infrastructure.kv import InMemoryKeyValueStore

PILLAR_CODES = ["GOV", "AST", "IAM", "END", "PER", "BAK", "LOG", "IR"]


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def codec() -> SnapshotCodec:
    return SnapshotCodec()


def make_snapshot(
    token: str = "t1",
    timestamp: str = "2024-01-01T00:00:00Z",
    total: float | None = None,
    averages: dict[str, float] | None = None,
    answers: dict[str, Any] | None = None,
    org: str = "",
    country: str = "",
) -> Snapshot:
    record: dict[str, Any] = {
        "token": token,
        "timestampISO": timestamp,
        "organisationName": org,
        "country": country,
        "rawAnswers": answers or {},
        "pillarAverages": [
            {"pillarCode": code, "averageScore": avg, "answeredCount": 1, "questionCount": 4}
            for code, avg in (averages or {}).items()
        ],
    }
    if total is not None:
        record["totalScore24"] = total
    return SnapshotCodec().normalize(record)
