"""
Pydantic schemas for persisted records and boundary input validation.

``Snapshot`` and ``PillarAverage`` mirror the persisted JSON shape exactly
(camelCase aliases); records written by earlier builds round-trip unchanged.
"""

from __future__ import annotations

import math
import re
from html import unescape
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

NOT_APPLICABLE = "NA"

Score = Literal[0, 1, 2, 3, "NA"]
Band = Literal["Foundational", "Developing", "Established", "Mature"]

BANDS: tuple[str, ...] = ("Foundational", "Developing", "Established", "Mature")
UNKNOWN_BAND = "Unknown"
DEFAULT_TOKEN = "default"
NOT_SET = "Not set"


def normalize_score(value: Any) -> Score | None:
    """
    Return ``value`` as a Score, or None when it is not exactly 0, 1, 2, 3 or "NA".

    Integral floats (``2.0``) are accepted since JSON does not distinguish
    them; booleans are not scores.
    """
    if isinstance(value, str) and value == NOT_APPLICABLE:
        return NOT_APPLICABLE
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    if value in (0, 1, 2, 3):
        return int(value)  # type: ignore[return-value]
    return None


def normalize_answers(value: Any) -> dict[str, Score]:
    """Keep only entries whose value is a valid Score."""
    if not isinstance(value, dict):
        return {}
    out: dict[str, Score] = {}
    for key, raw in value.items():
        score = normalize_score(raw)
        if score is None or not isinstance(key, str):
            continue
        out[key] = score
    return out


class PillarAverage(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    pillar_code: str = Field(alias="pillarCode")
    pillar_name: str = Field("", alias="pillarName")
    average_score: float = Field(0.0, alias="averageScore", ge=0, le=3)
    answered_count: int = Field(0, alias="answeredCount", ge=0)
    question_count: int = Field(0, alias="questionCount", ge=0)


class Snapshot(BaseModel):
    """An immutable, fully scored assessment record for one subject."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: str = Field(DEFAULT_TOKEN, min_length=1)
    organisation_name: str = Field("", alias="organisationName")
    country: str = ""
    contact_email: str = Field("", alias="contactEmail")
    timestamp_iso: str = Field(alias="timestampISO", min_length=1)
    total_score24: float = Field(0.0, alias="totalScore24", ge=0, le=24)
    band: Band = "Foundational"
    pillar_averages: tuple[PillarAverage, ...] = Field((), alias="pillarAverages")
    pillar_notes: dict[str, str] = Field(default_factory=dict, alias="pillarNotes")
    raw_answers: dict[str, Score] = Field(default_factory=dict, alias="rawAnswers")

    def to_record(self) -> dict[str, Any]:
        """The persisted (camelCase, JSON-ready) form."""
        return self.model_dump(by_alias=True, mode="json")

    def pillar_average(self, code: str) -> PillarAverage | None:
        for p in self.pillar_averages:
            if p.pillar_code == code:
                return p
        return None


class BaseValidationSchema(BaseModel):
    """Base schema for user-supplied text: strips markup and control characters."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    @field_validator("*", mode="before")
    def sanitize_strings(cls, v):
        if isinstance(v, str):
            cleaned = unescape(v.strip())
            cleaned = re.sub(
                r"<\s*script[^>]*>.*?<\s*/\s*script\s*>",
                "",
                cleaned,
                flags=re.IGNORECASE | re.DOTALL,
            )
            cleaned = re.sub(r"<[^>]+>", "", cleaned)
            cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", cleaned)
            return cleaned
        return v


class ProfileInput(BaseValidationSchema):
    """Subject profile captured before answering."""

    organisation_name: str = Field("", max_length=255, alias="organisationName")
    country: str = Field("", max_length=120)
    contact_name: str = Field("", max_length=255, alias="contactName")
    contact_email: str = Field("", max_length=255, alias="contactEmail")
    role_title: str = Field("", max_length=255, alias="roleTitle")
    ict_team_size: str = Field("", max_length=64, alias="ictTeamSize")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("contact_email")
    def validate_email(cls, v: str) -> str:
        if v and not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", v):
            raise ValueError("Contact email is not a valid address")
        return v


class PillarNotesInput(BaseValidationSchema):
    notes: dict[str, str] = Field(default_factory=dict)

    @field_validator("notes")
    def limit_notes(cls, v: dict[str, str]) -> dict[str, str]:
        for code, note in v.items():
            if len(note) > 5000:
                raise ValueError(f"Note for {code} exceeds 5000 characters")
        return v


class TargetScoreInput(BaseModel):
    """A target total out of 24; non-finite values are rejected."""

    target_score24: float = Field(alias="targetScore24")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("target_score24")
    def validate_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Target score must be a finite number")
        return min(24.0, max(0.0, v))


InviteStatus = Literal["active", "revoked"]
LifecycleStatus = Literal["Not started", "In progress", "Completed"]


class Invite(BaseModel):
    """An issued assessment token."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, strict=True)

    token: str
    label: str
    created_at: str = Field(alias="createdAt")
    status: InviteStatus = "active"

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
